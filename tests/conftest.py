"""Shared test fixtures for schemarules."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from schemarules.config import reset_default_config
from schemarules.metadata import (
    AssociationMetadata,
    ColumnMetadata,
    ColumnType,
    EntityMetadata,
    IndexMetadata,
    resolve_uniqueness,
)
from schemarules.rules import RuleType

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping
    from pathlib import Path

    from schemarules.rules import ValidationRule


ARTICLE_INDEXES = (
    IndexMetadata(columns=("title",), unique=True),
    IndexMetadata(columns=("state", "active"), unique=True),
)

SCHEMA_YAML = """\
version: 1
entities:
  - name: Article
    table: articles
    columns:
      - {name: id, type: integer, "null": false}
      - {name: title, type: string, limit: 50}
      - {name: content, type: text, "null": false}
      - {name: state, type: integer}
      - {name: average_mark, type: float, "null": false}
      - {name: active, type: boolean, "null": false}
    indexes:
      - {columns: [title], unique: true}
      - {columns: [state, active], unique: true}
  - name: Review
    table: reviews
    columns:
      - {name: id, type: integer, "null": false}
      - {name: article_id, type: integer, "null": false}
      - {name: author, type: string, "null": false}
      - {name: content, type: string, limit: 200}
      - {name: type, type: string}
    indexes:
      - {columns: [article_id], unique: true}
    belongs_to:
      - {name: article, foreign_key: article_id}
      - {name: news_article, foreign_key: article_id}
  - name: PremiumReview
    base: Review
"""


@pytest.fixture(autouse=True)
def _clean_default_config() -> Iterator[None]:
    """Every test starts and ends with the documented default Config."""
    reset_default_config()
    yield
    reset_default_config()


def _column(name: str, type_: ColumnType, **kwargs: object) -> ColumnMetadata:
    unique, scope, ci = resolve_uniqueness(name, ARTICLE_INDEXES)
    return ColumnMetadata.build(
        name,
        type_,
        unique=unique,
        unique_scope=scope,
        case_insensitive_unique=ci,
        **kwargs,
    )


@pytest.fixture()
def article() -> EntityMetadata:
    """The ``articles`` table: title(50) unique, content NOT NULL, (state, active) unique."""
    return EntityMetadata(
        name="Article",
        table="articles",
        columns=(
            ColumnMetadata.build("id", ColumnType.INTEGER, nullable=False),
            _column("title", ColumnType.TEXT, limit=50),
            _column("content", ColumnType.TEXT, nullable=False),
            _column("state", ColumnType.INTEGER),
            _column("average_mark", ColumnType.FLOAT, nullable=False),
            _column("active", ColumnType.BOOLEAN, nullable=False),
        ),
    )


@pytest.fixture()
def review() -> EntityMetadata:
    """The ``reviews`` table with two belongs-to associations sharing ``article_id``."""
    article_id = ColumnMetadata.build(
        "article_id",
        ColumnType.INTEGER,
        nullable=False,
        unique=True,
    )
    return EntityMetadata(
        name="Review",
        table="reviews",
        columns=(
            ColumnMetadata.build("id", ColumnType.INTEGER, nullable=False),
            article_id,
            ColumnMetadata.build("author", ColumnType.TEXT, nullable=False),
            ColumnMetadata.build("content", ColumnType.TEXT, limit=200),
            ColumnMetadata.build("type", ColumnType.TEXT),
        ),
        associations=(
            AssociationMetadata.for_column("article", article_id),
            AssociationMetadata.for_column("news_article", article_id),
            AssociationMetadata(name="dummy_association", foreign_key="dummy_association_id"),
        ),
    )


@pytest.fixture()
def schema_file(tmp_path: Path) -> Path:
    """Write the Article/Review schema snapshot and return its path."""
    path = tmp_path / "schema.yml"
    path.write_text(SCHEMA_YAML)
    return path


def _value_errors(rule: ValidationRule, value: object) -> bool:
    """Reference semantics of a single-value rule; True if *value* is rejected."""
    opts: Mapping[str, object] = rule.options
    if rule.rule_type is RuleType.PRESENCE:
        if value is None or value is False:
            return True
        return isinstance(value, str) and not value.strip()
    if rule.rule_type is RuleType.NOT_NIL:
        return value is None
    if value is None and opts.get("allow_nil"):
        return False
    if rule.rule_type is RuleType.INCLUSION:
        allowed = opts["in"]
        assert isinstance(allowed, tuple)
        return not any(type(item) is type(value) and item == value for item in allowed)
    if rule.rule_type is RuleType.LENGTH:
        maximum = opts["maximum"]
        assert isinstance(maximum, int)
        return len(str(value)) > maximum
    if rule.rule_type is RuleType.NUMERICALITY:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return True
        if opts.get("only_integer") and value != int(value):
            return True
        checks: dict[str, Callable[[float, float], bool]] = {
            "greater_than": lambda v, b: v > b,
            "greater_than_or_equal_to": lambda v, b: v >= b,
            "less_than": lambda v, b: v < b,
            "less_than_or_equal_to": lambda v, b: v <= b,
        }
        for key, ok in checks.items():
            bound = opts.get(key)
            if isinstance(bound, (int, float)) and not ok(value, bound):
                return True
        return False
    msg = f"no single-value semantics for {rule.rule_type}"
    raise AssertionError(msg)


@pytest.fixture()
def rejects() -> Callable[[ValidationRule, object], bool]:
    """Check a value against a derived rule the way a host validator would."""
    return _value_errors
