"""Rule derivation: columns, belongs-to associations and unique indexes to validation rules.

Column rules come out in a fixed order: datatype rule, not-null rule,
uniqueness rule.  Every candidate goes through the rule filter; rejected
candidates are dropped without notice.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from schemarules.metadata import ColumnType
from schemarules.rule_filter import accepts_rule
from schemarules.rules import (
    DEFAULT_INTEGER_RANGE,
    IntegerRange,
    RuleType,
    UniquenessCondition,
    ValidationRule,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from schemarules.config import Config
    from schemarules.metadata import AssociationMetadata, ColumnMetadata


def _keep(candidates: list[ValidationRule], config: Config) -> list[ValidationRule]:
    return [rule for rule in candidates if accepts_rule(rule, config)]


# ---------------------------------------------------------------------------
# Datatype rules
# ---------------------------------------------------------------------------


def integer_rule(name: str, integer_range: IntegerRange) -> ValidationRule:
    """Whole-number rule bounded by *integer_range*.

    The lower bound is always inclusive; the upper bound follows the range.
    """
    options: dict[str, object] = {
        "allow_nil": True,
        "only_integer": True,
        "greater_than_or_equal_to": integer_range.begin,
    }
    if integer_range.exclude_end:
        options["less_than"] = integer_range.end
    else:
        options["less_than_or_equal_to"] = integer_range.end
    return ValidationRule(RuleType.NUMERICALITY, name, options)


def decimal_limit(precision: int, scale: int | None) -> int:
    """Exclusive magnitude bound of a ``DECIMAL(precision, scale)`` value."""
    return 10 ** (precision - (scale or 0))


def _datatype_rule(
    column: ColumnMetadata, integer_range: IntegerRange
) -> ValidationRule | None:
    # Booleans are covered by the not-null branch; enums are exempt.
    name = column.name
    if column.type is ColumnType.INTEGER:
        if column.limit is not None:
            integer_range = IntegerRange.for_bytes(column.limit)
        return integer_rule(name, integer_range)
    if column.type is ColumnType.DECIMAL:
        if column.precision is None:
            return None
        limit = decimal_limit(column.precision, column.scale)
        return ValidationRule(
            RuleType.NUMERICALITY,
            name,
            {"allow_nil": True, "greater_than": -limit, "less_than": limit},
        )
    if column.type is ColumnType.FLOAT:
        return ValidationRule(RuleType.NUMERICALITY, name, {"allow_nil": True})
    if column.type is ColumnType.TEXT and column.limit is not None:
        return ValidationRule(RuleType.LENGTH, name, {"allow_nil": True, "maximum": column.limit})
    return None


def _not_null_rule(column: ColumnMetadata) -> ValidationRule | None:
    if column.nullable:
        return None
    if column.type is ColumnType.BOOLEAN:
        return ValidationRule(
            RuleType.INCLUSION, column.name, {"in": (True, False), "message": "blank"}
        )
    if column.has_default and column.default_is_blank:
        return ValidationRule(RuleType.NOT_NIL, column.name)
    return ValidationRule(RuleType.PRESENCE, column.name)


# ---------------------------------------------------------------------------
# Public derivers
# ---------------------------------------------------------------------------


def build_uniqueness_rule(
    field: str,
    config: Config,
    *,
    column: str | None = None,
    scope: tuple[str, ...] = (),
    case_insensitive: bool = False,
) -> ValidationRule | None:
    """Build the uniqueness rule for *field*, or None when the filter rejects it.

    *column* is the backing column used for change tracking; it defaults to
    *field* and differs only for associations.
    """
    options: dict[str, object] = {}
    if scope:
        options["scope"] = tuple(scope)
    options["allow_nil"] = True
    if case_insensitive:
        options["case_sensitive"] = False
    options["condition"] = UniquenessCondition(column=column or field, scope=tuple(scope))

    rule = ValidationRule(RuleType.UNIQUENESS, field, options)
    return rule if accepts_rule(rule, config) else None


def derive_column_rules(
    column: ColumnMetadata,
    config: Config,
    *,
    integer_range: IntegerRange = DEFAULT_INTEGER_RANGE,
) -> list[ValidationRule]:
    """Derive the accepted rules for a single column."""
    candidates = [
        rule
        for rule in (_datatype_rule(column, integer_range), _not_null_rule(column))
        if rule is not None
    ]
    rules = _keep(candidates, config)

    if column.unique:
        uniqueness = build_uniqueness_rule(
            column.name,
            config,
            scope=column.unique_scope,
            case_insensitive=column.case_insensitive_unique,
        )
        if uniqueness is not None:
            rules.append(uniqueness)
    return rules


def derive_association_rules(
    association: AssociationMetadata,
    columns_hash: Mapping[str, ColumnMetadata],
    config: Config,
) -> list[ValidationRule]:
    """Derive the accepted rules for a belongs-to association.

    Rules are keyed on the association name.  Associations whose foreign-key
    column is unknown yield nothing.
    """
    if association.foreign_key not in columns_hash:
        return []

    rules: list[ValidationRule] = []
    if association.required:
        rules.extend(_keep([ValidationRule(RuleType.PRESENCE, association.name)], config))

    if association.unique:
        uniqueness = build_uniqueness_rule(
            association.name,
            config,
            column=association.foreign_key,
            scope=association.unique_scope,
            case_insensitive=association.case_insensitive_unique,
        )
        if uniqueness is not None:
            rules.append(uniqueness)
    return rules
