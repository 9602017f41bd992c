"""Schema metadata: column/association/entity snapshots and YAML snapshot ingestion."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

import yaml

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from pathlib import Path

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SUPPORTED_SCHEMA_VERSIONS: frozenset[int] = frozenset({1})


class ColumnType(str, enum.Enum):
    """Logical datatype of a column, resolved once at ingestion."""

    INTEGER = "integer"
    DECIMAL = "decimal"
    FLOAT = "float"
    TEXT = "text"
    BOOLEAN = "boolean"
    ENUM = "enum"
    OTHER = "other"


_RAW_TYPES: dict[str, ColumnType] = {
    "integer": ColumnType.INTEGER,
    "int": ColumnType.INTEGER,
    "smallint": ColumnType.INTEGER,
    "bigint": ColumnType.INTEGER,
    "serial": ColumnType.INTEGER,
    "bigserial": ColumnType.INTEGER,
    "decimal": ColumnType.DECIMAL,
    "numeric": ColumnType.DECIMAL,
    "money": ColumnType.DECIMAL,
    "float": ColumnType.FLOAT,
    "double": ColumnType.FLOAT,
    "real": ColumnType.FLOAT,
    "string": ColumnType.TEXT,
    "text": ColumnType.TEXT,
    "varchar": ColumnType.TEXT,
    "char": ColumnType.TEXT,
    "citext": ColumnType.TEXT,
    "boolean": ColumnType.BOOLEAN,
    "bool": ColumnType.BOOLEAN,
}

# Byte width implied by a raw integer type name when no limit is given.
_INTEGER_WIDTHS: dict[str, int] = {
    "smallint": 2,
    "bigint": 8,
    "bigserial": 8,
}


def resolve_column_type(raw_type: str, *, enum_backed: bool = False) -> ColumnType:
    """Map a raw SQL-ish type name to a :class:`ColumnType`.

    Enum-backed attributes resolve to ``ColumnType.ENUM`` regardless of
    their storage type.  Unknown names resolve to ``ColumnType.OTHER``.
    """
    if enum_backed:
        return ColumnType.ENUM
    return _RAW_TYPES.get(raw_type.strip().lower(), ColumnType.OTHER)


def is_blank(value: object) -> bool:
    """Return True for ``None``, ``False``, whitespace-only strings and empty collections."""
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) == 0
    return False


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

_NO_DEFAULT = object()


@dataclass(frozen=True)
class ColumnMetadata:
    """Immutable snapshot of one column's schema metadata."""

    name: str
    type: ColumnType
    nullable: bool = True
    has_default: bool = False
    default_is_blank: bool = False
    limit: int | None = None  # length for text, byte width for integers
    precision: int | None = None
    scale: int | None = None
    unique: bool = False
    unique_scope: tuple[str, ...] = ()
    case_insensitive_unique: bool = False

    @classmethod
    def build(
        cls,
        name: str,
        type: ColumnType,  # noqa: A002
        *,
        default: object = _NO_DEFAULT,
        **kwargs: object,
    ) -> ColumnMetadata:
        """Build a column, computing the default flags from a raw *default* value.

        A default of ``None`` (or no default at all) means the column has no default.
        """
        has_default = default is not _NO_DEFAULT and default is not None
        return cls(
            name=name,
            type=type,
            has_default=has_default,
            default_is_blank=has_default and is_blank(default),
            **kwargs,  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class IndexMetadata:
    """A database index as seen by the ingestion boundary."""

    columns: tuple[str, ...]
    unique: bool = False
    case_sensitive: bool | None = None  # None: unknown, treated as case-sensitive


@dataclass(frozen=True)
class AssociationMetadata:
    """A belongs-to association and the constraints of its foreign-key column."""

    name: str
    foreign_key: str
    required: bool = False
    unique: bool = False
    unique_scope: tuple[str, ...] = ()
    case_insensitive_unique: bool = False

    @classmethod
    def for_column(cls, name: str, column: ColumnMetadata) -> AssociationMetadata:
        """Describe association *name* backed by foreign-key *column*."""
        return cls(
            name=name,
            foreign_key=column.name,
            required=not column.nullable,
            unique=column.unique,
            unique_scope=column.unique_scope,
            case_insensitive_unique=column.case_insensitive_unique,
        )


@dataclass(frozen=True)
class EntityMetadata:
    """Everything the engine knows about one schema-backed entity."""

    name: str | None
    table: str | None = None
    columns: tuple[ColumnMetadata, ...] = ()
    associations: tuple[AssociationMetadata, ...] = ()
    table_exists: bool = True
    abstract: bool = False
    primary_key: str | None = "id"
    inheritance_column: str = "type"
    base: str | None = None  # entity whose backing table this subtype shares

    @property
    def columns_hash(self) -> dict[str, ColumnMetadata]:
        return {col.name: col for col in self.columns}

    @property
    def content_columns(self) -> tuple[ColumnMetadata, ...]:
        """Columns validated directly: no primary key, inheritance column or ``*_id``/``*_count``."""
        return tuple(
            col
            for col in self.columns
            if col.name != self.primary_key
            and col.name != self.inheritance_column
            and not col.name.endswith(("_id", "_count"))
        )

    @property
    def root_name(self) -> str | None:
        """Name of the outermost entity in this entity's inheritance chain."""
        return self.base or self.name


# ---------------------------------------------------------------------------
# Uniqueness resolution
# ---------------------------------------------------------------------------


def resolve_uniqueness(
    column_name: str, indexes: Iterable[IndexMetadata]
) -> tuple[bool, tuple[str, ...], bool]:
    """Return ``(unique, scope, case_insensitive)`` for *column_name*.

    The column is unique when any unique index contains it.  Its scope is the
    other columns of the smallest such index.  The uniqueness is
    case-insensitive only when a unique index covering exactly the column plus
    its scope declares ``case_sensitive: false``.
    """
    covering = [idx for idx in indexes if idx.unique and column_name in idx.columns]
    if not covering:
        return False, (), False

    smallest = min(covering, key=lambda idx: len(idx.columns))
    scope = tuple(name for name in smallest.columns if name != column_name)

    wanted = sorted((*scope, column_name))
    case_insensitive = any(
        sorted(idx.columns) == wanted and idx.case_sensitive is False for idx in covering
    )
    return True, scope, case_insensitive


# ---------------------------------------------------------------------------
# YAML parsing
# ---------------------------------------------------------------------------


def _as_str_tuple(value: object, context: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list):
        return tuple(str(item) for item in value)
    msg = f"{context} must be a string or a list of strings"
    raise ValueError(msg)


def _optional_int(
    data: Mapping[str, object], key: str, context: str, *, minimum: int = 0
) -> int | None:
    raw = data.get(key)
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, int):
        msg = f"{context}: '{key}' must be an integer"
        raise ValueError(msg)
    if raw < minimum:
        msg = f"{context}: '{key}' must be at least {minimum}, got {raw}"
        raise ValueError(msg)
    return raw


def _parse_index(data: object, context: str) -> IndexMetadata:
    if not isinstance(data, dict):
        msg = f"{context} must be a mapping"
        raise ValueError(msg)
    columns = _as_str_tuple(data.get("columns"), f"{context}: 'columns'")
    if not columns:
        msg = f"{context}: 'columns' must not be empty"
        raise ValueError(msg)
    case_sensitive_raw = data.get("case_sensitive")
    case_sensitive = bool(case_sensitive_raw) if case_sensitive_raw is not None else None
    return IndexMetadata(
        columns=columns,
        unique=bool(data.get("unique", False)),
        case_sensitive=case_sensitive,
    )


def _parse_column(
    data: object,
    context: str,
    *,
    enums: frozenset[str],
    indexes: tuple[IndexMetadata, ...],
) -> ColumnMetadata:
    if not isinstance(data, dict):
        msg = f"{context} must be a mapping"
        raise ValueError(msg)

    name = data.get("name")
    if name is None or not isinstance(name, str) or not name.strip():
        msg = f"{context} missing required 'name' field"
        raise ValueError(msg)

    raw_type = data.get("type")
    if raw_type is None or not isinstance(raw_type, str):
        msg = f"{context} ('{name}') missing required 'type' field"
        raise ValueError(msg)

    column_context = f"{context} ('{name}')"
    unique, scope, case_insensitive = resolve_uniqueness(name, indexes)

    extra: dict[str, object] = {}
    if "default" in data:
        extra["default"] = data["default"]

    column_type = resolve_column_type(raw_type, enum_backed=name in enums)
    limit = _optional_int(data, "limit", column_context, minimum=1)
    if limit is None and column_type is ColumnType.INTEGER:
        limit = _INTEGER_WIDTHS.get(raw_type.strip().lower())

    return ColumnMetadata.build(
        name,
        column_type,
        nullable=bool(data.get("null", True)),
        limit=limit,
        precision=_optional_int(data, "precision", column_context, minimum=1),
        scale=_optional_int(data, "scale", column_context),
        unique=unique,
        unique_scope=scope,
        case_insensitive_unique=case_insensitive,
        **extra,
    )


def _parse_associations(
    raw: object, context: str, columns_hash: Mapping[str, ColumnMetadata]
) -> tuple[AssociationMetadata, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        msg = f"{context}: 'belongs_to' must be a list"
        raise ValueError(msg)

    associations: list[AssociationMetadata] = []
    for idx, assoc_data in enumerate(raw):
        assoc_context = f"{context} belongs_to at index {idx}"
        if not isinstance(assoc_data, dict):
            msg = f"{assoc_context} must be a mapping"
            raise ValueError(msg)
        name = assoc_data.get("name")
        if name is None or not isinstance(name, str) or not name.strip():
            msg = f"{assoc_context} missing required 'name' field"
            raise ValueError(msg)
        foreign_key = str(assoc_data.get("foreign_key") or f"{name}_id")

        column = columns_hash.get(foreign_key)
        if column is None:
            # Dangling association: kept so the deriver can skip it.
            associations.append(AssociationMetadata(name=name, foreign_key=foreign_key))
        else:
            associations.append(AssociationMetadata.for_column(name, column))
    return tuple(associations)


def _parse_entity(
    data: object, idx: int, known: Mapping[str, tuple[EntityMetadata, tuple[IndexMetadata, ...]]]
) -> tuple[EntityMetadata, tuple[IndexMetadata, ...]]:
    context = f"schema.yml: entity at index {idx}"
    if not isinstance(data, dict):
        msg = f"{context} must be a mapping"
        raise ValueError(msg)

    name_raw = data.get("name")
    if name_raw is not None and not isinstance(name_raw, str):
        msg = f"{context}: 'name' must be a string"
        raise ValueError(msg)
    name: str | None = None
    if isinstance(name_raw, str) and name_raw.strip():
        name = name_raw.strip()
    if name is not None:
        context = f"schema.yml: entity '{name}'"

    base_raw = data.get("base")
    base = str(base_raw) if base_raw is not None else None

    if base is not None:
        if base not in known:
            msg = f"{context}: base entity '{base}' must be declared before its subtypes"
            raise ValueError(msg)
        parent, parent_indexes = known[base]
        extra_assocs = _parse_associations(
            data.get("belongs_to"), context, parent.columns_hash
        )
        entity = EntityMetadata(
            name=name,
            table=parent.table,
            columns=parent.columns,
            associations=parent.associations + extra_assocs,
            table_exists=parent.table_exists,
            abstract=bool(data.get("abstract", False)),
            primary_key=parent.primary_key,
            inheritance_column=parent.inheritance_column,
            base=parent.root_name,
        )
        return entity, parent_indexes

    indexes_raw = data.get("indexes", [])
    if not isinstance(indexes_raw, list):
        msg = f"{context}: 'indexes' must be a list"
        raise ValueError(msg)
    indexes = tuple(
        _parse_index(index_data, f"{context} index at index {i}")
        for i, index_data in enumerate(indexes_raw)
    )

    enums = frozenset(_as_str_tuple(data.get("enums"), f"{context}: 'enums'"))

    columns_raw = data.get("columns", [])
    if not isinstance(columns_raw, list):
        msg = f"{context}: 'columns' must be a list"
        raise ValueError(msg)
    columns = tuple(
        _parse_column(col_data, f"{context} column at index {i}", enums=enums, indexes=indexes)
        for i, col_data in enumerate(columns_raw)
    )

    seen: set[str] = set()
    for col in columns:
        if col.name in seen:
            msg = f"{context}: duplicate column '{col.name}'"
            raise ValueError(msg)
        seen.add(col.name)

    columns_hash = {col.name: col for col in columns}
    primary_key_raw = data.get("primary_key", "id")

    entity = EntityMetadata(
        name=name,
        table=str(data.get("table") or "") or None,
        columns=columns,
        associations=_parse_associations(data.get("belongs_to"), context, columns_hash),
        table_exists=bool(data.get("table_exists", True)),
        abstract=bool(data.get("abstract", False)),
        primary_key=str(primary_key_raw) if primary_key_raw is not None else None,
        inheritance_column=str(data.get("inheritance_column", "type")),
    )
    return entity, indexes


def parse_schema(data: object) -> list[EntityMetadata]:
    """Build entity metadata from an already-parsed schema document.

    Raises ``ValueError`` on structural errors.
    """
    if not isinstance(data, dict):
        msg = "schema.yml must be a YAML mapping"
        raise ValueError(msg)

    version = data.get("version")
    if version is None:
        msg = "schema.yml: missing required 'version' field"
        raise ValueError(msg)
    if version not in SUPPORTED_SCHEMA_VERSIONS:
        expected = sorted(SUPPORTED_SCHEMA_VERSIONS)
        msg = f"schema.yml: unsupported version {version}, expected one of {expected}"
        raise ValueError(msg)

    entities_data = data.get("entities", [])
    if not isinstance(entities_data, list):
        msg = "schema.yml: 'entities' must be a list"
        raise ValueError(msg)

    known: dict[str, tuple[EntityMetadata, tuple[IndexMetadata, ...]]] = {}
    entities: list[EntityMetadata] = []
    for idx, entity_data in enumerate(entities_data):
        entity, indexes = _parse_entity(entity_data, idx, known)
        if entity.name is not None:
            if entity.name in known:
                msg = f"schema.yml: duplicate entity name '{entity.name}'"
                raise ValueError(msg)
            known[entity.name] = (entity, indexes)
        entities.append(entity)

    return entities


def load_schema(schema_path: Path) -> list[EntityMetadata]:
    """Parse a schema snapshot YAML file into :class:`EntityMetadata` objects.

    Raises ``ValueError`` on schema errors (missing version, bad columns, etc.).
    """
    with schema_path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    return parse_schema(data)


