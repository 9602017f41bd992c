"""Validation rule values: rule types, integer ranges, uniqueness activation conditions."""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING

from schemarules.metadata import is_blank

if TYPE_CHECKING:
    from collections.abc import Collection, Mapping


class RuleType(str, enum.Enum):
    """Category of a derived validation rule."""

    PRESENCE = "presence"
    NOT_NIL = "not_nil"
    NUMERICALITY = "numericality"
    LENGTH = "length"
    INCLUSION = "inclusion"
    UNIQUENESS = "uniqueness"
    CUSTOM = "custom"

    @property
    def macro(self) -> str:
        """Canonical macro name, e.g. ``validates_presence_of``."""
        if self in (RuleType.NOT_NIL, RuleType.CUSTOM):
            return "validates_with"
        return f"validates_{self.value}_of"

    @property
    def tags(self) -> frozenset[str]:
        """Every name this rule type answers to in type filters."""
        return frozenset({self.value, self.macro})


def normalize_type_tag(tag: object) -> str:
    """Return the string form of a rule-type tag (``RuleType`` members become their value)."""
    if isinstance(tag, RuleType):
        return tag.value
    return str(tag)


# ---------------------------------------------------------------------------
# Integer ranges
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IntegerRange:
    """Valid range of a platform integer representation."""

    begin: int
    end: int
    exclude_end: bool = True

    @classmethod
    def for_bytes(cls, limit: int) -> IntegerRange:
        """Range of a signed integer stored in *limit* bytes (end exclusive)."""
        if limit <= 0:
            msg = f"integer byte width must be positive, got {limit}"
            raise ValueError(msg)
        bound = 1 << (limit * 8 - 1)
        return cls(begin=-bound, end=bound, exclude_end=True)

    def __contains__(self, value: object) -> bool:
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            return False
        if value < self.begin:
            return False
        if self.exclude_end:
            return value < self.end
        return value <= self.end


DEFAULT_INTEGER_RANGE = IntegerRange.for_bytes(4)


# ---------------------------------------------------------------------------
# Uniqueness activation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UniquenessCondition:
    """Decides per record whether a uniqueness rule applies.

    Active only when every scope field holds a non-blank value and *column*
    changed since the record was loaded or last saved.
    """

    column: str
    scope: tuple[str, ...] = ()

    def __call__(self, values: Mapping[str, object], changed: Collection[str]) -> bool:
        if any(is_blank(values.get(name)) for name in self.scope):
            return False
        return self.column in changed


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidationRule:
    """A single derived validation: what to check, on which field, with which options."""

    rule_type: RuleType
    field: str
    options: Mapping[str, object] = dataclasses.field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))

    def __hash__(self) -> int:
        return hash((self.rule_type, self.field, tuple(sorted(self.options.items()))))

    @property
    def macro(self) -> str:
        return self.rule_type.macro

    @property
    def tags(self) -> frozenset[str]:
        return self.rule_type.tags

    @property
    def condition(self) -> UniquenessCondition | None:
        cond = self.options.get("condition")
        return cond if isinstance(cond, UniquenessCondition) else None

    def describe(self) -> str:
        """Render as ``macro :field, key: value, ...`` (used for logging and text output)."""
        text = f"{self.macro} :{self.field}"
        if self.rule_type is RuleType.NOT_NIL:
            text = f"{self.macro} NotNil, attributes: [:{self.field}]"
        parts = [
            f"{key}: {value!r}" for key, value in self.options.items() if key != "condition"
        ]
        if parts:
            text += ", " + ", ".join(parts)
        return text

    def to_dict(self) -> dict[str, object]:
        """JSON-friendly representation; the condition is reduced to its wiring."""
        options: dict[str, object] = {}
        for key, value in self.options.items():
            if isinstance(value, UniquenessCondition):
                options[key] = {"column": value.column, "scope": list(value.scope)}
            elif isinstance(value, tuple):
                options[key] = list(value)
            else:
                options[key] = value
        return {
            "rule_type": self.rule_type.value,
            "macro": self.macro,
            "field": self.field,
            "options": options,
        }
