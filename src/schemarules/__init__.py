"""schemarules - derive data-validation rules from relational schema constraints."""

from schemarules.config import Config, default_config, reset_default_config, setup
from schemarules.metadata import (
    AssociationMetadata,
    ColumnMetadata,
    ColumnType,
    EntityMetadata,
    load_schema,
)
from schemarules.registry import RuleRegistry, configure, default_registry, derive_rules
from schemarules.rule_filter import accepts
from schemarules.rules import IntegerRange, RuleType, UniquenessCondition, ValidationRule

__version__ = "0.1.0"

__all__ = [
    "AssociationMetadata",
    "ColumnMetadata",
    "ColumnType",
    "Config",
    "EntityMetadata",
    "IntegerRange",
    "RuleRegistry",
    "RuleType",
    "UniquenessCondition",
    "ValidationRule",
    "__version__",
    "accepts",
    "configure",
    "default_config",
    "default_registry",
    "derive_rules",
    "load_schema",
    "reset_default_config",
    "setup",
]
