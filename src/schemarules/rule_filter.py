"""Rule filter: decide whether a candidate rule survives the Config."""

from __future__ import annotations

from typing import TYPE_CHECKING

from schemarules.rules import RuleType, normalize_type_tag

if TYPE_CHECKING:
    from collections.abc import Iterable

    from schemarules.config import Config
    from schemarules.rules import ValidationRule


def rule_tags(rule_type: RuleType | str, extra_tags: Iterable[object] = ()) -> frozenset[str]:
    """Full tag set of a rule: its type, the type's macro alias, and *extra_tags*."""
    tags = {normalize_type_tag(tag) for tag in extra_tags}
    if isinstance(rule_type, RuleType):
        tags |= rule_type.tags
    else:
        tags.add(str(rule_type))
    return frozenset(tags)


def accepts(
    rule_type: RuleType | str,
    extra_tags: Iterable[object],
    field_name: str,
    config: Config,
) -> bool:
    """Return True if a rule of *rule_type* on *field_name* passes *config*.

    Every check is an independent rejection; the first one that fires wins.
    """
    if config.only is not None and field_name not in config.only:
        return False
    if config.except_ is not None and field_name in config.except_:
        return False
    if config.whitelist is not None and field_name in config.whitelist:
        return False

    tags = rule_tags(rule_type, extra_tags)
    if config.only_type is not None and not tags & config.only_type:
        return False
    if config.except_type is not None and tags & config.except_type:
        return False
    return not (config.whitelist_type is not None and tags & config.whitelist_type)


def accepts_rule(rule: ValidationRule, config: Config) -> bool:
    """Convenience wrapper around :func:`accepts` for a built rule."""
    return accepts(rule.rule_type, (rule.macro,), rule.field, config)
