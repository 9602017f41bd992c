"""Per-entity orchestration: derive each entity's rules once and remember them."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

from schemarules.config import Config, default_config
from schemarules.derivation import derive_association_rules, derive_column_rules
from schemarules.rules import DEFAULT_INTEGER_RANGE

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from schemarules.metadata import EntityMetadata
    from schemarules.rules import IntegerRange, ValidationRule

logger = logging.getLogger(__name__)


@dataclass
class EntityLoadState:
    """Whether rules were derived for an entity, and which."""

    loaded: bool = False
    rules: tuple[ValidationRule, ...] = ()


class RuleRegistry:
    """Derives and records validation rules per entity.

    State and Config are kept per entity name.  A subtype reuses its base's
    rules once the base has been derived; before that it derives on its own
    without touching the base.  Derivation for one entity runs at most once,
    even when triggered from several threads.
    """

    def __init__(
        self,
        *,
        integer_range: IntegerRange = DEFAULT_INTEGER_RANGE,
        defaults: Callable[[], Config] = default_config,
    ) -> None:
        self._integer_range = integer_range
        self._defaults = defaults
        self._states: dict[str, EntityLoadState] = {}
        self._configs: dict[str, Config] = {}
        self._key_locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    # -- configuration ------------------------------------------------------

    def configure(self, entity_name: str, overrides: Mapping[str, object] | None = None) -> Config:
        """Give *entity_name* its own Config, built from the current default.

        ``auto_create`` is implicitly true unless *overrides* say otherwise,
        so an entity can opt in while the global default is off.  Previously
        derived rules for the entity are discarded; the new options apply on
        the next derivation.  Waits for an in-flight derivation of the same
        entity to finish first.
        """
        options: dict[str, object] = {"auto_create": True}
        options.update(overrides or {})
        config = self._defaults().merge(options)
        with self._key_lock(entity_name), self._lock:
            self._configs[entity_name] = config
            self._states.pop(entity_name, None)
        return config

    def config_for(self, entity_name: str | None, *, base: str | None = None) -> Config:
        """Effective Config for *entity_name*.

        Falls back to the Config of *base*, then to the current default.
        """
        with self._lock:
            config = self._configs.get(entity_name) if entity_name else None
            if config is None and base:
                config = self._configs.get(base)
        return config if config is not None else self._defaults()

    # -- state --------------------------------------------------------------

    def _state(self, name: str | None) -> EntityLoadState | None:
        with self._lock:
            return self._states.get(name) if name else None

    def is_loaded(self, entity: EntityMetadata) -> bool:
        """True when *entity*, or the base it inherits from, has been derived."""
        for name in (entity.name, entity.base):
            state = self._state(name)
            if state is not None and state.loaded:
                return True
        return False

    def rules_for(self, entity_name: str) -> tuple[ValidationRule, ...]:
        """Rules recorded for *entity_name* (empty when never derived)."""
        state = self._state(entity_name)
        return state.rules if state is not None else ()

    def rule_types_on(self, entity_name: str, field: str) -> list[str]:
        """Distinct rule types recorded on *field*, in derivation order."""
        seen: list[str] = []
        for rule in self.rules_for(entity_name):
            if rule.field == field and rule.rule_type.value not in seen:
                seen.append(rule.rule_type.value)
        return seen

    def reset(self, entity_name: str | None = None) -> None:
        """Forget derived state (and per-entity Config) for one entity, or for all."""
        with self._lock:
            if entity_name is None:
                self._states.clear()
                self._configs.clear()
            else:
                self._states.pop(entity_name, None)
                self._configs.pop(entity_name, None)

    def _key_lock(self, key: str) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    # -- derivation ---------------------------------------------------------

    def derive_rules(self, entity: EntityMetadata) -> tuple[ValidationRule, ...]:
        """Derive *entity*'s rules, or return the recorded ones if already derived.

        A subtype whose base is already derived gets the base's rules.
        Declines (returning nothing) for nameless or abstract entities,
        entities without a backing table, and entities whose Config disables
        ``auto_create``.
        """
        name = entity.name
        if not name:
            logger.debug("Skipping anonymous entity")
            return ()

        with self._key_lock(name):
            for owner in (name, entity.base):
                state = self._state(owner)
                if state is not None and state.loaded:
                    return state.rules

            if entity.abstract or not entity.table_exists:
                logger.debug("Skipping %s: abstract or without backing table", name)
                return ()

            config = self.config_for(name, base=entity.base)
            if not config.auto_create:
                logger.debug("Skipping %s: auto_create disabled", name)
                return ()

            rules = self._derive(name, entity, config)
            with self._lock:
                self._states[name] = EntityLoadState(loaded=True, rules=rules)
            return rules

    def _derive(
        self, key: str, entity: EntityMetadata, config: Config
    ) -> tuple[ValidationRule, ...]:
        rules: list[ValidationRule] = []
        for column in entity.content_columns:
            rules.extend(derive_column_rules(column, config, integer_range=self._integer_range))

        columns_hash = entity.columns_hash
        for association in entity.associations:
            rules.extend(derive_association_rules(association, columns_hash, config))

        for rule in rules:
            logger.debug("[schemarules] %s.%s", key, rule.describe())
        return tuple(rules)


# ---------------------------------------------------------------------------
# Process-wide registry
# ---------------------------------------------------------------------------

_registry = RuleRegistry()


def default_registry() -> RuleRegistry:
    """The registry used by the module-level shortcuts."""
    return _registry


def derive_rules(entity: EntityMetadata) -> tuple[ValidationRule, ...]:
    return _registry.derive_rules(entity)


def configure(entity_name: str, overrides: Mapping[str, object] | None = None) -> Config:
    return _registry.configure(entity_name, overrides)
