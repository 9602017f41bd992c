"""Rule-generation settings: the Config value object, the process-wide default, config files.

Set the global defaults once at start-up::

    from schemarules.config import setup

    setup(lambda config: config.merge({"auto_create": False}))

or override per entity through the registry::

    registry.configure("Review", {"except": ["content"]})
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import yaml

from schemarules.rules import normalize_type_tag

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from pathlib import Path

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_WHITELIST: frozenset[str] = frozenset(
    {"created_at", "updated_at", "created_on", "updated_on"}
)

# Option key -> dataclass attribute.  ``except`` is a keyword, hence ``except_``.
_OPTION_ATTRS: dict[str, str] = {
    "auto_create": "auto_create",
    "only": "only",
    "except": "except_",
    "except_": "except_",
    "whitelist": "whitelist",
    "only_type": "only_type",
    "except_type": "except_type",
    "whitelist_type": "whitelist_type",
}
_NAME_OPTIONS = frozenset({"only", "except_", "whitelist"})
_TYPE_OPTIONS = frozenset({"only_type", "except_type", "whitelist_type"})

CONFIG_FILENAME = "schemarules.yml"


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------


def _as_set(value: object, option: str, *, types: bool) -> frozenset[str] | None:
    """Accept ``None``, a single name or an iterable of names."""
    if value is None:
        return None
    if isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
        items: list[object] = [value]
    else:
        items = list(value)
    for item in items:
        if not isinstance(item, str):
            msg = f"option '{option}' must contain strings, got {item!r}"
            raise ValueError(msg)
    if types:
        return frozenset(normalize_type_tag(item) for item in items)
    return frozenset(str(item) for item in items)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Config:
    """Which rules get generated.

    Every set-valued option is ``None`` (no restriction) or a frozenset.
    Single strings and iterables are accepted and normalised.
    """

    auto_create: bool = True
    only: frozenset[str] | None = None
    except_: frozenset[str] | None = None
    whitelist: frozenset[str] | None = DEFAULT_WHITELIST
    only_type: frozenset[str] | None = None
    except_type: frozenset[str] | None = None
    whitelist_type: frozenset[str] | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.auto_create, bool):
            msg = f"option 'auto_create' must be a boolean, got {self.auto_create!r}"
            raise ValueError(msg)
        for attr in _NAME_OPTIONS:
            object.__setattr__(self, attr, _as_set(getattr(self, attr), attr, types=False))
        for attr in _TYPE_OPTIONS:
            object.__setattr__(self, attr, _as_set(getattr(self, attr), attr, types=True))

    def merge(self, overrides: Mapping[str, object] | None = None) -> Config:
        """Return a new Config with *overrides* replacing the matching options.

        Keys absent from *overrides* are inherited; an explicit ``None``
        removes the restriction.  Set-valued overrides replace, never union.
        Raises ``ValueError`` on unknown option names.
        """
        if not overrides:
            return self
        changes: dict[str, Any] = {}
        for key, value in overrides.items():
            attr = _OPTION_ATTRS.get(key)
            if attr is None:
                valid = sorted(set(_OPTION_ATTRS) - {"except_"})
                msg = f"unknown option '{key}', must be one of {valid}"
                raise ValueError(msg)
            changes[attr] = value
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, object]:
        """Plain representation keyed by option name (sets become sorted lists)."""
        result: dict[str, object] = {}
        for key, attr in _OPTION_ATTRS.items():
            if key == "except_":
                continue
            value = getattr(self, attr)
            result[key] = sorted(value) if isinstance(value, frozenset) else value
        return result


# ---------------------------------------------------------------------------
# Process-wide default
# ---------------------------------------------------------------------------

_default: Config | None = None
_default_lock = threading.RLock()


def default_config() -> Config:
    """Return the process-wide default Config, creating it on first access."""
    global _default  # noqa: PLW0603
    with _default_lock:
        if _default is None:
            _default = Config()
        return _default


def setup(configure: Callable[[Config], Config]) -> Config:
    """Replace the process-wide default with ``configure(current_default)``.

    Intended for start-up; entities that already derived rules keep them.
    The callback may read the default itself.
    """
    global _default  # noqa: PLW0603
    with _default_lock:
        if _default is None:
            _default = Config()
        updated = configure(_default)
        if not isinstance(updated, Config):
            msg = f"setup callback must return a Config, got {type(updated).__name__}"
            raise TypeError(msg)
        _default = updated
        return updated


def reset_default_config() -> None:
    """Restore the documented defaults (test teardown)."""
    global _default  # noqa: PLW0603
    with _default_lock:
        _default = None


# ---------------------------------------------------------------------------
# Config files
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConfigFile:
    """Options read from a ``schemarules.yml`` file."""

    overrides: Mapping[str, object] = dataclasses.field(default_factory=dict)
    entities: Mapping[str, Mapping[str, object]] = dataclasses.field(default_factory=dict)

    def global_config(self, base: Config | None = None) -> Config:
        """Merge the global section onto *base* (the built-in defaults when omitted)."""
        return (base or Config()).merge(self.overrides)


def parse_config(data: object) -> ConfigFile:
    """Validate an already-parsed config document.

    Raises ``ValueError`` on non-mapping sections and unknown options.
    """
    if data is None:
        return ConfigFile()
    if not isinstance(data, dict):
        msg = "schemarules.yml must be a YAML mapping"
        raise ValueError(msg)

    unknown = set(data) - {"schemarules", "entities"}
    if unknown:
        msg = f"schemarules.yml: unknown top-level keys {sorted(unknown)}"
        raise ValueError(msg)

    overrides = data.get("schemarules") or {}
    if not isinstance(overrides, dict):
        msg = "schemarules.yml: 'schemarules' must be a mapping"
        raise ValueError(msg)
    try:
        Config().merge(overrides)
    except ValueError as exc:
        msg = f"schemarules.yml: {exc}"
        raise ValueError(msg) from exc

    entities_raw = data.get("entities") or {}
    if not isinstance(entities_raw, dict):
        msg = "schemarules.yml: 'entities' must be a mapping of entity name to options"
        raise ValueError(msg)

    entities: dict[str, dict[str, object]] = {}
    for name, options in entities_raw.items():
        options = options or {}
        if not isinstance(options, dict):
            msg = f"schemarules.yml: options for entity '{name}' must be a mapping"
            raise ValueError(msg)
        try:
            Config().merge(options)
        except ValueError as exc:
            msg = f"schemarules.yml: entity '{name}': {exc}"
            raise ValueError(msg) from exc
        entities[str(name)] = dict(options)

    return ConfigFile(overrides=dict(overrides), entities=entities)


def load_config(config_path: Path) -> ConfigFile:
    """Parse a config YAML file.  Raises ``ValueError`` on invalid options."""
    with config_path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    return parse_config(data)


def find_config(directory: Path) -> ConfigFile:
    """Load ``schemarules.yml`` from *directory* if present.

    Falls back to an empty ConfigFile when the file is missing or unreadable.
    """
    config_path = directory / CONFIG_FILENAME
    if not config_path.is_file():
        return ConfigFile()

    try:
        return load_config(config_path)
    except (OSError, yaml.YAMLError, ValueError) as exc:
        logger.warning("Failed to read %s, using default options: %s", config_path, exc)
        return ConfigFile()
