"""Batch runner: load a schema snapshot and options, derive every entity, format results."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import yaml

from schemarules.config import find_config, load_config
from schemarules.metadata import load_schema
from schemarules.registry import RuleRegistry

if TYPE_CHECKING:
    from pathlib import Path

    from rich.console import Console

    from schemarules.config import Config, ConfigFile
    from schemarules.rules import ValidationRule


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class DeriveError(Exception):
    """Raised when the schema or config files cannot be used."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class DeriveResult:
    """Result of a derivation run."""

    rules: dict[str, tuple[ValidationRule, ...]] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
    entities_scanned: int = 0
    elapsed_ms: float = 0.0

    @property
    def rules_derived(self) -> int:
        return sum(len(rules) for rules in self.rules.values())


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def build_registry(config_file: ConfigFile) -> RuleRegistry:
    """Create a registry whose defaults and per-entity options come from *config_file*."""
    global_config = config_file.global_config()

    def defaults() -> Config:
        return global_config

    registry = RuleRegistry(defaults=defaults)
    for name, overrides in config_file.entities.items():
        registry.configure(name, overrides)
    return registry


def derive(
    schema_path: Path,
    *,
    config_path: Path | None = None,
    entity: str | None = None,
) -> DeriveResult:
    """Derive validation rules for the entities in *schema_path*.

    Parameters
    ----------
    schema_path:
        Schema snapshot YAML file.
    config_path:
        Optional options file.  When *None*, ``schemarules.yml`` next to the
        schema file is used if it exists.
    entity:
        Restrict the run to one entity name.

    Raises
    ------
    DeriveError
        When a file is missing or malformed, or *entity* is unknown.
    """
    start = time.monotonic()

    try:
        entities = load_schema(schema_path)
        if config_path is not None:
            config_file = load_config(config_path)
        else:
            config_file = find_config(schema_path.parent)
    except (OSError, yaml.YAMLError, ValueError) as exc:
        msg = f"Invalid input: {exc}"
        raise DeriveError(msg) from exc

    if entity is not None:
        entities = [e for e in entities if e.name == entity]
        if not entities:
            msg = f"Entity '{entity}' not found in {schema_path.name}"
            raise DeriveError(msg)

    registry = build_registry(config_file)
    result = DeriveResult(entities_scanned=len(entities))

    for meta in entities:
        label = meta.name or "(anonymous)"
        already = registry.is_loaded(meta)
        rules = registry.derive_rules(meta)
        if not registry.is_loaded(meta):
            result.skipped.append(label)
        elif already:
            # Subtype sharing its base's rules: reported under the base.
            continue
        else:
            result.rules[label] = rules

    result.elapsed_ms = (time.monotonic() - start) * 1000
    return result


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def format_json(result: DeriveResult) -> str:
    """Format a DeriveResult as structured JSON with ``entities`` and ``summary``."""
    output: dict[str, object] = {
        "entities": {
            name: [rule.to_dict() for rule in rules] for name, rules in result.rules.items()
        },
        "skipped": list(result.skipped),
        "summary": {
            "entities_scanned": result.entities_scanned,
            "rules_derived": result.rules_derived,
            "elapsed_ms": result.elapsed_ms,
        },
    }
    return json.dumps(output, indent=2)


def format_porcelain(result: DeriveResult) -> str:
    """One line per rule: ``entity:field:rule_type:macro``.

    Returns an empty string when no rules were derived.
    """
    lines: list[str] = []
    for name, rules in result.rules.items():
        for rule in rules:
            lines.append(f"{name}:{rule.field}:{rule.rule_type.value}:{rule.macro}")
    return "\n".join(lines)


def render_rules(result: DeriveResult, console: Console) -> None:
    """Render a DeriveResult with Rich: one table per entity, then a summary line."""
    from rich.table import Table

    for name, rules in result.rules.items():
        table = Table(title=name, title_justify="left", show_lines=False)
        table.add_column("field", style="cyan")
        table.add_column("rule")
        table.add_column("options", style="dim")
        for rule in rules:
            options = ", ".join(
                f"{key}={value!r}" for key, value in rule.options.items() if key != "condition"
            )
            table.add_row(rule.field, rule.rule_type.value, options)
        console.print(table)
        console.print()

    for name in result.skipped:
        console.print(f"[yellow]- {name}[/yellow] skipped")

    elapsed_s = result.elapsed_ms / 1000
    console.print(
        f"{result.rules_derived} rules derived "
        f"({result.entities_scanned} entities scanned, {elapsed_s:.1f}s)"
    )
