"""schemarules CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from schemarules import __version__


@click.group()
@click.version_option(version=__version__, prog_name="schemarules")
@click.option("--verbose", "-v", is_flag=True, help="Log every accepted rule.")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool) -> None:
    """schemarules - validation rules derived from database constraints."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


@main.command()
@click.argument(
    "schema",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Options file (default: schemarules.yml next to SCHEMA).",
)
@click.option("--entity", default=None, help="Only derive rules for this entity.")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["rich", "json", "porcelain"]),
    default=None,
    help="Output format (default: rich if TTY, porcelain if piped).",
)
def derive(
    *,
    schema: Path,
    config_path: Path | None,
    entity: str | None,
    fmt: str | None,
) -> None:
    """Derive validation rules from a schema snapshot.

    Exit codes: 0 = success, 2 = invalid schema or options.
    """
    from schemarules.runner import DeriveError, format_json, format_porcelain, render_rules
    from schemarules.runner import derive as run_derive

    # Resolve output format: explicit flag > TTY detection.
    if fmt is None:
        fmt = "rich" if sys.stdout.isatty() else "porcelain"

    try:
        result = run_derive(schema, config_path=config_path, entity=entity)
    except DeriveError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    if fmt == "rich":
        from rich.console import Console

        render_rules(result, Console())
        return

    output = format_json(result) if fmt == "json" else format_porcelain(result)
    if output:
        click.echo(output)


@main.command("config")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Options file to apply on top of the built-in defaults.",
)
@click.option("--entity", default=None, help="Show the options effective for this entity.")
@click.option("--json", "as_json", is_flag=True, help="JSON output.")
def config_cmd(*, config_path: Path | None, entity: str | None, as_json: bool) -> None:
    """Show the effective rule-generation options."""
    import yaml

    from schemarules.config import ConfigFile, load_config
    from schemarules.runner import build_registry

    config_file = ConfigFile()
    if config_path is not None:
        try:
            config_file = load_config(config_path)
        except (OSError, yaml.YAMLError, ValueError) as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(2)

    registry = build_registry(config_file)
    config = registry.config_for(entity)
    data = config.to_dict()

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    from rich.console import Console
    from rich.table import Table

    table = Table(title=f"Options for {entity}" if entity else "Global options", box=None)
    table.add_column("option", style="cyan")
    table.add_column("value")
    for key, value in data.items():
        shown = "-" if value is None else (", ".join(value) if isinstance(value, list) else value)
        table.add_row(key, str(shown))
    Console().print(table)
