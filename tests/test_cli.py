"""Tests for the `schemarules` CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from click.testing import CliRunner

from schemarules import __version__
from schemarules.cli import main

if TYPE_CHECKING:
    from pathlib import Path


# ---------------------------------------------------------------------------
# schemarules derive
# ---------------------------------------------------------------------------


class TestDeriveCommand:
    def test_porcelain(self, schema_file: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["derive", str(schema_file), "--format", "porcelain"])
        assert result.exit_code == 0, result.output
        lines = result.output.strip().splitlines()
        assert len(lines) == 15
        assert "Article:title:length:validates_length_of" in lines
        assert "Review:news_article:uniqueness:validates_uniqueness_of" in lines

    def test_porcelain_when_piped(self, schema_file: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["derive", str(schema_file)])
        assert result.exit_code == 0, result.output
        assert "Review:author:presence:validates_presence_of" in result.output

    def test_json(self, schema_file: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(
            main, ["derive", str(schema_file), "--format", "json", "--entity", "Article"]
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert list(data["entities"]) == ["Article"]
        assert data["summary"]["rules_derived"] == 9

    def test_rich(self, schema_file: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["derive", str(schema_file), "--format", "rich"])
        assert result.exit_code == 0, result.output
        assert "15 rules derived" in result.output

    def test_config_option(self, schema_file: Path, tmp_path: Path) -> None:
        config = tmp_path / "options.yml"
        config.write_text("entities:\n  Article:\n    only: [title]\n")
        runner = CliRunner()
        result = runner.invoke(
            main,
            [
                "derive",
                str(schema_file),
                "--config",
                str(config),
                "--entity",
                "Article",
                "--format",
                "porcelain",
            ],
        )
        assert result.exit_code == 0, result.output
        assert result.output.strip().splitlines() == [
            "Article:title:length:validates_length_of",
            "Article:title:uniqueness:validates_uniqueness_of",
        ]

    def test_invalid_schema_exit_2(self, tmp_path: Path) -> None:
        schema = tmp_path / "schema.yml"
        schema.write_text("version: 3\nentities: []\n")
        runner = CliRunner()
        result = runner.invoke(main, ["derive", str(schema)])
        assert result.exit_code == 2
        assert "Error: Invalid input" in result.output

    def test_non_positive_limit_exit_2(self, tmp_path: Path) -> None:
        schema = tmp_path / "schema.yml"
        schema.write_text(
            "version: 1\n"
            "entities:\n"
            "  - name: Counter\n"
            "    columns:\n"
            "      - {name: hits, type: integer, limit: -2}\n"
        )
        runner = CliRunner()
        result = runner.invoke(main, ["derive", str(schema)])
        assert result.exit_code == 2
        assert "'limit' must be at least 1" in result.output
        assert result.exception is None or isinstance(result.exception, SystemExit)

    def test_unknown_entity_exit_2(self, schema_file: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["derive", str(schema_file), "--entity", "Comment"])
        assert result.exit_code == 2
        assert "Entity 'Comment' not found" in result.output

    def test_missing_schema_is_usage_error(self, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["derive", str(tmp_path / "nope.yml")])
        assert result.exit_code == 2

    def test_verbose(self, schema_file: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["--verbose", "derive", str(schema_file)])
        assert result.exit_code == 0, result.output


# ---------------------------------------------------------------------------
# schemarules config
# ---------------------------------------------------------------------------


class TestConfigCommand:
    def test_defaults_json(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["config", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["auto_create"] is True
        assert data["whitelist"] == ["created_at", "created_on", "updated_at", "updated_on"]
        assert data["except"] is None

    def test_entity_options(self, tmp_path: Path) -> None:
        config = tmp_path / "schemarules.yml"
        config.write_text(
            "schemarules:\n  auto_create: false\nentities:\n  Review:\n    except: [content]\n"
        )
        runner = CliRunner()
        result = runner.invoke(
            main, ["config", "--config", str(config), "--entity", "Review", "--json"]
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["auto_create"] is True
        assert data["except"] == ["content"]

    def test_global_options_apply_to_unconfigured_entity(self, tmp_path: Path) -> None:
        config = tmp_path / "schemarules.yml"
        config.write_text("schemarules:\n  auto_create: false\n")
        runner = CliRunner()
        result = runner.invoke(
            main, ["config", "--config", str(config), "--entity", "Article", "--json"]
        )
        assert json.loads(result.output)["auto_create"] is False

    def test_table(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["config"])
        assert result.exit_code == 0, result.output
        assert "Global options" in result.output
        assert "auto_create" in result.output

    def test_invalid_config_exit_2(self, tmp_path: Path) -> None:
        config = tmp_path / "schemarules.yml"
        config.write_text("schemarules:\n  auto_create: maybe\n")
        runner = CliRunner()
        result = runner.invoke(main, ["config", "--config", str(config)])
        assert result.exit_code == 2
        assert "Error:" in result.output


class TestVersion:
    def test_version_flag(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output
