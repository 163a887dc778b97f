"""Tests for the Typer command-line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from lifter_cli import __version__
from lifter_cli.cli.app import app
from lifter_cli.core.run_manager import HISTORY_FILENAME

runner = CliRunner()

VALID = """
[lifter]
output_dir = {output_dir}

[ripgrep]
page_url = https://example.com/BurntSushi/ripgrep/releases
anchor_tag = a.asset
version_tag = h1
target_filename_to_extract_from_archive = rg
version = 14.0.0
"""

INVALID_ITEM = """
[broken]
template = nowhere
page_url = https://example.com
anchor_tag = a
version_tag = h1
"""


@pytest.fixture
def valid_config(write_config, output_dir: Path) -> Path:
    return write_config(VALID.format(output_dir=output_dir))


def _invoke(config: Path, *args: str, input: str | None = None):
    return runner.invoke(app, ["--config", str(config), *args], input=input)


class TestCli:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_init_writes_starter_config(self, tmp_path: Path) -> None:
        config = tmp_path / "conf" / "lifter.ini"
        result = _invoke(config, "init", "--force", "-o", str(tmp_path / "bin"))

        assert result.exit_code == 0
        text = config.read_text(encoding="utf-8")
        assert "[template:github_api_latest]" in text
        assert f"output_dir = {tmp_path / 'bin'}" in text

    def test_init_keeps_existing_file_when_declined(self, valid_config: Path) -> None:
        before = valid_config.read_text(encoding="utf-8")
        result = _invoke(valid_config, "init", input="n\n")

        assert result.exit_code == 1
        assert valid_config.read_text(encoding="utf-8") == before

    def test_list(self, valid_config: Path) -> None:
        result = _invoke(valid_config, "list")
        assert result.exit_code == 0
        assert "ripgrep" in result.output
        assert "14.0.0" in result.output

    def test_validate_ok(self, valid_config: Path) -> None:
        result = _invoke(valid_config, "validate")
        assert result.exit_code == 0
        assert "valid" in result.output

    def test_validate_reports_bad_items(self, write_config) -> None:
        result = _invoke(write_config(INVALID_ITEM), "validate")
        assert result.exit_code == 1
        assert "failed to resolve" in result.output

    def test_validate_missing_config(self, tmp_path: Path) -> None:
        result = _invoke(tmp_path / "missing.ini", "validate")
        assert result.exit_code == 1
        assert "Configuration is invalid" in result.output

    def test_export_schema(self, tmp_path: Path) -> None:
        schema_path = tmp_path / "schema" / "item.json"
        result = _invoke(tmp_path / "unused.ini", "validate", "--export-schema", str(schema_path))

        assert result.exit_code == 0
        schema = json.loads(schema_path.read_text(encoding="utf-8"))
        assert schema["title"] == "Lifter Item"
        assert "page_url" in schema["required"]

    def test_run_unknown_item_fails_without_network(
        self, valid_config: Path, tmp_path: Path
    ) -> None:
        result = _invoke(valid_config, "run", "--no-progress", "nope")

        assert result.exit_code == 1
        assert "nope" in result.output
        history = (tmp_path / HISTORY_FILENAME).read_text(encoding="utf-8")
        assert json.loads(history.splitlines()[-1])["items_failed"] == 1
