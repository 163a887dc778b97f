"""Fixtures shared across the lifter test-suite."""

from __future__ import annotations

import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    path = tmp_path / "bin"
    path.mkdir()
    return path


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[[str], Path]:
    """Writes an INI document (dedented) to ``tmp_path/lifter.ini``."""

    def _write(content: str) -> Path:
        path = tmp_path / "lifter.ini"
        path.write_text(textwrap.dedent(content).lstrip(), encoding="utf-8")
        return path

    return _write
