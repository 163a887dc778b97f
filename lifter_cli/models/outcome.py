"""
Per-item results of a pipeline run.

``Outcome`` is a closed union: every call to ``ItemPipeline.process`` returns
exactly one of ``Skipped``, ``Installed`` or ``Failed``.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from lifter_cli.exceptions import LifterError


@dataclass(frozen=True)
class Skipped:
    """The remote version equals the recorded one; nothing was downloaded or written."""

    name: str
    version: str
    reason: str = "version unchanged"


@dataclass(frozen=True)
class Installed:
    """A new version was downloaded, installed and recorded."""

    name: str
    version: str
    path: Path
    previous_version: str | None = None
    size: int = 0


@dataclass(frozen=True)
class Failed:
    """The pipeline stopped for this item; its recorded version is untouched."""

    name: str
    error: LifterError = field(compare=False)

    @property
    def reason(self) -> str:
        return str(self.error)

    @property
    def error_type(self) -> str:
        return type(self.error).__name__


Outcome = Union[Skipped, Installed, Failed]


@dataclass(frozen=True)
class VersionCheck:
    """Result of a check-only run: what is recorded versus what is published."""

    name: str
    recorded: str | None
    latest: str
    asset_url: str
    update_available: bool
