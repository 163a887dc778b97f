"""
Manages loading of the INI configuration file and per-item version commits.

Layout of the file:

* ``[lifter]`` holds run settings.
* ``[template:<name>]`` sections hold reusable template fields.
* Every other section is a tracked item, named by its section.
"""

import asyncio
import configparser
import logging
import os
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from lifter_cli.exceptions import ConfigurationError, ConfigWriteError
from lifter_cli.models.item import ItemDeclaration, Template
from lifter_cli.models.settings import RunSettings
from lifter_cli.utils.formatting import item_tag

log = logging.getLogger(__name__)

SETTINGS_SECTION = "lifter"
TEMPLATE_PREFIX = "template:"

STARTER_TEMPLATES = {
    "github_api_latest": {
        "method": "api_json",
        "page_url": "https://api.github.com/repos/{project}/releases/latest",
        "anchor_tag": "$.assets[*].browser_download_url",
        "version_tag": "$.tag_name",
    },
    "github_release_latest": {
        "method": "html_scrape",
        "page_url": "https://github.com/{project}/releases/latest",
        "anchor_tag": "a[href*='/releases/download/']",
        "version_tag": "h1",
    },
}


def _new_parser() -> configparser.ConfigParser:
    # URLs and regexes contain '%', so interpolation stays off.
    return configparser.ConfigParser(interpolation=None)


class ConfigStore:
    """
    The durable configuration store for one run.

    Lifecycle: opened once per run, item versions committed one at a time,
    closed at run end. Each commit re-reads the file from disk and atomically
    replaces it with only that item's ``version`` changed, so a commit never
    loses another item's earlier commit.
    """

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = _new_parser()
        self._write_lock = threading.Lock()
        self._opened = False

    def __enter__(self) -> "ConfigStore":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def open(self) -> "ConfigStore":
        """
        Reads the whole configuration file.

        Raises:
            ConfigurationError: If the file is missing or cannot be parsed.
        """
        if not self.config_file_path.is_file():
            raise ConfigurationError(
                f"Configuration file not found at '{self.config_file_path}'. "
                "Please run 'lifter init' first."
            )

        parser = _new_parser()
        try:
            with open(self.config_file_path, encoding="utf-8") as f:
                parser.read_file(f)
        except (configparser.Error, OSError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e

        if parser.defaults():
            raise ConfigurationError(
                f"[{parser.default_section}] is not supported in '{self.config_file_path}': "
                "its keys would be copied into every item and template. Move them "
                "into a [template:<name>] section instead."
            )

        self._parser = parser
        self._opened = True
        log.debug(
            f"Loaded {len(self.item_names())} items and "
            f"{len(self.templates)} templates from '{self.config_file_path}'"
        )
        return self

    def close(self) -> None:
        self._opened = False

    def _require_open(self) -> None:
        if not self._opened:
            raise ConfigurationError("The configuration store has not been opened.")

    @property
    def templates(self) -> dict[str, Template]:
        """All ``[template:<name>]`` sections, keyed by template name."""
        self._require_open()
        return {
            section[len(TEMPLATE_PREFIX) :].strip(): Template(
                name=section[len(TEMPLATE_PREFIX) :].strip(),
                fields=dict(self._parser[section]),
            )
            for section in self._parser.sections()
            if section.startswith(TEMPLATE_PREFIX)
        }

    def item_names(self) -> list[str]:
        """Item section names, in file order."""
        self._require_open()
        return [
            section
            for section in self._parser.sections()
            if section != SETTINGS_SECTION and not section.startswith(TEMPLATE_PREFIX)
        ]

    def declaration(self, name: str) -> ItemDeclaration:
        """The raw declared fields of one item section."""
        self._require_open()
        if name not in self.item_names():
            raise KeyError(name)
        return ItemDeclaration(name=name, fields=dict(self._parser[name]))

    def declarations(self) -> list[ItemDeclaration]:
        return [self.declaration(name) for name in self.item_names()]

    def settings_as_dict(self) -> dict[str, Any]:
        """Reads the settings section into a dictionary of raw values."""
        self._require_open()
        if not self._parser.has_section(SETTINGS_SECTION):
            return {}
        section = self._parser[SETTINGS_SECTION]
        unknown = set(section) - RunSettings.get_ini_keys()
        if unknown:
            log.warning(
                f"[yellow]Ignoring unknown settings in {item_tag(SETTINGS_SECTION)}: "
                f"{', '.join(sorted(unknown))}[/yellow]"
            )
        return {key: section[key] for key in section if key not in unknown}

    def load_settings(self, cli_options: dict[str, Any] | None = None) -> RunSettings:
        """
        Builds the validated run settings, applying CLI overrides.

        Raises:
            ConfigurationError: If validation fails.
        """
        settings = self.settings_as_dict()
        if cli_options:
            settings.update(cli_options)
        try:
            return RunSettings(
                **settings, config_path=str(self.config_file_path.parent)
            )
        except ValidationError as e:
            raise ConfigurationError(f"Settings validation failed:\n{e}") from e

    def recorded_version(self, name: str) -> str | None:
        self._require_open()
        return self._parser.get(name, "version", fallback=None)

    def commit_version(self, name: str, version: str) -> None:
        """
        Persists ``version`` as the recorded version of one item.

        The file is re-read under a lock, only ``[name] version`` is changed and
        the result replaces the file atomically.

        Raises:
            ConfigWriteError: If the file cannot be read back or written.
        """
        with self._write_lock:
            fresh = _new_parser()
            try:
                with open(self.config_file_path, encoding="utf-8") as f:
                    fresh.read_file(f)
            except (configparser.Error, OSError, UnicodeDecodeError) as e:
                raise ConfigWriteError(
                    f"Could not re-read configuration before commit: {e}", item=name
                ) from e

            if not fresh.has_section(name):
                raise ConfigWriteError(
                    f"Section [{name}] no longer exists in "
                    f"'{self.config_file_path}'.",
                    item=name,
                )
            fresh.set(name, "version", version)

            try:
                self._atomic_write(fresh)
            except OSError as e:
                raise ConfigWriteError(
                    f"Could not save configuration file: {e}", item=name
                ) from e

            if self._parser.has_section(name):
                self._parser.set(name, "version", version)
            log.debug(f"{item_tag(name)} Updated config file.")

    async def commit_version_async(self, name: str, version: str) -> None:
        """Runs ``commit_version`` off the event loop."""
        await asyncio.to_thread(self.commit_version, name, version)

    def _atomic_write(self, parser: configparser.ConfigParser) -> None:
        directory = self.config_file_path.parent
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.config_file_path.name}.", suffix=".tmp", dir=str(directory)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
                parser.write(f)
                f.flush()
                os.fsync(f.fileno())
            if self.config_file_path.exists():
                shutil.copymode(self.config_file_path, tmp_name)
            os.replace(tmp_name, self.config_file_path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file with starter templates.

        Args:
            settings: Values for the ``[lifter]`` settings section.

        Raises:
            ConfigurationError: If the file cannot be written.
        """
        config = _new_parser()
        config[SETTINGS_SECTION] = {}

        defaults = RunSettings.model_construct()
        for key in sorted(RunSettings.get_ini_keys()):
            value = settings.get(key, getattr(defaults, key, None))
            if isinstance(value, bool):
                config[SETTINGS_SECTION][key] = "true" if value else "false"
            elif hasattr(value, "value"):
                config[SETTINGS_SECTION][key] = str(value.value)
            elif value is not None:
                config[SETTINGS_SECTION][key] = str(value)

        for name, fields in STARTER_TEMPLATES.items():
            config[f"{TEMPLATE_PREFIX}{name}"] = fields

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e
