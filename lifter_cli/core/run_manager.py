"""
The run-level orchestrator: resolves every selected item, feeds them through the
pipeline with a bounded worker pool and collects their outcomes.
"""

import asyncio
import json
import logging
import time
from pathlib import Path

from rich.markup import escape

from lifter_cli.cli.progress_manager import ProgressManager
from lifter_cli.exceptions import InvalidConfiguration, ItemError, RateLimited
from lifter_cli.media.downloader import Downloader
from lifter_cli.media.installer import Installer
from lifter_cli.models.item import Method, ResolvedItem
from lifter_cli.models.outcome import Failed, Outcome, VersionCheck
from lifter_cli.models.settings import RateLimitPolicy, RunSettings
from lifter_cli.models.stats import RunStats
from lifter_cli.storage.config_manager import ConfigStore
from lifter_cli.web.client import HttpClient

from .pipeline import ItemPipeline
from .resolver import resolve_item

log = logging.getLogger(__name__)

HISTORY_FILENAME = "run_history.jsonl"


def resolve_items(
    store: ConfigStore, names: list[str] | None = None
) -> list[ResolvedItem | Failed]:
    """
    Resolves the selected items, in configuration order.

    Items that cannot be resolved, and requested names that do not exist, are
    returned as ``Failed`` without any network access.
    """
    known = store.item_names()
    selected = list(dict.fromkeys(names)) if names else known

    templates = store.templates
    resolved: list[ResolvedItem | Failed] = []
    for name in selected:
        if name not in known:
            error = InvalidConfiguration(
                f"No item named '{name}' in '{store.config_file_path}'.", item=name
            )
            log.error(f"  [red]✗[/] {escape(str(error))}")
            resolved.append(Failed(name=name, error=error))
            continue
        try:
            resolved.append(resolve_item(store.declaration(name), templates))
        except InvalidConfiguration as e:
            log.error(f"  [red]✗[/] {escape(str(e))}")
            resolved.append(Failed(name=name, error=e))
    return resolved


class RunManager:
    """
    Orchestrates one run over the tracked items of a configuration store.

    Every item is processed independently; a failure is recorded as that item's
    outcome and the run continues. The only run-wide decision is what to do
    after the JSON API reports a rate limit, governed by ``on_rate_limit``.
    """

    def __init__(
        self,
        store: ConfigStore,
        settings: RunSettings,
        client: HttpClient,
        progress_manager: ProgressManager | None = None,
        downloader: Downloader | None = None,
        installer: Installer | None = None,
    ):
        self.store = store
        self.settings = settings
        self.client = client
        self.progress_manager = progress_manager
        self.stats = RunStats()
        self.pipeline = ItemPipeline(
            store,
            client,
            downloader or Downloader(client, max_attempts=settings.retries),
            installer or Installer(settings.output_dir),
            progress_manager,
        )
        self.semaphore = asyncio.Semaphore(settings.max_workers)
        self._rate_limited: RateLimited | None = None

    def resolve(self, names: list[str] | None = None) -> list[ResolvedItem | Failed]:
        return resolve_items(self.store, names)

    async def run(self, names: list[str] | None = None) -> list[Outcome]:
        """Processes all (or the named) items and returns one outcome per item."""
        entries = self.resolve(names)
        self.stats.items_total = len(entries)
        if not entries:
            log.info("No items configured. Nothing to do.")
            return []

        if self.progress_manager:
            self.progress_manager.initialize_session(len(entries))

        outcomes = await asyncio.gather(*(self._run_entry(entry) for entry in entries))
        for outcome in outcomes:
            self.stats.record(outcome)
        return list(outcomes)

    async def _run_entry(self, entry: ResolvedItem | Failed) -> Outcome:
        if isinstance(entry, Failed):
            if self.progress_manager:
                self.progress_manager.item_finished(entry)
            return entry

        async with self.semaphore:
            if skipped := self._skip_for_rate_limit(entry):
                if self.progress_manager:
                    self.progress_manager.item_finished(skipped)
                return skipped

            outcome = await self.pipeline.process(entry)
            if isinstance(outcome, Failed) and isinstance(outcome.error, RateLimited):
                self._note_rate_limit(outcome.error)
        return outcome

    def _skip_for_rate_limit(self, item: ResolvedItem) -> Failed | None:
        if (
            self._rate_limited is None
            or item.method is not Method.API_JSON
            or self.settings.on_rate_limit is not RateLimitPolicy.SKIP
        ):
            return None
        error = RateLimited(
            "Not attempted: the JSON API rate limit was reached earlier in this run.",
            item=item.name,
            status=self._rate_limited.status,
        )
        log.warning(f"  [yellow]⚠ {escape(str(error))}[/yellow]")
        return Failed(name=item.name, error=error)

    def _note_rate_limit(self, error: RateLimited) -> None:
        if self._rate_limited is not None:
            return
        self._rate_limited = error
        hint = (
            ""
            if self.client.has_token
            else f" Set ${self.settings.token_env} to raise the quota."
        )
        if self.settings.on_rate_limit is RateLimitPolicy.SKIP:
            log.warning(
                "[yellow]⚠ Rate limited by the JSON API; remaining api_json items "
                f"will be skipped.{hint}[/yellow]"
            )
        else:
            log.warning(f"[yellow]⚠ Rate limited by the JSON API.{hint}[/yellow]")

    async def check(self, names: list[str] | None = None) -> list[VersionCheck | Failed]:
        """Looks up the latest version of each selected item without installing."""
        entries = self.resolve(names)

        async def _check(entry: ResolvedItem | Failed) -> VersionCheck | Failed:
            if isinstance(entry, Failed):
                return entry
            async with self.semaphore:
                try:
                    return await self.pipeline.check(entry)
                except ItemError as e:
                    if e.item is None:
                        e.item = entry.name
                    log.error(f"  [red]✗[/] {escape(str(e))}")
                    return Failed(name=entry.name, error=e)
                except Exception as e:
                    error = ItemError(
                        f"Unexpected {type(e).__name__}: {e}", item=entry.name
                    )
                    error.__cause__ = e
                    log.error(f"  [red]✗[/] {escape(str(error))}", exc_info=True)
                    return Failed(name=entry.name, error=error)

        return list(await asyncio.gather(*(_check(entry) for entry in entries)))

    def save_run_history(self) -> None:
        """Appends the current run's stats to the history file."""
        if not self.settings.history:
            return
        history_file = Path(self.settings.config_path) / HISTORY_FILENAME
        try:
            with open(history_file, "a", encoding="utf-8") as f:
                run_data = {
                    "timestamp": int(time.time()),
                    "items_total": self.stats.items_total,
                    "items_installed": self.stats.items_installed,
                    "items_skipped": self.stats.items_skipped,
                    "items_failed": self.stats.items_failed,
                    "items_rate_limited": self.stats.items_rate_limited,
                    "total_size_downloaded": self.stats.total_size_downloaded,
                    "duration_seconds": round(self.stats.elapsed, 2),
                }
                json.dump(run_data, f)
                f.write("\n")
        except OSError as e:
            log.warning(f"[yellow]Could not save run history:[/] {e}")
