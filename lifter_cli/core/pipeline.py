"""
Handles the processing of a single tracked item, from release lookup to the
recorded version.
"""

import asyncio
import logging
import os
from pathlib import Path

from rich.markup import escape

from lifter_cli.cli.progress_manager import ProgressManager
from lifter_cli.exceptions import FileSystemError, ItemError
from lifter_cli.media.archives import detect_format
from lifter_cli.media.downloader import Downloader
from lifter_cli.media.installer import Installer
from lifter_cli.models.item import Method, ResolvedItem
from lifter_cli.models.outcome import Failed, Installed, Outcome, Skipped, VersionCheck
from lifter_cli.storage.config_manager import ConfigStore
from lifter_cli.utils.formatting import item_tag
from lifter_cli.utils.path import create_dir, partial_download_path, url_basename
from lifter_cli.web.client import HttpClient
from lifter_cli.web.sources import ReleaseSource, source_for

from .matcher import Candidate, select_candidate, select_version
from .versions import is_same_version, needs_update

log = logging.getLogger(__name__)


class ItemPipeline:
    """
    Runs fetch, match, compare, download, install and commit for one item.

    The pipeline only reads the item it is given and only writes that item's
    installed file and version field, so several items can run concurrently.
    """

    def __init__(
        self,
        store: ConfigStore,
        client: HttpClient,
        downloader: Downloader,
        installer: Installer,
        progress_manager: ProgressManager | None = None,
    ):
        self.store = store
        self.client = client
        self.downloader = downloader
        self.installer = installer
        self.progress_manager = progress_manager
        self._sources: dict[Method, ReleaseSource] = {}

    def _source(self, method: Method) -> ReleaseSource:
        if method not in self._sources:
            self._sources[method] = source_for(method, self.client)
        return self._sources[method]

    def _recorded_version(self, item: ResolvedItem) -> str | None:
        # The store, not the resolved snapshot, so commits earlier in the run count.
        return self.store.recorded_version(item.name)

    async def locate(self, item: ResolvedItem) -> tuple[Candidate, str]:
        """
        Fetches the item's release data and returns the winning asset and version.

        Raises:
            FetchFailed, RateLimited, NoMatchFound, AmbiguousMatch,
            InvalidConfiguration: As raised by the source and matcher.
        """
        source = self._source(item.method)
        log.debug(f"{item_tag(item.name)} Processing: {item.page_url}")
        result = await source.fetch(item)

        log.debug(f"{item_tag(item.name)} Looking for matches...")
        asset = select_candidate(item, source.candidates(item, result))
        version = select_version(item, source.version_texts(item, result))
        return asset, version

    async def check(self, item: ResolvedItem) -> VersionCheck:
        """Looks up the latest version without downloading anything."""
        asset, version = await self.locate(item)
        recorded = self._recorded_version(item)
        return VersionCheck(
            name=item.name,
            recorded=recorded,
            latest=version,
            asset_url=asset.url,
            update_available=needs_update(
                recorded, version, self.installer.is_installed(item)
            ),
        )

    async def process(self, item: ResolvedItem) -> Outcome:
        """
        Processes one item and reports its outcome. Never raises: every error is
        returned as ``Failed`` so other items are unaffected.
        """
        if self.progress_manager:
            self.progress_manager.item_started(item.name)
        try:
            outcome = await self._process(item)
        except ItemError as e:
            if e.item is None:
                e.item = item.name
            log.error(f"  [red]✗ Failed:[/] {escape(str(e))}")
            outcome = Failed(name=item.name, error=e)
        except Exception as e:
            error = ItemError(f"Unexpected {type(e).__name__}: {e}", item=item.name)
            error.__cause__ = e
            log.error(
                f"  [red]✗ Failed:[/] {escape(str(error))}",
                exc_info=log.getEffectiveLevel() == logging.DEBUG,
            )
            outcome = Failed(name=item.name, error=error)

        if self.progress_manager:
            self.progress_manager.item_finished(outcome)
        return outcome

    async def _process(self, item: ResolvedItem) -> Outcome:
        recorded = self._recorded_version(item)
        asset, version = await self.locate(item)

        installed = self.installer.is_installed(item)
        if not needs_update(recorded, version, installed):
            log.info(
                f"{item_tag(item.name)} Found version is not newer: {version}; Skipping."
            )
            return Skipped(name=item.name, version=version)

        if is_same_version(recorded, version):
            log.info(
                f"{item_tag(item.name)} Version {version} is recorded but "
                f"'{item.desired_filename}' is missing; reinstalling."
            )
        else:
            log.info(f"{item_tag(item.name)} Downloading version {version}")

        path, size = await self._download_and_install(item, asset)

        # Only reached after the file is in place; a failure here leaves the
        # old version recorded so the next run retries.
        await self.store.commit_version_async(item.name, version)
        log.info(f"{item_tag(item.name)} Downloaded new version: {version}")

        return Installed(
            name=item.name,
            version=version,
            path=path,
            previous_version=recorded,
            size=size,
        )

    async def _download_and_install(
        self, item: ResolvedItem, asset: Candidate
    ) -> tuple[Path, int]:
        asset_name = url_basename(asset.url) or item.target_entry_name
        # Refuse containers we cannot unpack before spending a download on them.
        detect_format(asset_name)

        output_dir = self.installer.output_dir
        try:
            create_dir(output_dir)
        except OSError as e:
            raise FileSystemError(
                f"Could not create output directory '{output_dir}': {e}",
                item=item.name,
            ) from e

        partial_path = partial_download_path(output_dir, item.desired_filename)
        task_id = None
        if self.progress_manager:
            task_id = self.progress_manager.add_download_task(item.name, asset_name)

        def on_progress(completed: int, total: int) -> None:
            if self.progress_manager:
                self.progress_manager.update_task_progress(task_id, completed, total)

        success = False
        try:
            log.debug(f"{item_tag(item.name)} Fetching asset {asset.url}")
            size = await self.downloader.download_file(
                asset.url, partial_path, on_progress=on_progress
            )
            path = await asyncio.to_thread(
                self.installer.install, item, asset_name, partial_path
            )
            success = True
            return path, size
        finally:
            if self.progress_manager:
                self.progress_manager.remove_task(task_id, success=success)
            if partial_path.exists():
                try:
                    os.remove(partial_path)
                except OSError as e:
                    log.debug(f"{item_tag(item.name)} Could not remove '{partial_path}': {e}")
