"""
Turns a downloaded asset into the installed executable.

The installer detects the asset's container format, pulls the target entry out
of it when it is an archive, and places the bytes at
``output_dir/desired_filename`` with an atomic replace.
"""

import logging
import os
import tempfile
from pathlib import Path

from lifter_cli.exceptions import (
    ExtractionError,
    ExtractionMissingEntry,
    FileSystemError,
)
from lifter_cli.models.item import ResolvedItem
from lifter_cli.utils.formatting import item_tag
from lifter_cli.utils.path import create_dir, entry_basename

from .archives import (
    ArchiveFormat,
    decompress_single,
    detect_format,
    extract_entry,
    list_entries,
)

log = logging.getLogger(__name__)

EXECUTABLE_MODE = 0o755
REGULAR_MODE = 0o644


class Installer:
    """Extracts and atomically installs executables into an output directory."""

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir

    def target_path(self, item: ResolvedItem) -> Path:
        return self.output_dir / item.desired_filename

    def is_installed(self, item: ResolvedItem) -> bool:
        return self.target_path(item).is_file()

    def payload(self, item: ResolvedItem, asset_name: str, data: bytes) -> bytes:
        """
        Returns the executable bytes contained in a downloaded asset.

        Raises:
            UnsupportedArchiveFormat: If the asset is a container we cannot unpack.
            ExtractionMissingEntry: If the archive has no entry with the target name.
            CorruptArchive: If the archive cannot be read.
        """
        try:
            archive_format = detect_format(asset_name)
            log.debug(f"{item_tag(item.name)} Detected format '{archive_format.value}'")

            if archive_format is ArchiveFormat.RAW:
                return data
            if archive_format.is_single_file:
                # A bare .gz/.xz/.bz2 holds exactly one file: no entry lookup.
                return decompress_single(data, archive_format)

            entries = list_entries(data, archive_format)
            for entry in entries:
                if entry_basename(entry) == item.target_entry_name:
                    log.debug(f"{item_tag(item.name)} {archive_format.value}, Got a match: {entry}")
                    return extract_entry(data, archive_format, entry)
        except ExtractionError as e:
            if e.item is None:
                e.item = item.name
            raise

        listing = ", ".join(entry_basename(e) for e in entries[:10])
        raise ExtractionMissingEntry(
            f"Failed to find file '{item.target_entry_name}' inside archive "
            f"(found {len(entries)} entries: {listing}"
            f"{', ...' if len(entries) > 10 else ''})",
            item=item.name,
        )

    def install(self, item: ResolvedItem, asset_name: str, asset_path: Path) -> Path:
        """
        Installs the executable contained in the downloaded asset file.

        The bytes are written to a temporary file in the output directory, made
        executable, then renamed over the target, so an interrupted install never
        leaves a half-written executable behind.

        Raises:
            ExtractionError: If the executable cannot be taken from the asset.
            FileSystemError: If the output directory cannot be written.
        """
        try:
            data = asset_path.read_bytes()
        except OSError as e:
            raise FileSystemError(
                f"Could not read downloaded asset '{asset_path}': {e}", item=item.name
            ) from e

        content = self.payload(item, asset_name, data)
        target = self.target_path(item)
        self._atomic_write(item, target, content)
        log.info(f"{item_tag(item.name)} Saving {asset_name} to {target}")
        return target

    def _atomic_write(self, item: ResolvedItem, target: Path, content: bytes) -> None:
        tmp_path = None
        try:
            create_dir(target.parent)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
            )
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "wb") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, self._mode_for(target))
            os.replace(tmp_path, target)
            tmp_path = None
        except OSError as e:
            raise FileSystemError(
                f"Could not write '{target}': {e}", item=item.name
            ) from e
        finally:
            if tmp_path is not None and tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError as e:
                    log.debug(f"{item_tag(item.name)} Could not remove '{tmp_path}': {e}")

    @staticmethod
    def _mode_for(target: Path) -> int:
        """Execute bits on POSIX, except for Windows executables."""
        if os.name == "nt" or target.suffix.lower() == ".exe":
            return REGULAR_MODE
        return EXECUTABLE_MODE
