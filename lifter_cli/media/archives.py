"""
Container format detection and archive introspection primitives.

The installer only needs two operations from an archive: list its regular file
entries and read one entry's bytes. Both work on in-memory asset bytes.
"""

import bz2
import gzip
import io
import logging
import lzma
import tarfile
import zipfile
import zlib
from enum import Enum
from urllib.parse import unquote, urlsplit

from lifter_cli.exceptions import CorruptArchive, UnsupportedArchiveFormat

log = logging.getLogger(__name__)


class ArchiveFormat(Enum):
    """Container formats recognized from an asset's filename suffix."""

    TAR_GZ = "tar.gz"
    TAR_XZ = "tar.xz"
    TAR_BZ2 = "tar.bz2"
    TAR = "tar"
    ZIP = "zip"
    GZIP = "gz"
    XZ = "xz"
    BZIP2 = "bz2"
    RAW = "raw"

    @property
    def is_tar(self) -> bool:
        return self in _TAR_MODES

    @property
    def is_single_file(self) -> bool:
        return self in _SINGLE_FILE_DECOMPRESSORS


_TAR_MODES = {
    ArchiveFormat.TAR_GZ: "r:gz",
    ArchiveFormat.TAR_XZ: "r:xz",
    ArchiveFormat.TAR_BZ2: "r:bz2",
    ArchiveFormat.TAR: "r:",
}

_SINGLE_FILE_DECOMPRESSORS = {
    ArchiveFormat.GZIP: gzip.decompress,
    ArchiveFormat.XZ: lzma.decompress,
    ArchiveFormat.BZIP2: bz2.decompress,
}

# Ordered longest first so that ".tar.gz" wins over ".gz".
_SUFFIXES = sorted(
    [
        (".tar.gz", ArchiveFormat.TAR_GZ),
        (".tgz", ArchiveFormat.TAR_GZ),
        (".tar.xz", ArchiveFormat.TAR_XZ),
        (".txz", ArchiveFormat.TAR_XZ),
        (".tar.bz2", ArchiveFormat.TAR_BZ2),
        (".tbz2", ArchiveFormat.TAR_BZ2),
        (".tbz", ArchiveFormat.TAR_BZ2),
        (".tar", ArchiveFormat.TAR),
        (".zip", ArchiveFormat.ZIP),
        (".gz", ArchiveFormat.GZIP),
        (".xz", ArchiveFormat.XZ),
        (".bz2", ArchiveFormat.BZIP2),
    ],
    key=lambda pair: len(pair[0]),
    reverse=True,
)

# Containers we recognize but cannot unpack into a single executable.
UNSUPPORTED_SUFFIXES = (
    ".7z",
    ".rar",
    ".dmg",
    ".pkg",
    ".msi",
    ".deb",
    ".rpm",
)

_READ_ERRORS = (
    tarfile.TarError,
    zipfile.BadZipFile,
    zlib.error,
    lzma.LZMAError,
    EOFError,
    OSError,
)


def detect_format(name_or_url: str) -> ArchiveFormat:
    """
    Detects the container format from a filename or URL suffix.

    Matching is case-insensitive and ignores any query string. Names without a
    recognized archive suffix are treated as the executable itself.

    Raises:
        UnsupportedArchiveFormat: For known containers that cannot be unpacked.
    """
    path = unquote(urlsplit(name_or_url).path) if "://" in name_or_url else name_or_url
    lowered = path.lower()

    for suffix, archive_format in _SUFFIXES:
        if lowered.endswith(suffix):
            return archive_format

    if lowered.endswith(UNSUPPORTED_SUFFIXES):
        raise UnsupportedArchiveFormat(
            f"'{path.rsplit('/', 1)[-1]}' is a container format that cannot be "
            "unpacked. Pick a .tar.gz, .tar.xz, .zip or plain binary asset instead."
        )

    return ArchiveFormat.RAW


def list_entries(data: bytes, archive_format: ArchiveFormat) -> list[str]:
    """
    Lists the names of the regular files inside an archive, in archive order.

    Raises:
        CorruptArchive: If the bytes cannot be read as the given format.
    """
    try:
        if archive_format.is_tar:
            with tarfile.open(
                fileobj=io.BytesIO(data), mode=_TAR_MODES[archive_format]
            ) as tar:
                return [member.name for member in tar.getmembers() if member.isfile()]
        if archive_format is ArchiveFormat.ZIP:
            with zipfile.ZipFile(io.BytesIO(data)) as zf:
                return [info.filename for info in zf.infolist() if not info.is_dir()]
    except _READ_ERRORS as e:
        raise CorruptArchive(
            f"Could not read {archive_format.value} archive: {e}"
        ) from e
    raise ValueError(f"{archive_format.value} is not a multi-entry archive format")


def extract_entry(data: bytes, archive_format: ArchiveFormat, name: str) -> bytes:
    """
    Reads one entry's bytes from an archive.

    Raises:
        CorruptArchive: If the archive or the entry cannot be read.
        KeyError: If no entry has exactly this name.
    """
    try:
        if archive_format.is_tar:
            with tarfile.open(
                fileobj=io.BytesIO(data), mode=_TAR_MODES[archive_format]
            ) as tar:
                member = tar.getmember(name)
                extracted = tar.extractfile(member)
                if extracted is None:
                    raise KeyError(name)
                with extracted:
                    return extracted.read()
        if archive_format is ArchiveFormat.ZIP:
            with zipfile.ZipFile(io.BytesIO(data)) as zf:
                return zf.read(name)
    except _READ_ERRORS as e:
        raise CorruptArchive(
            f"Could not extract '{name}' from {archive_format.value} archive: {e}"
        ) from e
    raise ValueError(f"{archive_format.value} is not a multi-entry archive format")


def decompress_single(data: bytes, archive_format: ArchiveFormat) -> bytes:
    """
    Decompresses a single-file ``.gz`` / ``.xz`` / ``.bz2`` payload.

    Raises:
        CorruptArchive: If the payload cannot be decompressed.
    """
    decompress = _SINGLE_FILE_DECOMPRESSORS[archive_format]
    try:
        return decompress(data)
    except _READ_ERRORS as e:
        raise CorruptArchive(
            f"Could not decompress {archive_format.value} payload: {e}"
        ) from e
