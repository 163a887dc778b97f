"""
Utilities for handling output paths and asset URLs.
"""

from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlsplit

from pathvalidate import sanitize_filename


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def url_basename(url: str) -> str:
    """
    Returns the percent-decoded final path component of a URL, ignoring any
    query string or fragment.
    """
    path = unquote(urlsplit(url).path)
    return PurePosixPath(path).name


def entry_basename(entry_name: str) -> str:
    """Returns the final component of an archive member name."""
    return PurePosixPath(entry_name.replace("\\", "/")).name


def partial_download_path(output_dir: Path, filename: str) -> Path:
    """
    Path of the temporary file an asset is streamed into before installation.
    It is hidden and lives next to the final file so cleanup stays local.
    """
    return output_dir / f".{sanitize_filename(filename)}.download"
