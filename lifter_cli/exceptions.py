"""
Defines custom exceptions for the application to allow for more specific error handling.

Every error raised while processing a tracked item is scoped to that item: the
run manager converts it into a ``Failed`` outcome and moves on to the next item.
"""


class LifterError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(LifterError):
    """Raised when the configuration store itself cannot be read or is invalid."""


class ItemError(LifterError):
    """Base class for errors that belong to a single tracked item."""

    def __init__(self, message: str, item: str | None = None):
        super().__init__(message)
        self.item = item

    def __str__(self) -> str:
        message = super().__str__()
        return f"[{self.item}] {message}" if self.item else message


class InvalidConfiguration(ItemError):
    """Raised for an unresolved placeholder, a missing field or a bad locator."""


class FetchFailed(ItemError):
    """Raised when a page, API document or asset cannot be retrieved."""

    def __init__(self, message: str, item: str | None = None, status: int | None = None):
        super().__init__(message, item)
        self.status = status


class RateLimited(FetchFailed):
    """Raised when the JSON API refuses a request because of its quota (403/429)."""


class NoMatchFound(ItemError):
    """Raised when the asset or version locator matches nothing."""


class AmbiguousMatch(ItemError):
    """Raised when more than one asset candidate survives the anchor filter."""

    def __init__(self, message: str, item: str | None = None, candidates=None):
        super().__init__(message, item)
        self.candidates = list(candidates or [])


class ExtractionError(ItemError):
    """Base class for errors raised while unpacking a downloaded asset."""


class UnsupportedArchiveFormat(ExtractionError):
    """Raised when the asset is a container format that cannot be unpacked."""


class ExtractionMissingEntry(ExtractionError):
    """Raised when the target entry is not present inside the archive."""


class CorruptArchive(ExtractionError):
    """Raised when an archive cannot be read (truncated or not what its suffix says)."""


class FileSystemError(ItemError):
    """Raised when the installed file cannot be written into the output directory."""


class ConfigWriteError(ItemError):
    """Raised when the new version cannot be committed to the configuration store."""
