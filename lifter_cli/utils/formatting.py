"""
Helper functions for formatting data into human-readable strings.
"""

from rich.markup import escape


def format_size(bytes_size: int) -> str:
    """Formats bytes into a human-readable size string (e.g., '14.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while bytes_size >= 1024 and i < len(units) - 1:
        bytes_size /= 1024
        i += 1
    return f"{bytes_size:.1f} {units[i]}"


def format_duration(seconds: float) -> str:
    """
    Formats a duration in seconds into a human-readable string (e.g., '2m 12s').
    """
    s = int(seconds)
    hours, remainder = divmod(s, 3600)
    minutes, secs = divmod(remainder, 60)
    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def format_version(version: str | None) -> str:
    """Displays a missing recorded version as a dash."""
    return version if version else "-"


def item_tag(name: str) -> str:
    """The ``[name]`` prefix of item log lines, escaped for Rich markup."""
    return escape(f"[{name}]")
