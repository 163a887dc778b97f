"""
Version comparison for opaque release identifiers.

Version strings are not assumed to be semantic versions: commit hashes, dates
and phrases such as "First release" all occur. Two versions are the same only
when their trimmed text is identical; any other difference counts as newer.
"""


def normalize_version(text: str | None) -> str:
    """Trims surrounding whitespace; ``None`` becomes the empty string."""
    return (text or "").strip()


def is_same_version(recorded: str | None, latest: str | None) -> bool:
    """True when a version has been recorded and equals the latest one."""
    recorded = normalize_version(recorded)
    return bool(recorded) and recorded == normalize_version(latest)


def needs_update(
    recorded: str | None, latest: str | None, installed_file_exists: bool = True
) -> bool:
    """
    Decides whether an item must be downloaded again.

    A changed version always triggers an update, including a remote downgrade.
    An unchanged version is still re-installed when the installed file has gone
    missing from the output directory.
    """
    if not is_same_version(recorded, latest):
        return True
    return not installed_file_exists
