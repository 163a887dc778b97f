"""
Picks the winning asset candidate and the version text from locator results.

Asset selection and version selection follow different rules:
several surviving asset candidates are a configuration defect and are
reported, while repeated version text takes the first occurrence.
"""

import logging
from dataclasses import dataclass

from lifter_cli.exceptions import AmbiguousMatch, NoMatchFound
from lifter_cli.models.item import ResolvedItem
from lifter_cli.utils.formatting import item_tag

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    """A provisional (text, url) match produced by an asset locator."""

    text: str
    url: str


def filter_candidates(
    item: ResolvedItem, candidates: list[Candidate]
) -> list[Candidate]:
    """Keeps only the candidates whose text fully matches the anchor pattern."""
    pattern = item.anchor_regex
    if pattern is None:
        return list(candidates)

    survivors = []
    for candidate in candidates:
        log.debug(f"{item_tag(item.name)} Possible download url: {candidate.url}")
        if pattern.fullmatch(candidate.text):
            log.debug(f"{item_tag(item.name)} Found a match for anchor_text: {candidate.text}")
            survivors.append(candidate)
    return survivors


def select_candidate(item: ResolvedItem, candidates: list[Candidate]) -> Candidate:
    """
    Returns the single candidate that survives the anchor filter.

    Raises:
        NoMatchFound: If no candidate survives.
        AmbiguousMatch: If more than one candidate survives.
    """
    survivors = filter_candidates(item, candidates)

    if not survivors:
        detail = (
            f" matching anchor_text '{item.anchor_text_pattern}'"
            if item.anchor_text_pattern
            else ""
        )
        raise NoMatchFound(
            f"Asset locator '{item.query_selector}' found {len(candidates)} "
            f"link(s) but none{detail}.",
            item=item.name,
        )

    if len(survivors) > 1:
        listing = ", ".join(c.text or c.url for c in survivors[:5])
        more = f" (+{len(survivors) - 5} more)" if len(survivors) > 5 else ""
        raise AmbiguousMatch(
            f"{len(survivors)} assets match; narrow 'anchor_text' so exactly one "
            f"remains: {listing}{more}",
            item=item.name,
            candidates=survivors,
        )

    return survivors[0]


def select_version(item: ResolvedItem, texts: list[str]) -> str:
    """
    Returns the first non-empty version text.

    Raises:
        NoMatchFound: If the version locator matched nothing usable.
    """
    for text in texts:
        version = text.strip()
        if version:
            if len(texts) > 1:
                log.debug(
                    f"{item_tag(item.name)} Version locator matched {len(texts)} times; "
                    "using the first."
                )
            log.info(f"{item_tag(item.name)} Found a match on versions tag: {version}")
            return version

    raise NoMatchFound(
        f"Version locator '{item.version_locator}' matched no version text.",
        item=item.name,
    )
