"""Tests for candidate selection and version comparison."""

from __future__ import annotations

import pytest

from lifter_cli.core.matcher import Candidate, filter_candidates, select_candidate, select_version
from lifter_cli.core.versions import is_same_version, needs_update, normalize_version
from lifter_cli.exceptions import AmbiguousMatch, NoMatchFound

from tests.helpers import make_item

LINUX = Candidate(text="tool-2.0-linux.tar.gz", url="https://dl/tool-2.0-linux.tar.gz")
MACOS = Candidate(text="tool-2.0-macos.tar.gz", url="https://dl/tool-2.0-macos.tar.gz")
LINUX_ARM = Candidate(
    text="tool-2.0-linux-arm64.tar.gz", url="https://dl/tool-2.0-linux-arm64.tar.gz"
)


class TestSelectCandidate:
    def test_single_survivor_wins(self) -> None:
        item = make_item(anchor_text=r"tool-.*-linux\.tar\.gz")
        assert select_candidate(item, [MACOS, LINUX, LINUX_ARM]) == LINUX

    def test_pattern_must_match_whole_text(self) -> None:
        item = make_item(anchor_text="linux")
        with pytest.raises(NoMatchFound):
            select_candidate(item, [LINUX])

    def test_capture_groups_are_ignored(self) -> None:
        item = make_item(anchor_text=r"tool-([0-9.]+)-macos\.tar\.gz")
        assert select_candidate(item, [LINUX, MACOS]) == MACOS

    def test_inline_flags_are_honoured(self) -> None:
        item = make_item(anchor_text=r"(?i)TOOL-.*-LINUX\.tar\.gz")
        assert select_candidate(item, [MACOS, LINUX, LINUX_ARM]) == LINUX

    def test_no_candidates(self) -> None:
        with pytest.raises(NoMatchFound) as excinfo:
            select_candidate(make_item(), [])
        assert excinfo.value.item == "tool"

    def test_two_survivors_are_ambiguous(self) -> None:
        item = make_item(anchor_text=r"tool-.*-linux.*")
        with pytest.raises(AmbiguousMatch) as excinfo:
            select_candidate(item, [LINUX, MACOS, LINUX_ARM])
        assert excinfo.value.candidates == [LINUX, LINUX_ARM]

    def test_without_pattern_several_links_are_ambiguous(self) -> None:
        with pytest.raises(AmbiguousMatch):
            select_candidate(make_item(), [LINUX, MACOS])

    def test_duplicate_links_are_not_merged(self) -> None:
        item = make_item(anchor_text=r"tool-.*-linux\.tar\.gz")
        with pytest.raises(AmbiguousMatch):
            select_candidate(item, [LINUX, LINUX])

    def test_filter_keeps_order(self) -> None:
        item = make_item(anchor_text=r".*linux.*")
        assert filter_candidates(item, [LINUX_ARM, MACOS, LINUX]) == [LINUX_ARM, LINUX]


class TestSelectVersion:
    def test_first_occurrence_wins(self) -> None:
        assert select_version(make_item(), ["v2.0", "v2.0", "v1.0"]) == "v2.0"

    def test_skips_blank_and_trims(self) -> None:
        assert select_version(make_item(), ["  ", "\n v3 \n"]) == "v3"

    def test_nothing_found(self) -> None:
        with pytest.raises(NoMatchFound):
            select_version(make_item(), [])

    def test_only_blank_text(self) -> None:
        with pytest.raises(NoMatchFound):
            select_version(make_item(), ["", "   "])


class TestVersions:
    def test_normalize(self) -> None:
        assert normalize_version("  v1.0\n") == "v1.0"
        assert normalize_version(None) == ""

    @pytest.mark.parametrize(
        "recorded,latest,expected",
        [
            ("v1.0", "v1.0", True),
            (" v1.0 ", "v1.0", True),
            ("v1.0", "v1.1", False),
            ("First release", "First release", True),
            (None, "v1.0", False),
            ("", "", False),
        ],
    )
    def test_is_same_version(self, recorded, latest, expected) -> None:
        assert is_same_version(recorded, latest) is expected

    def test_downgrade_counts_as_update(self) -> None:
        assert needs_update("v2.0", "v1.9") is True

    def test_unchanged_with_file_present(self) -> None:
        assert needs_update("abc123", "abc123", installed_file_exists=True) is False

    def test_unchanged_with_file_missing(self) -> None:
        assert needs_update("abc123", "abc123", installed_file_exists=False) is True

    def test_never_recorded(self) -> None:
        assert needs_update(None, "2024-01-01") is True
