"""
Dataclass for tracking run statistics.
"""

import time
from dataclasses import dataclass, field

from lifter_cli.exceptions import RateLimited
from lifter_cli.models.outcome import Failed, Installed, Outcome, Skipped


@dataclass
class RunStats:
    """Tracks per-run counters, filled in from item outcomes as they arrive."""

    items_total: int = 0
    items_installed: int = 0
    items_skipped: int = 0
    items_failed: int = 0
    items_rate_limited: int = 0
    total_size_downloaded: int = 0
    failures: dict[str, str] = field(default_factory=dict)
    start_time: float = field(default_factory=time.monotonic, repr=False)

    def record(self, outcome: Outcome) -> None:
        """Counts a single item outcome."""
        if isinstance(outcome, Installed):
            self.items_installed += 1
            self.total_size_downloaded += outcome.size
        elif isinstance(outcome, Skipped):
            self.items_skipped += 1
        elif isinstance(outcome, Failed):
            self.items_failed += 1
            self.failures[outcome.name] = outcome.reason
            if isinstance(outcome.error, RateLimited):
                self.items_rate_limited += 1

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.start_time
