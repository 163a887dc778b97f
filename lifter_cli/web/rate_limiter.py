"""
Paces JSON API requests so that a run does not burn through a shared quota.

Release APIs report their remaining quota in response headers and refuse
requests with 403/429 once it is gone. The limiter spaces requests out, halves
its rate after a refusal, and drops to the floor rate as soon as the reported
remaining quota runs low.
"""

import asyncio
import logging
import time

log = logging.getLogger(__name__)

MIN_CALLS_PER_SECOND = 0.5
RECOVERY_DELAY = 300.0
RECOVERY_FACTOR = 1.005


class AdaptiveRateLimiter:
    """Spaces out API calls and adapts the interval to quota feedback."""

    def __init__(
        self,
        initial_calls_per_second: float = 4.0,
        max_calls_per_second: float = 8.0,
        low_quota_threshold: int = 5,
    ):
        """
        Args:
            initial_calls_per_second: The starting rate of calls per second.
            max_calls_per_second: The maximum rate to recover to.
            low_quota_threshold: Remaining-quota value at or below which the
                limiter switches to its floor rate.
        """
        self._max_rate = max_calls_per_second
        self._low_quota_threshold = low_quota_threshold
        self._set_rate(initial_calls_per_second)
        self._next_slot = 0.0
        self._slowed_at = 0.0
        self._lock = asyncio.Lock()

    @property
    def rate(self) -> float:
        return self._rate

    def _set_rate(self, calls_per_second: float) -> None:
        self._rate = min(self._max_rate, max(MIN_CALLS_PER_SECOND, calls_per_second))
        self._interval = 1.0 / self._rate

    async def on_rate_limited(self) -> None:
        """Called on a 403/429 quota response. Halves the request rate."""
        async with self._lock:
            self._set_rate(self._rate * 0.5)
            self._slowed_at = time.monotonic()
            log.warning(
                f"[yellow]Rate limit hit. New rate: {self._rate:.1f} calls/s[/yellow]"
            )

    async def note_remaining(self, remaining: int) -> None:
        """Records the quota the API says is left after a successful call."""
        if remaining > self._low_quota_threshold:
            return
        async with self._lock:
            if self._rate > MIN_CALLS_PER_SECOND:
                log.debug(f"Only {remaining} API calls left; slowing down.")
            self._set_rate(MIN_CALLS_PER_SECOND)
            self._slowed_at = time.monotonic()

    async def acquire(self) -> None:
        """Waits until the next request slot is free."""
        async with self._lock:
            if self._rate < self._max_rate and (
                time.monotonic() - self._slowed_at > RECOVERY_DELAY
            ):
                self._set_rate(self._rate * RECOVERY_FACTOR)

            loop = asyncio.get_running_loop()
            delay = self._next_slot - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
            self._next_slot = loop.time() + self._interval
