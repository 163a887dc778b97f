"""
Async HTTP client used for release pages, JSON release APIs and asset downloads.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

import aiohttp

from lifter_cli import __version__
from lifter_cli.exceptions import FetchFailed, RateLimited

from .rate_limiter import AdaptiveRateLimiter

log = logging.getLogger(__name__)

RATE_LIMIT_STATUSES = (403, 429)


@dataclass(frozen=True)
class TextResponse:
    """A page body plus the final URL after redirects."""

    text: str
    url: str


class HttpClient:
    """
    Thin async wrapper over a shared aiohttp session.

    Features:
    - Connection pooling sized from the worker count
    - Bearer token forwarding for JSON API requests
    - Adaptive pacing of JSON API requests
    - Translation of transport failures into ``FetchFailed`` / ``RateLimited``
    """

    def __init__(
        self,
        max_workers: int = 4,
        timeout: float = 60.0,
        token: str | None = None,
    ):
        """
        Initializes the client.

        Args:
            max_workers: The number of concurrent workers, used to tune the pool.
            timeout: Total timeout in seconds for a single page or API request.
            token: Optional bearer token attached to JSON API requests.
        """
        self.max_workers = max_workers
        self.timeout = timeout
        self._token = token or None
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()
        self._rate_limiter = AdaptiveRateLimiter()

    @property
    def has_token(self) -> bool:
        return self._token is not None

    async def get_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        async with self._session_lock:
            if self._session is None or self._session.closed:
                connector = aiohttp.TCPConnector(
                    limit=self.max_workers * 2,
                    limit_per_host=self.max_workers,
                    ttl_dns_cache=300,
                    enable_cleanup_closed=True,
                )
                self._session = aiohttp.ClientSession(
                    connector=connector,
                    headers={
                        "User-Agent": f"lifter-cli/{__version__}",
                        "Accept-Encoding": "gzip, deflate",
                    },
                    timeout=aiohttp.ClientTimeout(
                        total=self.timeout, connect=15, sock_read=30
                    ),
                )
                log.debug(f"Created HTTP session with limit_per_host={self.max_workers}")
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            log.debug("HTTP session closed.")

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def get_text(self, url: str) -> TextResponse:
        """
        Fetches an HTML page.

        Raises:
            FetchFailed: On transport errors or a non-success status.
        """
        session = await self.get_session()
        log.debug(f"Fetching page at {url}")
        try:
            async with session.get(url, allow_redirects=True) as r:
                if r.status >= 400:
                    raise FetchFailed(
                        f"GET {url} returned HTTP {r.status}", status=r.status
                    )
                text = await r.text(errors="replace")
                return TextResponse(text=text, url=str(r.url))
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchFailed(f"GET {url} failed: {e or type(e).__name__}") from e

    async def get_json(self, url: str) -> Any:
        """
        Fetches and parses a JSON document, forwarding the bearer token if set.

        Raises:
            RateLimited: On HTTP 403 or 429.
            FetchFailed: On transport errors, other failures or invalid JSON.
        """
        session = await self.get_session()
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        await self._rate_limiter.acquire()
        log.debug(f"Fetching JSON at {url}")
        try:
            async with session.get(url, headers=headers, allow_redirects=True) as r:
                if r.status in RATE_LIMIT_STATUSES:
                    await self._rate_limiter.on_rate_limited()
                    reset = r.headers.get("X-RateLimit-Reset")
                    hint = f" (quota resets at epoch {reset})" if reset else ""
                    raise RateLimited(
                        f"GET {url} was refused with HTTP {r.status}{hint}",
                        status=r.status,
                    )
                if r.status >= 400:
                    raise FetchFailed(
                        f"GET {url} returned HTTP {r.status}", status=r.status
                    )
                body = await r.text(errors="replace")
                remaining = r.headers.get("X-RateLimit-Remaining", "")
                if remaining.isdigit():
                    await self._rate_limiter.note_remaining(int(remaining))
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchFailed(f"GET {url} failed: {e or type(e).__name__}") from e

        try:
            return json.loads(body)
        except json.JSONDecodeError as e:
            raise FetchFailed(f"Response from {url} is not valid JSON: {e}") from e
