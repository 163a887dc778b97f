"""
Handles the streaming download of release assets over HTTP with retry logic.
"""

import asyncio
import logging
import os
from collections.abc import Callable
from pathlib import Path

import aiofiles
import aiohttp

from lifter_cli.exceptions import FetchFailed
from lifter_cli.web.client import HttpClient

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class Downloader:
    """A streaming asset downloader with exponential-backoff retries."""

    CHUNK_SIZE = 262144  # 256 KB

    def __init__(
        self, client: HttpClient, max_attempts: int = 3, base_delay: float = 1.5
    ):
        self.client = client
        self.max_attempts = max_attempts
        self.base_delay = base_delay

    async def download_file(
        self,
        url: str,
        destination_path: Path,
        on_progress: ProgressCallback | None = None,
    ) -> int:
        """
        Streams ``url`` into ``destination_path`` and returns the byte count.

        Transport errors and 5xx responses are retried; client errors (4xx) fail
        immediately. The destination is truncated on every attempt.

        Raises:
            FetchFailed: When all attempts fail or the server rejects the request.
        """
        last_exception: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                session = await self.client.get_session()
                timeout = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=90)
                async with session.get(
                    url, allow_redirects=True, timeout=timeout
                ) as response:
                    if 400 <= response.status < 500:
                        raise FetchFailed(
                            f"Download of {url} returned HTTP {response.status}",
                            status=response.status,
                        )
                    response.raise_for_status()

                    total = int(response.headers.get("Content-Length", 0) or 0)
                    bytes_downloaded = 0
                    async with aiofiles.open(destination_path, "wb") as f:
                        async for chunk in response.content.iter_chunked(
                            self.CHUNK_SIZE
                        ):
                            await f.write(chunk)
                            bytes_downloaded += len(chunk)
                            if on_progress:
                                on_progress(bytes_downloaded, total)

                if total and bytes_downloaded < total:
                    raise aiohttp.ClientPayloadError(
                        f"received {bytes_downloaded} of {total} bytes"
                    )
                log.debug(
                    f"Downloaded {bytes_downloaded} bytes from {url} into "
                    f"'{os.path.basename(destination_path)}'"
                )
                return bytes_downloaded
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                log.debug(
                    f"Download attempt {attempt}/{self.max_attempts} for "
                    f"'{os.path.basename(destination_path)}' failed: {e}. Retrying..."
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))

        raise FetchFailed(
            f"Download of {url} failed after {self.max_attempts} attempts: "
            f"{last_exception}"
        ) from last_exception
