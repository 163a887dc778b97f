"""Shared fakes and builders for the lifter test-suite."""

from __future__ import annotations

import io
import tarfile
import zipfile
from pathlib import Path
from typing import Any

from lifter_cli.exceptions import FetchFailed
from lifter_cli.models.item import ResolvedItem
from lifter_cli.web.client import TextResponse


class FakeHttpClient:
    """Serves canned pages and JSON documents and counts requests."""

    def __init__(
        self,
        pages: dict[str, str] | None = None,
        documents: dict[str, Any] | None = None,
        final_urls: dict[str, str] | None = None,
        has_token: bool = False,
    ) -> None:
        self.pages = pages or {}
        self.documents = documents or {}
        self.final_urls = final_urls or {}
        self.has_token = has_token
        self.text_requests: list[str] = []
        self.json_requests: list[str] = []

    async def get_text(self, url: str) -> TextResponse:
        self.text_requests.append(url)
        if url not in self.pages:
            raise FetchFailed(f"GET {url} returned HTTP 404", status=404)
        return TextResponse(text=self.pages[url], url=self.final_urls.get(url, url))

    async def get_json(self, url: str) -> Any:
        self.json_requests.append(url)
        if url not in self.documents:
            raise FetchFailed(f"GET {url} returned HTTP 404", status=404)
        document = self.documents[url]
        if isinstance(document, Exception):
            raise document
        return document

    async def close(self) -> None:
        pass


class FakeDownloader:
    """Writes canned asset bytes to the destination and records each call."""

    def __init__(self, assets: dict[str, bytes] | None = None) -> None:
        self.assets = assets or {}
        self.calls: list[str] = []

    async def download_file(self, url: str, destination_path: Path, on_progress=None) -> int:
        self.calls.append(url)
        if url not in self.assets:
            raise FetchFailed(f"Download of {url} returned HTTP 404", status=404)
        data = self.assets[url]
        destination_path.write_bytes(data)
        if on_progress:
            on_progress(len(data), len(data))
        return len(data)


def make_tar_gz(entries: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, data in entries.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def make_zip(entries: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buffer.getvalue()


def make_item(**fields: Any) -> ResolvedItem:
    """Builds a resolved item from INI-style keys with sensible defaults."""
    data = {
        "name": "tool",
        "page_url": "https://example.com/acme/tool/releases",
        "anchor_tag": "a.asset",
        "version_tag": "h1",
    }
    data.update(fields)
    return ResolvedItem.model_validate(data)
