"""Tests for the aiohttp client, the asset downloader and request pacing."""

from __future__ import annotations

from pathlib import Path

import pytest
from aiohttp import test_utils, web

from lifter_cli.exceptions import FetchFailed, RateLimited
from lifter_cli.media.downloader import Downloader
from lifter_cli.web.client import HttpClient
from lifter_cli.web.rate_limiter import AdaptiveRateLimiter


def _release_app(calls: dict) -> web.Application:
    async def release(request: web.Request) -> web.Response:
        calls["auth"] = request.headers.get("Authorization")
        return web.json_response({"tag_name": "v1.2.3"})

    async def limited(request: web.Request) -> web.Response:
        return web.Response(status=429, headers={"X-RateLimit-Reset": "1700000000"})

    async def page(request: web.Request) -> web.Response:
        raise web.HTTPFound("/final")

    async def final(request: web.Request) -> web.Response:
        return web.Response(text="<h1>v1</h1>", content_type="text/html")

    async def flaky(request: web.Request) -> web.Response:
        calls["flaky"] = calls.get("flaky", 0) + 1
        if calls["flaky"] == 1:
            return web.Response(status=503)
        return web.Response(body=b"binary payload")

    async def missing(request: web.Request) -> web.Response:
        calls["missing"] = calls.get("missing", 0) + 1
        return web.Response(status=404)

    async def garbage(request: web.Request) -> web.Response:
        return web.Response(text="not json")

    app = web.Application()
    app.router.add_get("/release", release)
    app.router.add_get("/limited", limited)
    app.router.add_get("/page", page)
    app.router.add_get("/final", final)
    app.router.add_get("/flaky", flaky)
    app.router.add_get("/missing", missing)
    app.router.add_get("/garbage", garbage)
    return app


class TestHttpClient:
    @pytest.mark.asyncio
    async def test_json_with_token(self) -> None:
        calls: dict = {}
        async with test_utils.TestServer(_release_app(calls)) as server:
            async with HttpClient(token="secret") as client:
                document = await client.get_json(str(server.make_url("/release")))
        assert document == {"tag_name": "v1.2.3"}
        assert calls["auth"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_quota_response_is_rate_limited(self) -> None:
        async with test_utils.TestServer(_release_app({})) as server:
            async with HttpClient() as client:
                with pytest.raises(RateLimited) as excinfo:
                    await client.get_json(str(server.make_url("/limited")))
        assert excinfo.value.status == 429
        assert "1700000000" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_invalid_json(self) -> None:
        async with test_utils.TestServer(_release_app({})) as server:
            async with HttpClient() as client:
                with pytest.raises(FetchFailed, match="not valid JSON"):
                    await client.get_json(str(server.make_url("/garbage")))

    @pytest.mark.asyncio
    async def test_text_reports_final_url(self) -> None:
        async with test_utils.TestServer(_release_app({})) as server:
            async with HttpClient() as client:
                response = await client.get_text(str(server.make_url("/page")))
        assert response.text == "<h1>v1</h1>"
        assert response.url.endswith("/final")

    @pytest.mark.asyncio
    async def test_page_not_found(self) -> None:
        async with test_utils.TestServer(_release_app({})) as server:
            async with HttpClient() as client:
                with pytest.raises(FetchFailed) as excinfo:
                    await client.get_text(str(server.make_url("/missing")))
        assert excinfo.value.status == 404
        assert not isinstance(excinfo.value, RateLimited)


class TestDownloader:
    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self, tmp_path: Path) -> None:
        calls: dict = {}
        progress: list[int] = []
        destination = tmp_path / ".tool.download"
        async with test_utils.TestServer(_release_app(calls)) as server:
            async with HttpClient() as client:
                downloader = Downloader(client, max_attempts=3, base_delay=0)
                size = await downloader.download_file(
                    str(server.make_url("/flaky")),
                    destination,
                    on_progress=lambda done, total: progress.append(done),
                )
        assert size == len(b"binary payload")
        assert destination.read_bytes() == b"binary payload"
        assert calls["flaky"] == 2
        assert progress[-1] == size

    @pytest.mark.asyncio
    async def test_client_errors_fail_immediately(self, tmp_path: Path) -> None:
        calls: dict = {}
        async with test_utils.TestServer(_release_app(calls)) as server:
            async with HttpClient() as client:
                downloader = Downloader(client, max_attempts=3, base_delay=0)
                with pytest.raises(FetchFailed) as excinfo:
                    await downloader.download_file(
                        str(server.make_url("/missing")), tmp_path / ".x.download"
                    )
        assert excinfo.value.status == 404
        assert calls["missing"] == 1


class TestAdaptiveRateLimiter:
    @pytest.mark.asyncio
    async def test_rate_halves_down_to_a_floor(self) -> None:
        limiter = AdaptiveRateLimiter(initial_calls_per_second=2.0)
        await limiter.on_rate_limited()
        assert limiter.rate == 1.0
        await limiter.on_rate_limited()
        await limiter.on_rate_limited()
        assert limiter.rate == 0.5

    @pytest.mark.asyncio
    async def test_low_remaining_quota_slows_down(self) -> None:
        limiter = AdaptiveRateLimiter(initial_calls_per_second=4.0, low_quota_threshold=5)
        await limiter.note_remaining(100)
        assert limiter.rate == 4.0
        await limiter.note_remaining(3)
        assert limiter.rate == 0.5
