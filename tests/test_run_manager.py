"""Tests for run orchestration: isolation, rate-limit policy and history."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from lifter_cli.core.run_manager import HISTORY_FILENAME, RunManager
from lifter_cli.exceptions import InvalidConfiguration, RateLimited
from lifter_cli.media.installer import Installer
from lifter_cli.models.outcome import Failed, Installed, Skipped
from lifter_cli.models.settings import RateLimitPolicy, RunSettings
from lifter_cli.storage.config_manager import ConfigStore

from tests.helpers import FakeDownloader, FakeHttpClient

API = "https://api.example.com/repos/acme/{}/releases/latest"
PAGE = "https://example.com/acme/{}/releases"
ASSET = "https://dl.example.com/{0}/{0}-linux"

CONFIG = """
[template:gh]
method = api_json
page_url = https://api.example.com/repos/acme/{project}/releases/latest
anchor_tag = $.assets[*].browser_download_url
version_tag = $.tag_name

[alpha]
template = gh
project = alpha

[broken]
page_url = https://example.com/{missing}/releases
anchor_tag = a
version_tag = h1

[beta]
template = gh
project = beta

[gamma]
page_url = https://example.com/acme/gamma/releases
anchor_tag = a.asset
version_tag = h1
"""


def _release(name: str, tag: str = "v1") -> dict:
    return {"tag_name": tag, "assets": [{"browser_download_url": ASSET.format(name)}]}


GAMMA_PAGE = f'<h1>v3</h1><a class="asset" href="{ASSET.format("gamma")}">gamma-linux</a>'


def _manager(
    config_path: Path,
    output_dir: Path,
    client: FakeHttpClient,
    policy: RateLimitPolicy = RateLimitPolicy.SKIP,
    history: bool = True,
) -> RunManager:
    store = ConfigStore(config_path).open()
    settings = RunSettings(
        output_dir=output_dir,
        config_path=str(config_path.parent),
        max_workers=1,
        on_rate_limit=policy,
        history=history,
    )
    downloader = FakeDownloader(
        {ASSET.format(name): f"{name} binary".encode() for name in ("alpha", "beta", "gamma")}
    )
    return RunManager(
        store, settings, client, downloader=downloader, installer=Installer(output_dir)
    )


def _healthy_client() -> FakeHttpClient:
    return FakeHttpClient(
        pages={PAGE.format("gamma"): GAMMA_PAGE},
        documents={API.format("alpha"): _release("alpha"), API.format("beta"): _release("beta")},
    )


class TestRun:
    @pytest.mark.asyncio
    async def test_one_bad_item_does_not_stop_the_others(
        self, write_config, output_dir: Path
    ) -> None:
        manager = _manager(write_config(CONFIG), output_dir, _healthy_client())
        outcomes = await manager.run()

        assert [o.name for o in outcomes] == ["alpha", "broken", "beta", "gamma"]
        assert isinstance(outcomes[1], Failed)
        assert isinstance(outcomes[1].error, InvalidConfiguration)
        assert all(isinstance(o, Installed) for o in (outcomes[0], outcomes[2], outcomes[3]))
        assert (output_dir / "gamma").read_bytes() == b"gamma binary"
        assert manager.stats.items_total == 4
        assert manager.stats.items_installed == 3
        assert manager.stats.items_failed == 1

    @pytest.mark.asyncio
    async def test_selected_names(self, write_config, output_dir: Path) -> None:
        client = _healthy_client()
        manager = _manager(write_config(CONFIG), output_dir, client)
        outcomes = await manager.run(["beta", "beta"])

        assert [o.name for o in outcomes] == ["beta"]
        assert client.json_requests == [API.format("beta")]

    @pytest.mark.asyncio
    async def test_unknown_name(self, write_config, output_dir: Path) -> None:
        client = _healthy_client()
        manager = _manager(write_config(CONFIG), output_dir, client)
        (outcome,) = await manager.run(["nope"])

        assert isinstance(outcome, Failed)
        assert isinstance(outcome.error, InvalidConfiguration)
        assert client.json_requests == []
        assert client.text_requests == []

    @pytest.mark.asyncio
    async def test_second_run_skips_everything(self, write_config, output_dir: Path) -> None:
        path = write_config(CONFIG)
        await _manager(path, output_dir, _healthy_client()).run()

        client = _healthy_client()
        outcomes = await _manager(path, output_dir, client).run(["alpha", "beta", "gamma"])

        assert all(isinstance(o, Skipped) for o in outcomes)

    @pytest.mark.asyncio
    async def test_no_items(self, write_config, output_dir: Path) -> None:
        manager = _manager(write_config("[lifter]\n"), output_dir, FakeHttpClient())
        assert await manager.run() == []
        assert manager.stats.items_total == 0


class TestRateLimitPolicy:
    def _limited_client(self) -> FakeHttpClient:
        client = _healthy_client()
        client.documents[API.format("alpha")] = RateLimited(
            "GET returned HTTP 403", status=403
        )
        return client

    @pytest.mark.asyncio
    async def test_skip_stops_further_api_requests(
        self, write_config, output_dir: Path
    ) -> None:
        client = self._limited_client()
        manager = _manager(write_config(CONFIG), output_dir, client)
        alpha, _, beta, gamma = await manager.run()

        assert isinstance(alpha.error, RateLimited)
        assert isinstance(beta, Failed)
        assert isinstance(beta.error, RateLimited)
        assert beta.error.item == "beta"
        assert client.json_requests == [API.format("alpha")]
        assert manager.stats.items_rate_limited == 2

        assert isinstance(gamma, Installed)
        assert client.text_requests == [PAGE.format("gamma")]

    @pytest.mark.asyncio
    async def test_continue_keeps_requesting(self, write_config, output_dir: Path) -> None:
        client = self._limited_client()
        manager = _manager(
            write_config(CONFIG), output_dir, client, policy=RateLimitPolicy.CONTINUE
        )
        alpha, _, beta, _ = await manager.run()

        assert isinstance(alpha, Failed)
        assert isinstance(beta, Installed)
        assert client.json_requests == [API.format("alpha"), API.format("beta")]
        assert manager.stats.items_rate_limited == 1


class TestCheck:
    @pytest.mark.asyncio
    async def test_check_reports_each_item(self, write_config, output_dir: Path) -> None:
        manager = _manager(write_config(CONFIG), output_dir, _healthy_client())
        results = await manager.check(["alpha", "broken"])

        assert results[0].latest == "v1"
        assert results[0].update_available is True
        assert isinstance(results[1], Failed)
        assert list(output_dir.iterdir()) == []


class TestRunHistory:
    @pytest.mark.asyncio
    async def test_history_line_is_appended(
        self, write_config, output_dir: Path, tmp_path: Path
    ) -> None:
        manager = _manager(write_config(CONFIG), output_dir, _healthy_client())
        await manager.run()
        manager.save_run_history()
        manager.save_run_history()

        lines = (tmp_path / HISTORY_FILENAME).read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        record = json.loads(lines[0])
        assert record["items_total"] == 4
        assert record["items_installed"] == 3
        assert record["items_failed"] == 1
        assert record["total_size_downloaded"] == sum(
            len(f"{name} binary") for name in ("alpha", "beta", "gamma")
        )

    def test_history_disabled(self, write_config, output_dir: Path, tmp_path: Path) -> None:
        manager = _manager(
            write_config(CONFIG), output_dir, _healthy_client(), history=False
        )
        manager.save_run_history()
        assert not (tmp_path / HISTORY_FILENAME).exists()
