import asyncio
import datetime
import logging

import pytest

from app.cache import RefreshableCache
from app.config.settings import Settings
from app.errors import UpstreamUnavailable
from app.jobs import refresher
from app.jobs.refresher import refresh_once, run_refresher
from app.main import create_app
from app.schemas.fees import AssetRecord


class FakeFetcher:
    def __init__(self) -> None:
        self.calls = 0
        self.error: Exception | None = None

    def __call__(self, now: datetime.datetime) -> list[AssetRecord]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return [AssetRecord(coin="BTC", name="Bitcoin")]


def test_refresh_once_populates_empty_cache() -> None:
    fetcher = FakeFetcher()
    cache = RefreshableCache(fetcher, datetime.timedelta(minutes=3))

    refresh_once(cache)
    refresh_once(cache)

    assert fetcher.calls == 1
    assert cache.cache_status().has_snapshot is True


def test_refresh_once_logs_and_discards_failures(caplog) -> None:
    fetcher = FakeFetcher()
    fetcher.error = UpstreamUnavailable("bad gateway", status=502)
    cache = RefreshableCache(fetcher, datetime.timedelta(minutes=3))

    with caplog.at_level(logging.WARNING, logger="app.jobs.refresher"):
        refresh_once(cache)

    assert "background refresh failed" in caplog.text
    assert cache.cache_status().fetch_in_progress is False


def test_run_refresher_repeats_until_cancelled(monkeypatch) -> None:
    fetcher = FakeFetcher()
    cache = RefreshableCache(fetcher, datetime.timedelta(seconds=0))
    sleeps: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        if len(sleeps) == 3:
            raise asyncio.CancelledError

    monkeypatch.setattr(refresher.asyncio, "sleep", fake_sleep)

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(run_refresher(cache, 60))

    assert sleeps == [60, 60, 60]
    assert fetcher.calls == 3


def test_create_app_wires_cache_and_settings() -> None:
    config = Settings(
        binance_api_key="key",
        binance_api_secret="secret",
        freshness_window_seconds=120,
    )

    app = create_app(config)

    assert app.state.settings is config
    assert isinstance(app.state.fee_cache, RefreshableCache)
    paths = {route.path for route in app.routes}
    assert {"/", "/health", "/get-withdraw-fees", "/withdraw-fees", "/best-network"} <= paths
    assert {"/cache/refresh", "/cache/status"} <= paths


def test_missing_credentials_are_listed() -> None:
    config = Settings(binance_api_key="key", binance_api_secret=" ")

    assert config.missing_credentials() == ["BINANCE_API_SECRET"]


def test_run_refresher_survives_unexpected_errors(monkeypatch, caplog) -> None:
    fetcher = FakeFetcher()
    fetcher.error = ConnectionResetError(104, "Connection reset by peer")
    cache = RefreshableCache(fetcher, datetime.timedelta(seconds=0))
    sleeps: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        fetcher.error = None
        if len(sleeps) == 3:
            raise asyncio.CancelledError

    monkeypatch.setattr(refresher.asyncio, "sleep", fake_sleep)

    with caplog.at_level(logging.ERROR, logger="app.jobs.refresher"):
        with pytest.raises(asyncio.CancelledError):
            asyncio.run(run_refresher(cache, 5))

    assert fetcher.calls == 3
    assert cache.cache_status().has_snapshot is True
    assert "background refresh raised unexpectedly" in caplog.text
