from __future__ import annotations

import asyncio
import contextlib
import datetime
import logging
from collections.abc import AsyncIterator

import uvicorn
from fastapi import FastAPI

from app.api.routes import router
from app.cache import RefreshableCache
from app.config.settings import Settings, settings
from app.jobs.refresher import run_refresher
from app.providers.binance import BinanceFeeClient

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_cache(config: Settings) -> RefreshableCache:
    return RefreshableCache(
        fetcher=BinanceFeeClient(config),
        freshness_window=datetime.timedelta(seconds=config.freshness_window_seconds),
    )


def create_app(config: Settings = settings) -> FastAPI:
    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        missing = config.missing_credentials()
        if missing:
            logger.error("missing credentials: %s; fee requests will fail", ", ".join(missing))

        refresher: asyncio.Task | None = None
        if config.background_refresh and not missing:
            refresher = asyncio.create_task(
                run_refresher(app.state.fee_cache, config.refresh_interval_seconds)
            )
        logger.info("withdraw fee proxy started")
        try:
            yield
        finally:
            if refresher is not None:
                refresher.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await refresher
            logger.info("withdraw fee proxy stopped")

    app = FastAPI(title="Withdraw Fee Proxy", lifespan=lifespan)
    app.state.settings = config
    app.state.fee_cache = build_cache(config)
    app.include_router(router)
    return app


def run() -> None:
    configure_logging(settings.log_level)
    uvicorn.run(create_app(), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
