from __future__ import annotations

import asyncio
import logging

from app.cache import RefreshableCache
from app.errors import FeeProxyError

logger = logging.getLogger(__name__)


def refresh_once(cache: RefreshableCache) -> None:
    try:
        result = cache.refresh_if_stale()
    except FeeProxyError as exc:
        logger.warning("background refresh failed: %s", exc)
        return
    except Exception:
        logger.exception("background refresh raised unexpectedly")
        return
    if result is None:
        return
    if result.stale:
        logger.warning("background refresh kept stale snapshot (%s)", result.source)
    else:
        logger.debug("background refresh stored %d assets", len(result.snapshot.assets))


async def run_refresher(cache: RefreshableCache, interval_seconds: float) -> None:
    while True:
        await asyncio.to_thread(refresh_once, cache)
        await asyncio.sleep(interval_seconds)
