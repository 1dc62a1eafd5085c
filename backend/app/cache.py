from __future__ import annotations

import datetime
import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import cast

from app.errors import UpstreamUnavailable
from app.schemas.fees import AssetRecord, CacheSource, CacheStatus, FeeSnapshot

logger = logging.getLogger(__name__)

Fetcher = Callable[[datetime.datetime], Sequence[AssetRecord]]
Clock = Callable[[], datetime.datetime]


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


@dataclass(frozen=True)
class CacheResult:
    snapshot: FeeSnapshot
    source: CacheSource

    @property
    def stale(self) -> bool:
        return self.source in ("stale", "stale_fallback")


class _Flight:
    """One upstream call; callers that join it receive the owner's outcome."""

    def __init__(self) -> None:
        self._done = threading.Event()
        self._result: CacheResult | None = None
        self._error: BaseException | None = None

    def resolve(self, result: CacheResult) -> None:
        self._result = result
        self._done.set()

    def reject(self, error: BaseException) -> None:
        self._error = error
        self._done.set()

    def wait(self) -> CacheResult:
        self._done.wait()
        if self._error is not None:
            raise self._error
        return cast(CacheResult, self._result)


class RefreshableCache:
    """Single in-memory snapshot of the upstream dataset.

    Only one upstream call is ever in flight. Callers arriving while it runs
    get the previous snapshot marked stale, or wait for the call when there
    is nothing to serve yet. A failed refresh keeps the previous snapshot and
    serves it as ``stale_fallback``.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        freshness_window: datetime.timedelta,
        clock: Clock = utc_now,
    ) -> None:
        self._fetcher = fetcher
        self._freshness_window = freshness_window
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshot: FeeSnapshot | None = None
        self._flight: _Flight | None = None

    def is_fresh(self, snapshot: FeeSnapshot, now: datetime.datetime) -> bool:
        return (now - snapshot.fetched_at) < self._freshness_window

    def get_data(self, now: datetime.datetime | None = None) -> CacheResult:
        now = now or self._clock()
        with self._lock:
            snapshot = self._snapshot
            if snapshot is not None and self.is_fresh(snapshot, now):
                return CacheResult(snapshot, "fresh")
            flight = self._flight
            if flight is not None and snapshot is not None:
                return CacheResult(snapshot, "stale")
            owner = flight is None
            if owner:
                flight = self._flight = _Flight()

        if not owner:
            return flight.wait()
        return self._run(flight, now)

    def force_refresh(self, now: datetime.datetime | None = None) -> CacheResult:
        now = now or self._clock()
        with self._lock:
            flight = self._flight
            owner = flight is None
            if owner:
                flight = self._flight = _Flight()

        if not owner:
            return flight.wait()
        return self._run(flight, now)

    def refresh_if_stale(self, now: datetime.datetime | None = None) -> CacheResult | None:
        """Refresh when nothing fresh is stored and no fetch is running.

        Returns ``None`` when there was nothing to do.
        """
        now = now or self._clock()
        with self._lock:
            snapshot = self._snapshot
            if snapshot is not None and self.is_fresh(snapshot, now):
                return None
            if self._flight is not None:
                return None
            flight = self._flight = _Flight()
        return self._run(flight, now)

    def cache_status(self, now: datetime.datetime | None = None) -> CacheStatus:
        now = now or self._clock()
        with self._lock:
            snapshot = self._snapshot
            in_progress = self._flight is not None
        if snapshot is None:
            return CacheStatus(has_snapshot=False, fetch_in_progress=in_progress)
        return CacheStatus(
            has_snapshot=True,
            fetched_at=snapshot.fetched_at,
            age_seconds=(now - snapshot.fetched_at).total_seconds(),
            is_fresh=self.is_fresh(snapshot, now),
            fetch_in_progress=in_progress,
        )

    def _run(self, flight: _Flight, now: datetime.datetime) -> CacheResult:
        try:
            records = self._fetcher(now)
        except UpstreamUnavailable as exc:
            with self._lock:
                self._flight = None
                previous = self._snapshot
            if previous is None:
                flight.reject(exc)
                raise
            logger.warning(
                "refresh failed, serving snapshot from %s: %s",
                previous.fetched_at.isoformat(),
                exc,
            )
            result = CacheResult(previous, "stale_fallback")
            flight.resolve(result)
            return result
        except BaseException as exc:
            with self._lock:
                self._flight = None
            flight.reject(exc)
            raise

        fetched = FeeSnapshot(assets=tuple(records), fetched_at=now)
        with self._lock:
            current = self._snapshot
            if current is None or current.fetched_at <= fetched.fetched_at:
                self._snapshot = fetched
            else:
                fetched = current
            self._flight = None
        logger.info("fee snapshot refreshed with %d assets", len(fetched.assets))
        result = CacheResult(fetched, "refreshed")
        flight.resolve(result)
        return result
