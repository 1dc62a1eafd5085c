from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.cache import CacheResult, RefreshableCache
from app.config.settings import Settings
from app.errors import AssetNotFound, ConfigurationMissing, FeeProxyError, UpstreamUnavailable
from app.schemas.fees import (
    AllFeesResponse,
    AssetFeesResponse,
    BestNetworkRequest,
    BestNetworkResponse,
    CacheStatus,
    RefreshResponse,
    WithdrawFeesRequest,
)
from app.shaping.fees import select_all, select_best_network, select_one

router = APIRouter()


def get_cache(request: Request) -> RefreshableCache:
    return request.app.state.fee_cache


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _to_http_error(exc: FeeProxyError) -> HTTPException:
    if isinstance(exc, AssetNotFound):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": str(exc)},
        )
    if isinstance(exc, ConfigurationMissing):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "Service is not configured.", "missing": exc.missing},
        )
    if isinstance(exc, UpstreamUnavailable):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "error": "Upstream API error",
                "upstream_status": exc.status,
                "details": exc.detail,
            },
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": "Something went wrong", "details": str(exc)},
    )


def _load(cache: RefreshableCache) -> CacheResult:
    try:
        return cache.get_data()
    except FeeProxyError as exc:
        raise _to_http_error(exc) from exc


def _require_coin(coin: str | None) -> str:
    cleaned = (coin or "").strip()
    if not cleaned:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Coin is required (e.g., BTC, ETH, USDT)"},
        )
    return cleaned


@router.get("/")
def root() -> dict:
    return {"status": "Server is running"}


@router.get("/health")
def health(cache: RefreshableCache = Depends(get_cache)) -> dict:
    return {"status": "ok", "cache": cache.cache_status().model_dump(mode="json")}


@router.post("/get-withdraw-fees", response_model=AssetFeesResponse)
def get_withdraw_fees(
    payload: WithdrawFeesRequest,
    cache: RefreshableCache = Depends(get_cache),
    config: Settings = Depends(get_settings),
) -> AssetFeesResponse:
    coin = _require_coin(payload.coin)
    result = _load(cache)
    try:
        view = select_one(
            result.snapshot.assets,
            coin,
            config.allowed_networks,
            config.network_display_names,
        )
    except AssetNotFound as exc:
        raise _to_http_error(exc) from exc
    return AssetFeesResponse(
        **view.model_dump(),
        source=result.source,
        stale=result.stale,
        fetched_at=result.snapshot.fetched_at,
    )


@router.get("/withdraw-fees", response_model=AllFeesResponse)
def list_withdraw_fees(
    cache: RefreshableCache = Depends(get_cache),
    config: Settings = Depends(get_settings),
) -> AllFeesResponse:
    result = _load(cache)
    views = select_all(
        result.snapshot.assets,
        config.allowed_networks,
        config.network_display_names,
    )
    return AllFeesResponse(
        assets=views,
        source=result.source,
        stale=result.stale,
        fetched_at=result.snapshot.fetched_at,
    )


@router.post("/best-network", response_model=BestNetworkResponse)
def best_network(
    payload: BestNetworkRequest,
    cache: RefreshableCache = Depends(get_cache),
    config: Settings = Depends(get_settings),
) -> BestNetworkResponse:
    coin = _require_coin(payload.coin)
    if payload.amount is None or payload.amount <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Amount must be a positive number."},
        )
    allowed = payload.networks or config.allowed_networks
    result = _load(cache)
    try:
        network = select_best_network(
            result.snapshot.assets,
            coin,
            payload.amount,
            allowed,
            config.network_display_names,
        )
    except AssetNotFound as exc:
        raise _to_http_error(exc) from exc
    return BestNetworkResponse(
        coin=coin.upper(),
        amount=payload.amount,
        network=network,
        no_eligible_network=network is None,
        source=result.source,
        stale=result.stale,
        fetched_at=result.snapshot.fetched_at,
    )


@router.post("/cache/refresh", response_model=RefreshResponse)
def refresh_cache(cache: RefreshableCache = Depends(get_cache)) -> RefreshResponse:
    try:
        result = cache.force_refresh()
    except FeeProxyError as exc:
        raise _to_http_error(exc) from exc
    return RefreshResponse(source=result.source, status=cache.cache_status())


@router.get("/cache/status", response_model=CacheStatus)
def cache_status(cache: RefreshableCache = Depends(get_cache)) -> CacheStatus:
    return cache.cache_status()
