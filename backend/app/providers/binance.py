from __future__ import annotations

import datetime
import hashlib
import hmac
import json
import logging
from http.client import HTTPException as HTTPClientError
from urllib.error import HTTPError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from pydantic import ValidationError

from app.config.settings import Settings, missing_credentials
from app.errors import ConfigurationMissing, UpstreamUnavailable
from app.schemas.fees import AssetRecord

logger = logging.getLogger(__name__)

_CAPITAL_CONFIG_PATH = "/sapi/v1/capital/config/getall"
_MAX_DETAIL_CHARS = 500


def sign_query(query_string: str, api_secret: str) -> str:
    return hmac.new(
        api_secret.encode("utf-8"),
        query_string.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def _build_url(base_url: str, params: dict[str, str], api_secret: str) -> str:
    query_string = urlencode(params)
    signature = sign_query(query_string, api_secret)
    return f"{base_url.rstrip('/')}{_CAPITAL_CONFIG_PATH}?{query_string}&signature={signature}"


def _parse_assets(payload: object) -> list[AssetRecord]:
    if not isinstance(payload, list):
        raise UpstreamUnavailable("unexpected payload shape, expected a list of assets")
    try:
        return [AssetRecord.model_validate(item) for item in payload]
    except ValidationError as exc:
        raise UpstreamUnavailable(f"malformed asset record: {exc.error_count()} error(s)") from exc


def fetch_raw(
    api_key: str | None,
    api_secret: str | None,
    now: datetime.datetime,
    *,
    base_url: str = "https://api.binance.com",
    timeout: float = 10.0,
    recv_window_ms: int = 5000,
) -> list[AssetRecord]:
    missing = missing_credentials(api_key, api_secret)
    if missing:
        raise ConfigurationMissing(missing)

    params = {
        "recvWindow": str(recv_window_ms),
        "timestamp": str(int(now.timestamp() * 1000)),
    }
    url = _build_url(base_url, params, api_secret)
    request = Request(url, headers={"X-MBX-APIKEY": api_key})
    try:
        with urlopen(request, timeout=timeout) as response:
            body = response.read().decode("utf-8")
        payload = json.loads(body)
    except HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="replace")[:_MAX_DETAIL_CHARS]
        logger.warning("capital config request failed with HTTP %s: %s", exc.code, detail)
        raise UpstreamUnavailable(detail or str(exc.reason), status=exc.code) from exc
    except (OSError, HTTPClientError, UnicodeDecodeError) as exc:
        logger.warning("capital config request failed: %s", exc)
        raise UpstreamUnavailable(str(exc)) from exc
    except json.JSONDecodeError as exc:
        raise UpstreamUnavailable("response body is not valid JSON") from exc

    return _parse_assets(payload)


class BinanceFeeClient:
    """Binds credentials and endpoint settings into a ``fetch(now)`` callable."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def __call__(self, now: datetime.datetime) -> list[AssetRecord]:
        return fetch_raw(
            self._settings.binance_api_key,
            self._settings.binance_api_secret,
            now,
            base_url=self._settings.binance_base_url,
            timeout=self._settings.fetch_timeout_seconds,
            recv_window_ms=self._settings.recv_window_ms,
        )
