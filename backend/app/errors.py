from __future__ import annotations


class FeeProxyError(Exception):
    """Base class for failures the service reports as values."""


class UpstreamUnavailable(FeeProxyError):
    """Network failure, timeout or non-2xx response from the exchange."""

    def __init__(self, detail: str, status: int | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status = status

    def __str__(self) -> str:
        if self.status is None:
            return f"upstream unavailable: {self.detail}"
        return f"upstream returned HTTP {self.status}: {self.detail}"


class AssetNotFound(FeeProxyError):
    def __init__(self, symbol: str) -> None:
        super().__init__(f"Coin {symbol} not found in upstream data")
        self.symbol = symbol


class ConfigurationMissing(FeeProxyError):
    def __init__(self, missing: list[str]) -> None:
        super().__init__("Missing required configuration: " + ", ".join(missing))
        self.missing = missing
