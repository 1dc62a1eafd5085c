from __future__ import annotations

from typing import Dict, List

from pydantic import Field, AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


def missing_credentials(api_key: str | None, api_secret: str | None) -> list[str]:
    missing: list[str] = []
    if not (api_key or "").strip():
        missing.append("BINANCE_API_KEY")
    if not (api_secret or "").strip():
        missing.append("BINANCE_API_SECRET")
    return missing


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FEEPROXY_",
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    binance_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("BINANCE_API_KEY", "FEEPROXY_BINANCE_API_KEY"),
    )
    binance_api_secret: str | None = Field(
        default=None,
        validation_alias=AliasChoices("BINANCE_API_SECRET", "FEEPROXY_BINANCE_API_SECRET"),
    )
    binance_base_url: str = "https://api.binance.com"
    recv_window_ms: int = 5000

    fetch_timeout_seconds: float = 10.0
    freshness_window_seconds: float = 180.0
    refresh_interval_seconds: float = 60.0
    background_refresh: bool = True

    allowed_networks: List[str] = Field(
        default_factory=lambda: [
            "BTC",
            "ETH",
            "BSC",
            "TRX",
            "SOL",
            "ARBITRUM",
            "OPTIMISM",
            "MATIC",
            "AVAXC",
            "TON",
            "BASE",
        ]
    )
    network_display_names: Dict[str, str] = Field(
        default_factory=lambda: {
            "BSC": "BEP20",
            "TRX": "TRC20",
            "ETH": "ERC20",
            "MATIC": "Polygon",
            "AVAXC": "AVAX C-Chain",
            "ARBITRUM": "Arbitrum One",
        }
    )

    host: str = "0.0.0.0"
    port: int = Field(default=3000, validation_alias=AliasChoices("PORT", "FEEPROXY_PORT"))
    log_level: str = "INFO"

    def missing_credentials(self) -> list[str]:
        return missing_credentials(self.binance_api_key, self.binance_api_secret)


settings = Settings()
