from __future__ import annotations

import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

CacheSource = Literal["fresh", "refreshed", "stale", "stale_fallback"]


class NetworkRecord(BaseModel):
    """One entry of an asset's ``networkList`` as returned by the exchange."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    network: str
    name: str = ""
    withdraw_fee: Decimal = Field(alias="withdrawFee")
    withdraw_min: Decimal = Field(default=Decimal("0"), alias="withdrawMin")
    deposit_enabled: bool = Field(default=False, alias="depositEnable")
    withdraw_enabled: bool = Field(default=False, alias="withdrawEnable")

    @field_validator("deposit_enabled", "withdraw_enabled", mode="before")
    @classmethod
    def _normalize_flag(cls, value: object) -> bool:
        # The exchange has been seen sending both JSON booleans and "true"/"false".
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return bool(value)


class AssetRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    coin: str
    name: str = ""
    networks: tuple[NetworkRecord, ...] = Field(default=(), alias="networkList")


class FeeSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    assets: tuple[AssetRecord, ...]
    fetched_at: datetime.datetime


class NetworkView(BaseModel):
    network: str
    network_id: str
    withdraw_fee: Decimal
    withdraw_min: Decimal
    deposit_enabled: bool
    withdraw_enabled: bool


class AssetView(BaseModel):
    coin: str
    name: str
    networks: list[NetworkView] = Field(default_factory=list)
    no_eligible_networks: bool = False


class CacheStatus(BaseModel):
    has_snapshot: bool
    fetched_at: Optional[datetime.datetime] = None
    age_seconds: Optional[float] = None
    is_fresh: bool = False
    fetch_in_progress: bool = False


class WithdrawFeesRequest(BaseModel):
    coin: Optional[str] = None


class BestNetworkRequest(BaseModel):
    coin: Optional[str] = None
    amount: Optional[Decimal] = None
    networks: Optional[list[str]] = None


class AssetFeesResponse(AssetView):
    source: CacheSource
    stale: bool
    fetched_at: datetime.datetime


class AllFeesResponse(BaseModel):
    assets: list[AssetView] = Field(default_factory=list)
    source: CacheSource
    stale: bool
    fetched_at: datetime.datetime


class BestNetworkResponse(BaseModel):
    coin: str
    amount: Decimal
    network: Optional[NetworkView] = None
    no_eligible_network: bool = False
    source: CacheSource
    stale: bool
    fetched_at: datetime.datetime


class RefreshResponse(BaseModel):
    source: CacheSource
    status: CacheStatus
