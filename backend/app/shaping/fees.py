from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from decimal import Decimal

from app.errors import AssetNotFound
from app.schemas.fees import AssetRecord, AssetView, NetworkRecord, NetworkView


def _normalize_symbol(symbol: str) -> str:
    return symbol.strip().upper()


def _allowed_set(allowed_networks: Iterable[str]) -> set[str]:
    return {network.strip().upper() for network in allowed_networks}


def _display_names(display_names: Mapping[str, str] | None) -> dict[str, str]:
    return {key.strip().upper(): value for key, value in (display_names or {}).items()}


def _network_view(record: NetworkRecord, display_names: Mapping[str, str]) -> NetworkView:
    return NetworkView(
        network=display_names.get(record.network.upper(), record.network),
        network_id=record.network,
        withdraw_fee=record.withdraw_fee,
        withdraw_min=record.withdraw_min,
        deposit_enabled=record.deposit_enabled,
        withdraw_enabled=record.withdraw_enabled,
    )


def find_asset(raw: Iterable[AssetRecord], symbol: str) -> AssetRecord:
    wanted = _normalize_symbol(symbol)
    for record in raw:
        if record.coin.upper() == wanted:
            return record
    raise AssetNotFound(wanted)


def shape_asset(
    record: AssetRecord,
    allowed_networks: Collection[str],
    display_names: Mapping[str, str] | None = None,
) -> AssetView:
    allowed = _allowed_set(allowed_networks)
    names = _display_names(display_names)
    networks = [
        _network_view(network, names)
        for network in record.networks
        if network.network.upper() in allowed
    ]
    networks.sort(key=lambda view: view.withdraw_fee)
    return AssetView(
        coin=record.coin,
        name=record.name,
        networks=networks,
        no_eligible_networks=not networks,
    )


def select_one(
    raw: Iterable[AssetRecord],
    symbol: str,
    allowed_networks: Collection[str],
    display_names: Mapping[str, str] | None = None,
) -> AssetView:
    return shape_asset(find_asset(raw, symbol), allowed_networks, display_names)


def select_all(
    raw: Iterable[AssetRecord],
    allowed_networks: Collection[str],
    display_names: Mapping[str, str] | None = None,
) -> list[AssetView]:
    return [shape_asset(record, allowed_networks, display_names) for record in raw]


def select_best_network(
    raw: Iterable[AssetRecord],
    symbol: str,
    min_amount: Decimal,
    allowed_networks: Collection[str],
    display_names: Mapping[str, str] | None = None,
) -> NetworkView | None:
    """Cheapest network that can withdraw ``min_amount`` of ``symbol``.

    Raises ``AssetNotFound`` for an unknown symbol and returns ``None`` when
    the asset is known but no network qualifies.
    """
    record = find_asset(raw, symbol)
    allowed = _allowed_set(allowed_networks)
    amount = Decimal(str(min_amount))
    candidates = [
        network
        for network in record.networks
        if network.network.upper() in allowed
        and network.withdraw_enabled
        and network.withdraw_min <= amount
    ]
    if not candidates:
        return None
    best = min(candidates, key=lambda network: network.withdraw_fee)
    return _network_view(best, _display_names(display_names))
