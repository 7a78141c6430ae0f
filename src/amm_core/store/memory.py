"""In-process reserve store — for tests and single-process deployments."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime

from amm_core.amm.bootstrap import seed_liquidity
from amm_core.amm.pricing import create_amm_snapshot
from amm_core.errors import ConcurrentModificationError, MarketNotFoundError, MarketResolvedError
from amm_core.models import AmmSnapshot, ReserveState
from amm_core.store.base import StoredMarket


class InMemoryReserveStore:
    """Dict-backed store. Thread-safe; resets on process restart."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._markets: dict[str, StoredMarket] = {}
        self._snapshots: dict[str, list[AmmSnapshot]] = {}

    def create_market(
        self,
        market_id: str,
        reserves: ReserveState,
        title: str = "",
        feed_key: str | None = None,
    ) -> StoredMarket:
        market = StoredMarket(
            market_id=market_id,
            reserves=reserves,
            version=0,
            title=title,
            feed_key=feed_key,
            seed_liquidity=seed_liquidity(reserves),
        )
        with self._lock:
            self._markets[market_id] = market
        return replace(market)

    def load_reserves(self, market_id: str) -> StoredMarket:
        with self._lock:
            market = self._markets.get(market_id)
            if market is None:
                raise MarketNotFoundError(market_id)
            return replace(market)

    def save_reserves(
        self,
        market_id: str,
        reserves: ReserveState,
        expected_version: int | None = None,
        reseed: bool = False,
    ) -> int:
        with self._lock:
            market = self._markets.get(market_id)
            if market is None:
                raise MarketNotFoundError(market_id)
            if market.resolved:
                raise MarketResolvedError(market_id)
            if expected_version is not None and market.version != expected_version:
                raise ConcurrentModificationError(market_id, expected_version)
            market.reserves = reserves
            if reseed:
                market.seed_liquidity = seed_liquidity(reserves)
            market.version += 1
            return market.version

    def append_snapshot(self, market_id: str, reserves: ReserveState, ts: datetime) -> None:
        snapshot = create_amm_snapshot(market_id, reserves.yes_reserve, reserves.no_reserve, ts)
        with self._lock:
            self._snapshots.setdefault(market_id, []).append(snapshot)

    def snapshots(self, market_id: str) -> list[AmmSnapshot]:
        with self._lock:
            return list(self._snapshots.get(market_id, []))

    def resolve_market(self, market_id: str) -> None:
        with self._lock:
            market = self._markets.get(market_id)
            if market is None:
                raise MarketNotFoundError(market_id)
            market.resolved = True

    def linked_markets(self) -> list[StoredMarket]:
        with self._lock:
            return [
                replace(m) for m in self._markets.values()
                if m.feed_key and not m.resolved
            ]
