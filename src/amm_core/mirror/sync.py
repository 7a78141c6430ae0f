"""AMM reserve sync — re-bootstrap linked local markets from the feed."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog

from amm_core.amm.bootstrap import LIQUIDITY_SCALE, bootstrap_reserves_from_probability
from amm_core.config.schema import MarketLink
from amm_core.errors import MarketNotFoundError
from amm_core.execution.locks import KeyedLocks
from amm_core.mirror.state import MirrorState
from amm_core.models import FeedReading
from amm_core.store.base import ReserveStore, StoredMarket

log = structlog.get_logger("amm_sync")

Fetcher = Callable[[str], Awaitable[FeedReading]]


@dataclass
class SyncResult:
    synced: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.synced)

    @property
    def error_count(self) -> int:
        return len(self.failed)


def ensure_linked_markets(
    store: ReserveStore,
    links: Mapping[str, MarketLink],
    liquidity_scale: float = LIQUIDITY_SCALE,
) -> list[str]:
    """Create configured local markets that do not exist yet, at 50/50.

    Returns the ids created.
    """
    created = []
    for market_id, link in links.items():
        try:
            store.load_reserves(market_id)
        except MarketNotFoundError:
            store.create_market(
                market_id,
                bootstrap_reserves_from_probability(0.5, liquidity_scale),
                title=link.title or market_id,
                feed_key=link.feed_key,
            )
            created.append(market_id)
            log.info("amm_market_created", market_id=market_id, feed_key=link.feed_key)
    return created


async def _probability_for(
    feed_key: str,
    readings: Mapping[str, FeedReading],
    mirror: MirrorState | None,
    fetch: Fetcher | None,
) -> float:
    if mirror is not None:
        display = mirror.display_probability(feed_key)
        if display is not None:
            return display
    reading = readings.get(feed_key)
    if reading is None:
        if fetch is None:
            raise LookupError(f"no reading for feed key {feed_key}")
        reading = await fetch(feed_key)
    return reading.prob_yes


async def sync_reserves(
    store: ReserveStore,
    readings: Mapping[str, FeedReading] | None = None,
    mirror: MirrorState | None = None,
    fetch: Fetcher | None = None,
    liquidity_scale: float = LIQUIDITY_SCALE,
    locks: KeyedLocks | None = None,
    now: Callable[[], datetime] | None = None,
) -> SyncResult:
    """Overwrite the reserves of every linked local market.

    The probability used is the mirror's display value when the key is
    mirrored (so a frozen spike never reaches the pool), else the cached
    reading from this poll, else a fresh fetch. Each market is synced
    independently; one failure does not stop the rest.
    """
    readings = readings or {}
    locks = locks or KeyedLocks()
    clock = now or (lambda: datetime.now(timezone.utc))
    result = SyncResult()

    markets: list[StoredMarket] = store.linked_markets()
    if not markets:
        return result

    log.info("amm_sync_started", markets=len(markets))
    for market in markets:
        feed_key = market.feed_key or ""
        try:
            prob_yes = await _probability_for(feed_key, readings, mirror, fetch)
            reserves = bootstrap_reserves_from_probability(prob_yes, liquidity_scale)
            with locks.hold(market.market_id):
                store.save_reserves(market.market_id, reserves, reseed=True)
                store.append_snapshot(market.market_id, reserves, clock())
            result.synced.append(market.market_id)
            log.info(
                "amm_sync_market",
                market_id=market.market_id,
                feed_key=feed_key,
                prob_yes=round(prob_yes, 4),
            )
        except Exception:
            result.failed.append(market.market_id)
            log.exception("amm_sync_market_failed", market_id=market.market_id, feed_key=feed_key)

    log.info("amm_sync_complete", updated=result.success_count, errors=result.error_count)
    return result
