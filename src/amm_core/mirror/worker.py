"""Mirror worker — polls the odds feed and keeps mirror state and AMM reserves current.

Each poll fetches every validated feed key, feeds the readings through the
freeze state machine, releases freezes past the fail-safe timeout, then
re-bootstraps linked AMM markets from the readings it just fetched. A slower
second loop re-syncs the reserves on its own schedule so they stay aligned
even when the poll loop has nothing new to mirror.

Run: python -m amm_core.mirror [--config config.yaml]
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib

import structlog

from amm_core.config import AppConfig, load_config
from amm_core.db.engine import get_session, init_engine
from amm_core.errors import FeedError, FeedMarketNotFoundError
from amm_core.exchange.polymarket import PolymarketClient
from amm_core.execution.locks import KeyedLocks
from amm_core.logging import setup_logging
from amm_core.mirror.state import MirrorState
from amm_core.mirror.sync import SyncResult, ensure_linked_markets, sync_reserves
from amm_core.models import FeedReading
from amm_core.store import ReserveStore, SqlReserveStore

log = structlog.get_logger("mirror_worker")


def _definitely_missing(exc: Exception) -> bool:
    if isinstance(exc, FeedMarketNotFoundError):
        return True
    return isinstance(exc, FeedError) and exc.status_code in (404, 410)


class MirrorWorker:
    """Owns the poll and sync loops for one process."""

    def __init__(
        self,
        client: PolymarketClient,
        state: MirrorState,
        config: AppConfig,
        store: ReserveStore | None = None,
        locks: KeyedLocks | None = None,
    ) -> None:
        self.client = client
        self.state = state
        self.config = config
        self.store = store
        self.locks = locks or KeyedLocks()
        self.keys: list[str] = []
        self._stop = asyncio.Event()

    # ── Key management ────────────────────────────────────────

    def wanted_keys(self) -> list[str]:
        """Configured feed keys plus the feed keys of linked local markets."""
        keys = list(dict.fromkeys(self.config.feed.keys))
        keys.extend(link.feed_key for link in self.config.markets.values())
        if self.store is not None:
            keys.extend(m.feed_key for m in self.store.linked_markets() if m.feed_key)
        return list(dict.fromkeys(keys))

    async def validate_keys(self, keys: list[str]) -> list[str]:
        """Ping each key once; drop only those the feed says do not exist.

        Transient failures (network, rate limits, 5xx) keep the key so the
        next poll retries it.
        """
        valid: list[str] = []
        excluded: list[str] = []
        uncertain: list[str] = []

        for key in keys:
            try:
                await self.client.fetch_probability(key)
                valid.append(key)
            except Exception as exc:
                if _definitely_missing(exc):
                    excluded.append(key)
                else:
                    uncertain.append(key)
                    valid.append(key)

        if excluded:
            log.warning("feed_keys_excluded", keys=excluded)
        if uncertain:
            log.warning("feed_keys_unverified", keys=uncertain)
        log.info("feed_keys_validated", count=len(valid))
        return valid

    async def refresh_keys(self) -> list[str]:
        """Validate newly wanted keys and forget ones no longer wanted."""
        wanted = self.wanted_keys()
        new = [k for k in wanted if k not in self.keys]
        if new:
            self.keys.extend(await self.validate_keys(new))
        removed = [k for k in self.keys if k not in wanted]
        if removed:
            log.info("feed_keys_removed", keys=removed)
            self.keys = [k for k in self.keys if k in wanted]
        return self.keys

    # ── Ticks ─────────────────────────────────────────────────

    async def poll_once(self) -> dict[str, FeedReading]:
        """Fetch every key, update mirror state, then sync AMM reserves.

        Returns the readings fetched this poll. A failing key keeps its
        previous mirror state.
        """
        readings: dict[str, FeedReading] = {}
        for key in self.keys:
            try:
                reading = await self.client.fetch_probability(key)
                readings[key] = reading
                self.state.upsert_feed_reading(
                    key, reading.prob_yes, reading.title, reading.volume_usd,
                )
            except Exception:
                log.exception("mirror_poll_failed", key=key)

        released = self.state.release_expired()
        if released:
            log.info("mirror_freezes_expired", keys=released)

        if self.store is not None:
            try:
                await self.sync(readings)
            except Exception:
                log.exception("amm_sync_failed")
        return readings

    async def sync(self, readings: dict[str, FeedReading] | None = None) -> SyncResult:
        if self.store is None:
            raise RuntimeError("MirrorWorker has no reserve store; nothing to sync")
        return await sync_reserves(
            self.store,
            readings=readings,
            mirror=self.state,
            fetch=self.client.fetch_probability,
            liquidity_scale=self.config.amm.liquidity_scale,
            locks=self.locks,
        )

    # ── Lifecycle ─────────────────────────────────────────────

    def stop(self) -> None:
        """Ask the loops to exit after the tick in flight."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    async def _sleep(self, seconds: float) -> None:
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)

    async def _poll_loop(self) -> None:
        interval = self.config.feed.poll_interval_s
        while not self._stop.is_set():
            try:
                await self.refresh_keys()
                if self.keys:
                    await self.poll_once()
                else:
                    log.info("mirror_idle", reason="no feed keys")
            except Exception:
                log.exception("mirror_tick_error")
            await self._sleep(interval)

    async def _sync_loop(self) -> None:
        interval = self.config.feed.event_sync_interval_s
        await self._sleep(interval)
        while not self._stop.is_set():
            try:
                await self.sync()
            except Exception:
                log.exception("amm_sync_failed")
            await self._sleep(interval)

    async def run(self) -> None:
        """Run until stop() is called."""
        self._stop.clear()
        if self.store is not None:
            ensure_linked_markets(self.store, self.config.markets, self.config.amm.liquidity_scale)

        log.info(
            "mirror_started",
            poll_interval_s=self.config.feed.poll_interval_s,
            sync_interval_s=self.config.feed.event_sync_interval_s,
        )
        loops = [self._poll_loop()]
        if self.store is not None:
            loops.append(self._sync_loop())
        await asyncio.gather(*loops)
        log.info("mirror_stopped")


async def run(config_path: str | None = None) -> None:
    """Main entry point — mirror the feed into the database on a loop."""
    cfg = load_config(config_path)
    setup_logging(level=cfg.logging.level, log_format=cfg.logging.format)

    init_engine(cfg.database.url)
    session_gen = get_session()
    session = next(session_gen)

    client = PolymarketClient(
        base_url=cfg.feed.base_url,
        timeout_s=cfg.feed.timeout_s,
        cache_ttl_s=cfg.feed.cache_ttl_s,
    )
    worker = MirrorWorker(
        client,
        MirrorState(cfg.mirror),
        cfg,
        store=SqlReserveStore(session),
    )

    try:
        await worker.run()
    finally:
        session.close()
        await client.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Odds mirror worker")
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    args = parser.parse_args()
    asyncio.run(run(args.config))


if __name__ == "__main__":
    main()
