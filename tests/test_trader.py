"""Tests for MarketTrader — fee-adjusted execution, versioned writes, locking."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from amm_core.amm.engine import buy_shares, seed_market
from amm_core.amm.pricing import calculate_amm_pricing
from amm_core.config import AmmConfig
from amm_core.errors import (
    ConcurrentModificationError,
    DegenerateMarketError,
    InvalidInputError,
    MarketNotFoundError,
    MarketResolvedError,
)
from amm_core.execution import MarketTrader
from amm_core.models import ReserveState
from amm_core.store import InMemoryReserveStore, SqlReserveStore


class ConflictingStore(InMemoryReserveStore):
    """Loses the first ``conflicts`` writes as if another writer got there first."""

    def __init__(self, conflicts: int) -> None:
        super().__init__()
        self.conflicts = conflicts
        self.save_calls = 0

    def save_reserves(self, market_id, reserves, expected_version=None):
        self.save_calls += 1
        if self.conflicts > 0:
            self.conflicts -= 1
            raise ConcurrentModificationError(market_id, expected_version)
        return super().save_reserves(market_id, reserves, expected_version)


class SnapshotFailingStore(InMemoryReserveStore):
    def append_snapshot(self, market_id, reserves, ts):
        raise RuntimeError("snapshot table unavailable")


@pytest.fixture
def store():
    s = InMemoryReserveStore()
    s.create_market("m1", seed_market(10_000), title="Seeded")
    return s


@pytest.fixture
def trader(store):
    return MarketTrader(store)


# ── Preview ───────────────────────────────────────────────────


class TestPreview:
    def test_matches_pricing_function(self, store, trader):
        expected = calculate_amm_pricing(store.load_reserves("m1").reserves, 100, "yes")
        assert trader.preview("m1", 100, "yes") == expected

    def test_preview_commits_nothing(self, store, trader):
        trader.preview("m1", 100, "no")
        trader.preview("m1", 100, "no")
        assert store.load_reserves("m1").version == 0
        assert store.snapshots("m1") == []

    def test_unknown_market(self, trader):
        with pytest.raises(MarketNotFoundError):
            trader.preview("missing", 100, "yes")


# ── Buys ──────────────────────────────────────────────────────


class TestBuy:
    def test_fee_withheld_before_walk(self, store, trader):
        result = trader.buy("m1", 100, "yes")
        assert result.pricing.platform_fee == pytest.approx(2.0)
        assert result.trade.platform_fee == pytest.approx(2.0)

        direct = buy_shares(98.0, "yes", seed_market(10_000))
        assert result.trade.shares_bought == pytest.approx(direct.shares_bought)
        assert result.trade.new_no_reserve == pytest.approx(5098)

    def test_persists_reserves_and_snapshot(self, store, trader):
        result = trader.buy("m1", 100, "yes")
        assert result.version == 1
        loaded = store.load_reserves("m1")
        assert loaded.version == 1
        assert loaded.reserves.yes_reserve == pytest.approx(result.trade.new_yes_reserve)
        snaps = store.snapshots("m1")
        assert len(snaps) == 1
        assert snaps[0].prob_yes < 0.5

    def test_empty_pool_first_trade(self):
        store = InMemoryReserveStore()
        store.create_market("fresh", ReserveState(yes_reserve=0, no_reserve=0, k=0))
        result = MarketTrader(store).buy("fresh", 100, "yes")
        assert result.pricing is None
        assert result.trade.platform_fee == pytest.approx(2.0)
        assert result.trade.shares_bought == pytest.approx(98.0)
        assert result.trade.avg_price == 1.0
        assert store.load_reserves("fresh").reserves.no_reserve == 0.01

    def test_custom_fee_and_step(self, store):
        trader = MarketTrader(store, AmmConfig(fee_bps=0, step=1.0))
        result = trader.buy("m1", 10, "no")
        assert result.trade.platform_fee == 0
        assert result.trade.new_yes_reserve == pytest.approx(5010)

    @pytest.mark.parametrize("stake", [0, -1])
    def test_invalid_stake(self, store, trader, stake):
        with pytest.raises(InvalidInputError):
            trader.buy("m1", stake, "yes")
        assert store.load_reserves("m1").version == 0

    def test_invalid_outcome(self, trader):
        with pytest.raises(InvalidInputError):
            trader.buy("m1", 10, "maybe")

    def test_degenerate_market_untouched(self):
        store = InMemoryReserveStore()
        store.create_market("skewed", ReserveState.from_reserves(5, 9995))
        with pytest.raises(DegenerateMarketError):
            MarketTrader(store).buy("skewed", 10, "yes")
        assert store.load_reserves("skewed").version == 0


# ── Sells and resolution ──────────────────────────────────────


class TestSellAndResolve:
    def test_sell_after_buy(self, store, trader):
        bought = trader.buy("m1", 50, "yes")
        sold = trader.sell("m1", bought.trade.shares_bought, "yes")
        assert sold.version == 2
        assert sold.pricing is None
        assert sold.trade.shares_bought == pytest.approx(-bought.trade.shares_bought)
        assert sold.trade.avg_price * bought.trade.shares_bought == pytest.approx(49.0, rel=1e-3)

    def test_invalid_shares(self, trader):
        with pytest.raises(InvalidInputError):
            trader.sell("m1", 0, "yes")

    def test_resolved_market_rejects_trades(self, store, trader):
        trader.resolve("m1")
        with pytest.raises(MarketResolvedError):
            trader.buy("m1", 10, "yes")
        with pytest.raises(MarketResolvedError):
            trader.sell("m1", 10, "no")
        assert store.load_reserves("m1").version == 0


# ── Concurrency ───────────────────────────────────────────────


class TestConcurrency:
    def test_retries_after_conflict(self):
        store = ConflictingStore(conflicts=1)
        store.create_market("m1", seed_market(10_000))
        result = MarketTrader(store).buy("m1", 10, "yes")
        assert result.version == 1
        assert store.save_calls == 2
        assert len(store.snapshots("m1")) == 1

    def test_gives_up_after_bounded_retries(self):
        store = ConflictingStore(conflicts=10)
        store.create_market("m1", seed_market(10_000))
        trader = MarketTrader(store, AmmConfig(max_trade_retries=2))
        with pytest.raises(ConcurrentModificationError):
            trader.buy("m1", 10, "yes")
        assert store.save_calls == 3
        assert store.snapshots("m1") == []

    def test_parallel_buys_serialised(self, store, trader):
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: trader.buy("m1", 5, "yes"), range(8)))

        assert sorted(r.version for r in results) == list(range(1, 9))
        loaded = store.load_reserves("m1")
        assert loaded.version == 8
        # Every net stake landed in the opposite reserve
        assert loaded.reserves.no_reserve == pytest.approx(5000 + 8 * 4.9)
        assert len(store.snapshots("m1")) == 8

    def test_sql_store_end_to_end(self, db_session):
        store = SqlReserveStore(db_session)
        store.create_market("m1", seed_market(10_000))
        trader = MarketTrader(store)
        first = trader.buy("m1", 500, "yes")
        assert first.trade.new_no_reserve == pytest.approx(5490)
        assert first.trade.new_yes_reserve < 5000
        assert store.load_reserves("m1").version == 1
        assert len(store.snapshots("m1")) == 1


# ── Snapshot writes ───────────────────────────────────────────


class TestSnapshotWrites:
    def test_snapshot_failure_does_not_fail_committed_trade(self):
        store = SnapshotFailingStore()
        store.create_market("m1", seed_market(10_000))
        result = MarketTrader(store).buy("m1", 100, "yes")
        assert result.version == 1
        loaded = store.load_reserves("m1")
        assert loaded.version == 1
        assert loaded.reserves.no_reserve == pytest.approx(5098)
        assert loaded.reserves.yes_reserve == pytest.approx(result.trade.new_yes_reserve)
