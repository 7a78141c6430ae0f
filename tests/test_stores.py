"""Tests for reserve stores — in-memory and SQLAlchemy-backed."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from amm_core.db.tables import AmmSnapshotRow, MarketRow
from amm_core.errors import ConcurrentModificationError, MarketNotFoundError, MarketResolvedError
from amm_core.models import ReserveState
from amm_core.store import InMemoryReserveStore, SqlReserveStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
POOL = ReserveState.from_reserves(5000, 5000)


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        return InMemoryReserveStore()
    return SqlReserveStore(request.getfixturevalue("db_session"))


# ── Shared behaviour ──────────────────────────────────────────


class TestReserveStore:
    def test_create_and_load(self, store):
        created = store.create_market("m1", POOL, title="Test", feed_key="fed-cut")
        assert created.version == 0
        loaded = store.load_reserves("m1")
        assert loaded.reserves.yes_reserve == pytest.approx(5000)
        assert loaded.reserves.k == pytest.approx(25_000_000)
        assert loaded.title == "Test"
        assert loaded.feed_key == "fed-cut"
        assert loaded.resolved is False

    def test_save_bumps_version(self, store):
        store.create_market("m1", POOL)
        assert store.save_reserves("m1", ReserveState.from_reserves(4000, 6000)) == 1
        assert store.save_reserves("m1", POOL, expected_version=1) == 2
        loaded = store.load_reserves("m1")
        assert loaded.version == 2
        assert loaded.reserves.no_reserve == pytest.approx(5000)

    def test_stale_version_rejected(self, store):
        store.create_market("m1", POOL)
        store.save_reserves("m1", ReserveState.from_reserves(4000, 6000), expected_version=0)
        with pytest.raises(ConcurrentModificationError) as exc:
            store.save_reserves("m1", POOL, expected_version=0)
        assert exc.value.code == 3001
        loaded = store.load_reserves("m1")
        assert loaded.version == 1
        assert loaded.reserves.yes_reserve == pytest.approx(4000)

    def test_missing_market(self, store):
        with pytest.raises(MarketNotFoundError):
            store.load_reserves("nope")
        with pytest.raises(MarketNotFoundError):
            store.save_reserves("nope", POOL)
        with pytest.raises(MarketNotFoundError):
            store.resolve_market("nope")

    def test_resolved_market_is_read_only(self, store):
        store.create_market("m1", POOL)
        store.resolve_market("m1")
        assert store.load_reserves("m1").resolved is True
        with pytest.raises(MarketResolvedError):
            store.save_reserves("m1", ReserveState.from_reserves(1, 1))

    def test_linked_markets(self, store):
        store.create_market("a", POOL, feed_key="key-a")
        store.create_market("b", POOL)
        store.create_market("c", POOL, feed_key="key-c")
        store.resolve_market("c")
        assert [m.market_id for m in store.linked_markets()] == ["a"]

    def test_snapshots_appended_in_order(self, store):
        store.create_market("m1", POOL)
        store.append_snapshot("m1", ReserveState.from_reserves(430, 9570), NOW)
        store.append_snapshot("m1", POOL, NOW + timedelta(minutes=1))
        snaps = store.snapshots("m1")
        assert len(snaps) == 2
        assert snaps[0].prob_yes == pytest.approx(0.043)
        assert snaps[1].prob_yes == pytest.approx(0.5)
        assert store.snapshots("other") == []

    def test_reseed_rewrites_seed_liquidity(self, store):
        store.create_market("m1", POOL)
        store.save_reserves("m1", ReserveState.from_reserves(4000, 6100))
        assert store.load_reserves("m1").seed_liquidity == pytest.approx(10_000)
        store.save_reserves("m1", ReserveState.from_reserves(1000, 1000), reseed=True)
        assert store.load_reserves("m1").seed_liquidity == pytest.approx(2000)


# ── SQL specifics ─────────────────────────────────────────────


class TestSqlReserveStore:
    def test_rows_written(self, db_session):
        store = SqlReserveStore(db_session)
        store.create_market("m1", ReserveState.from_reserves(430, 9570), feed_key="k")
        store.append_snapshot("m1", POOL, NOW)

        row = db_session.get(MarketRow, "m1")
        assert float(row.seed_liquidity) == pytest.approx(10_000)
        assert row.version == 0
        assert db_session.query(AmmSnapshotRow).count() == 1

    def test_conflict_leaves_session_usable(self, db_session):
        store = SqlReserveStore(db_session)
        store.create_market("m1", POOL)
        store.save_reserves("m1", POOL, expected_version=0)
        with pytest.raises(ConcurrentModificationError):
            store.save_reserves("m1", POOL, expected_version=0)
        assert store.save_reserves("m1", POOL, expected_version=1) == 2

    def test_failed_write_rolls_back_session(self, db_session):
        store = SqlReserveStore(db_session)
        store.create_market("m1", POOL)
        with pytest.raises(IntegrityError):
            store.append_snapshot("ghost", POOL, NOW)

        # The same session keeps working
        assert store.save_reserves("m1", ReserveState.from_reserves(4000, 6000)) == 1
        store.append_snapshot("m1", POOL, NOW)
        assert len(store.snapshots("m1")) == 1
        assert store.snapshots("ghost") == []

    def test_duplicate_market_rolls_back_session(self, db_session):
        store = SqlReserveStore(db_session)
        store.create_market("m1", POOL)
        db_session.expunge_all()
        with pytest.raises(IntegrityError):
            store.create_market("m1", POOL)
        assert store.load_reserves("m1").version == 0
