"""SQLAlchemy reserve store with optimistic concurrency on the version column."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.orm import Session

from amm_core.amm.bootstrap import seed_liquidity
from amm_core.amm.pricing import create_amm_snapshot
from amm_core.db.tables.amm import AmmSnapshotRow, MarketRow
from amm_core.errors import ConcurrentModificationError, MarketNotFoundError, MarketResolvedError
from amm_core.models import AmmSnapshot, ReserveState
from amm_core.store.base import StoredMarket


def _to_stored(row: MarketRow) -> StoredMarket:
    return StoredMarket(
        market_id=row.id,
        reserves=ReserveState(
            yes_reserve=float(row.yes_reserve),
            no_reserve=float(row.no_reserve),
            k=float(row.k),
        ),
        version=row.version,
        title=row.title,
        feed_key=row.feed_key,
        resolved=row.resolved,
        seed_liquidity=float(row.seed_liquidity),
    )


class SqlReserveStore:
    """Reserve store over a SQLAlchemy session.

    Every write commits. A write that fails rolls the session back before
    the error propagates, so the session stays usable for the next call.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        try:
            yield
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def _get_row(self, market_id: str) -> MarketRow:
        row = self.session.get(MarketRow, market_id, populate_existing=True)
        if row is None:
            raise MarketNotFoundError(market_id)
        return row

    def create_market(
        self,
        market_id: str,
        reserves: ReserveState,
        title: str = "",
        feed_key: str | None = None,
    ) -> StoredMarket:
        row = MarketRow(
            id=market_id,
            title=title,
            feed_key=feed_key,
            yes_reserve=reserves.yes_reserve,
            no_reserve=reserves.no_reserve,
            k=reserves.k,
            seed_liquidity=seed_liquidity(reserves),
            version=0,
            resolved=False,
            updated_at=datetime.now(timezone.utc),
        )
        with self._transaction():
            self.session.add(row)
        self.session.refresh(row)
        return _to_stored(row)

    def load_reserves(self, market_id: str) -> StoredMarket:
        return _to_stored(self._get_row(market_id))

    def save_reserves(
        self,
        market_id: str,
        reserves: ReserveState,
        expected_version: int | None = None,
        reseed: bool = False,
    ) -> int:
        """Compare-and-swap write; the version bump happens in the UPDATE itself."""
        conditions = [MarketRow.id == market_id, MarketRow.resolved == False]  # noqa: E712
        if expected_version is not None:
            conditions.append(MarketRow.version == expected_version)

        values = {
            "yes_reserve": reserves.yes_reserve,
            "no_reserve": reserves.no_reserve,
            "k": reserves.k,
            "version": MarketRow.version + 1,
            "updated_at": datetime.now(timezone.utc),
        }
        if reseed:
            values["seed_liquidity"] = seed_liquidity(reserves)

        with self._transaction():
            result = self.session.execute(
                update(MarketRow)
                .where(*conditions)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                self.session.rollback()
                row = self._get_row(market_id)
                if row.resolved:
                    raise MarketResolvedError(market_id)
                raise ConcurrentModificationError(
                    market_id, expected_version if expected_version is not None else row.version,
                )
        return self._get_row(market_id).version

    def append_snapshot(self, market_id: str, reserves: ReserveState, ts: datetime) -> None:
        snap = create_amm_snapshot(market_id, reserves.yes_reserve, reserves.no_reserve, ts)
        with self._transaction():
            self.session.add(AmmSnapshotRow(
                market_id=snap.market_id,
                yes_reserve=snap.yes_reserve,
                no_reserve=snap.no_reserve,
                prob_yes=snap.prob_yes,
                prob_no=snap.prob_no,
                ts=ts,
            ))

    def snapshots(self, market_id: str) -> list[AmmSnapshot]:
        rows = (
            self.session.query(AmmSnapshotRow)
            .filter(AmmSnapshotRow.market_id == market_id)
            .order_by(AmmSnapshotRow.ts, AmmSnapshotRow.id)
            .all()
        )
        return [
            AmmSnapshot(
                market_id=r.market_id,
                yes_reserve=float(r.yes_reserve),
                no_reserve=float(r.no_reserve),
                prob_yes=float(r.prob_yes),
                prob_no=float(r.prob_no),
                ts=r.ts,
            )
            for r in rows
        ]

    def resolve_market(self, market_id: str) -> None:
        with self._transaction():
            row = self._get_row(market_id)
            row.resolved = True

    def linked_markets(self) -> list[StoredMarket]:
        rows = (
            self.session.query(MarketRow)
            .filter(MarketRow.feed_key.isnot(None), MarketRow.resolved == False)  # noqa: E712
            .order_by(MarketRow.id)
            .all()
        )
        return [_to_stored(r) for r in rows]
