"""Reserve store interface — key-value persistence of market reserves."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from amm_core.models import ReserveState


@dataclass
class StoredMarket:
    """Reserves as last persisted, with the version they were read at."""

    market_id: str
    reserves: ReserveState
    version: int
    title: str = ""
    feed_key: str | None = None
    resolved: bool = False
    seed_liquidity: float = 0.0


class ReserveStore(Protocol):
    def create_market(
        self,
        market_id: str,
        reserves: ReserveState,
        title: str = "",
        feed_key: str | None = None,
    ) -> StoredMarket: ...

    def load_reserves(self, market_id: str) -> StoredMarket: ...

    def save_reserves(
        self,
        market_id: str,
        reserves: ReserveState,
        expected_version: int | None = None,
        reseed: bool = False,
    ) -> int:
        """Write reserves and return the new version.

        With ``expected_version`` the write only lands if nobody else wrote
        since that version was read; otherwise ConcurrentModificationError.
        ``reseed`` marks a re-bootstrap: seed liquidity is reset to the new
        pool total as well.
        """
        ...

    def append_snapshot(self, market_id: str, reserves: ReserveState, ts: datetime) -> None: ...

    def resolve_market(self, market_id: str) -> None: ...

    def linked_markets(self) -> list[StoredMarket]:
        """Open markets whose reserves track a feed market."""
        ...
