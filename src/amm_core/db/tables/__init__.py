"""Import all table modules so Base.metadata knows about them."""

from amm_core.db.tables.amm import AmmSnapshotRow, MarketRow

__all__ = ["AmmSnapshotRow", "MarketRow"]
