"""Odds mirror — freeze-smoothed feed state and the worker that drives it."""

from amm_core.mirror.state import MirrorState
from amm_core.mirror.sync import SyncResult, ensure_linked_markets, sync_reserves

__all__ = ["MirrorState", "SyncResult", "ensure_linked_markets", "sync_reserves"]
