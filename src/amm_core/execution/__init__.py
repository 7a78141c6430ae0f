"""Trade execution — per-market serialized reserve updates."""

from amm_core.execution.locks import KeyedLocks
from amm_core.execution.trader import MarketTrader

__all__ = ["KeyedLocks", "MarketTrader"]
