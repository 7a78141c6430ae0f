"""Pydantic domain models."""

from amm_core.models.mirror import FeedReading, FreezeReason, MirrorMarket, MirrorSnapshot, UnfreezeReason
from amm_core.models.reserves import (
    AmmSnapshot,
    ExecutionResult,
    Outcome,
    PricingResult,
    ReserveState,
    TradeResult,
)

__all__ = [
    "AmmSnapshot",
    "ExecutionResult",
    "FeedReading",
    "FreezeReason",
    "MirrorMarket",
    "MirrorSnapshot",
    "Outcome",
    "PricingResult",
    "ReserveState",
    "TradeResult",
    "UnfreezeReason",
]
