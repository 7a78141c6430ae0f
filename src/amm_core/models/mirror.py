"""Mirrored-feed models — raw readings and the smoothed display state."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class FreezeReason(str, Enum):
    SPIKE = "SPIKE"
    MANUAL = "MANUAL"


class UnfreezeReason(str, Enum):
    STABILIZED = "STABILIZED"
    TIMEOUT = "TIMEOUT"
    MANUAL = "MANUAL"


class FeedReading(BaseModel):
    """One probability observation from the upstream odds feed."""

    key: str
    title: str
    prob_yes: float = Field(ge=0.0, le=1.0)
    volume_usd: float | None = None
    one_day_price_change: float | None = None
    one_week_price_change: float | None = None


class MirrorMarket(BaseModel):
    """Public view of one mirrored market. Internal counters are not exposed."""

    key: str
    title: str
    volume_usd: float | None = None
    prob_yes_raw: float
    prob_no_raw: float
    prob_yes_display: float
    prob_no_display: float
    frozen: bool = False
    freeze_reason: FreezeReason | None = None
    last_stable_yes: float
    last_update: float


class MirrorSnapshot(BaseModel):
    markets: dict[str, MirrorMarket] = Field(default_factory=dict)
    updated_at: float
