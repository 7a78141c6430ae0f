"""Reserve, trade and pricing models for binary AMM markets."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

Outcome = Literal["yes", "no"]


class ReserveState(BaseModel):
    """Paired virtual liquidity for one binary market.

    ``k`` is the product of the reserves as of the last mutation. It is
    recomputed, never enforced.
    """

    yes_reserve: float
    no_reserve: float
    k: float

    @classmethod
    def from_reserves(cls, yes_reserve: float, no_reserve: float) -> ReserveState:
        return cls(yes_reserve=yes_reserve, no_reserve=no_reserve, k=yes_reserve * no_reserve)

    @property
    def total(self) -> float:
        return self.yes_reserve + self.no_reserve

    def reserve(self, outcome: Outcome) -> float:
        return self.yes_reserve if outcome == "yes" else self.no_reserve

    def opposite_reserve(self, outcome: Outcome) -> float:
        return self.no_reserve if outcome == "yes" else self.yes_reserve


class TradeResult(BaseModel):
    """Outcome of one simulated buy or sell against the curve."""

    shares_bought: float  # negative for a sale
    avg_price: float
    new_yes_reserve: float
    new_no_reserve: float
    new_k: float
    platform_fee: float | None = None

    @property
    def reserves(self) -> ReserveState:
        return ReserveState(
            yes_reserve=self.new_yes_reserve,
            no_reserve=self.new_no_reserve,
            k=self.new_k,
        )


class PricingResult(BaseModel):
    """Displayed odds and fee-adjusted execution figures for one stake."""

    # What the user sees
    display_prob_yes: float
    display_prob_no: float
    display_odds_yes: float
    display_odds_no: float

    # What the user gets
    platform_fee: float
    net_stake: float
    net_shares: float
    potential_payout: float
    potential_profit: float


class AmmSnapshot(BaseModel):
    """Historical reserve point used for charting."""

    market_id: str
    yes_reserve: float
    no_reserve: float
    prob_yes: float
    prob_no: float
    ts: datetime | None = None


class ExecutionResult(BaseModel):
    """A committed trade: the quote shown plus the curve walk applied."""

    market_id: str
    outcome: Outcome
    pricing: PricingResult | None = None
    trade: TradeResult
    version: int
