"""Error taxonomy for the pricing core.

Code ranges:
  1xxx: invalid input (caller mistake)
  2xxx: market condition (structural, not a user mistake)
  3xxx: persistence / concurrency
  4xxx: upstream feed
"""

from __future__ import annotations


class AmmError(Exception):
    """Base error for everything raised by amm_core."""

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


# --- 1xxx: Invalid input ---

class InvalidInputError(AmmError):
    def __init__(self, detail: str) -> None:
        super().__init__(1001, f"Invalid input: {detail}")


# --- 2xxx: Market condition ---

class DegenerateMarketError(AmmError):
    """Displayed probability is too extreme to price against."""

    def __init__(self, probability: float, minimum: float) -> None:
        self.probability = probability
        super().__init__(
            2001,
            f"Probability too low ({probability:.4%} < {minimum:.1%}). "
            "Market needs rebalancing.",
        )


class MarketNotFoundError(AmmError):
    def __init__(self, market_id: str) -> None:
        super().__init__(2002, f"Market not found: {market_id}")


class MarketResolvedError(AmmError):
    def __init__(self, market_id: str) -> None:
        super().__init__(2003, f"Market is resolved and read-only: {market_id}")


class MarketNotSeededError(AmmError):
    def __init__(self) -> None:
        super().__init__(2004, "Market has no liquidity to trade against")


# --- 3xxx: Persistence ---

class ConcurrentModificationError(AmmError):
    """A reserve write lost an optimistic-concurrency race."""

    def __init__(self, market_id: str, expected_version: int) -> None:
        self.market_id = market_id
        self.expected_version = expected_version
        super().__init__(
            3001,
            f"Reserves for {market_id} changed since version {expected_version}",
        )


# --- 4xxx: Upstream feed ---

class FeedError(AmmError):
    def __init__(self, detail: str, code: int = 4001, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(code, f"Feed error: {detail}")


class FeedMarketNotFoundError(FeedError):
    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"market not found for key: {key}", code=4004)
