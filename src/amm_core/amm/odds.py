"""Probability <-> decimal odds conversions."""

from __future__ import annotations

MIN_PROB = 0.0001
MAX_PROB = 0.9999


def prob_to_odds(prob: float) -> float:
    """Decimal odds for a probability, clamped to [0.01%, 99.99%]."""
    clamped = min(max(prob, MIN_PROB), MAX_PROB)
    return 1 / clamped


def odds_to_probability(odds: float) -> float:
    if odds <= 1:
        return MAX_PROB
    return 1 / odds


def calculate_payout(stake: float, odds: float) -> float:
    """Total return (stake included) if the bet wins."""
    return stake * odds


def calculate_profit(stake: float, odds: float) -> float:
    return stake * (odds - 1)
