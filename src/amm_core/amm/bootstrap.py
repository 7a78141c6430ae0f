"""Reserve bootstrapper — turn an external probability into a fresh pool.

Re-bootstrapping overwrites the reserve pair wholesale. It is not a trade:
no shares are minted or burned, and the price impact of trades since the
last bootstrap is discarded (their ledgered cost and shares stay valid).
"""

from __future__ import annotations

from amm_core.models import ReserveState

LIQUIDITY_SCALE = 10_000
MIN_PROB = 0.01
MAX_PROB = 0.99


def clamp_probability(prob: float, lo: float = MIN_PROB, hi: float = MAX_PROB) -> float:
    return max(lo, min(hi, prob))


def bootstrap_reserves_from_probability(
    prob_yes: float,
    liquidity_scale: float = LIQUIDITY_SCALE,
) -> ReserveState:
    """Build reserves whose displayed YES probability equals ``prob_yes``.

    0.043 at the default scale gives yes_reserve=430, no_reserve=9570.
    Probabilities are clamped to [0.01, 0.99] so neither side collapses.
    Reserves are rounded to cents; k is taken from the unrounded pair and
    rounded to four places.
    """
    safe = clamp_probability(prob_yes)
    yes_reserve = safe * liquidity_scale
    no_reserve = (1 - safe) * liquidity_scale
    return ReserveState(
        yes_reserve=round(yes_reserve, 2),
        no_reserve=round(no_reserve, 2),
        k=round(yes_reserve * no_reserve, 4),
    )


def seed_liquidity(state: ReserveState) -> float:
    """Total liquidity represented by a bootstrapped pool."""
    return round(state.yes_reserve + state.no_reserve, 2)
