"""Unified pricing — displayed odds vs. fee-adjusted execution, pure functions.

Users are shown the pool's implied probability with no markup. The platform
fee is withheld from the stake before shares are computed:

    shares = (stake - fee) / displayed_probability

Displayed probability here is same-side over total (``yes / total``), so a
pool with 80 YES / 20 NO shows 80% YES. The CPMM engine uses the opposite
convention for its spot price; the two are not interchangeable.

This does not walk the bonding curve, so for trades that are large relative
to the pool the quoted shares and the engine's shares diverge.
"""

from __future__ import annotations

from datetime import datetime

from amm_core.errors import DegenerateMarketError, InvalidInputError
from amm_core.models import AmmSnapshot, Outcome, PricingResult, ReserveState

DEFAULT_FEE_BPS = 200
MIN_PROBABILITY = 0.001


def calculate_platform_fee(stake: float, fee_bps: float) -> float:
    """fee = stake * fee_bps / 10000"""
    return stake * (fee_bps / 10000)


def calculate_amm_pricing(
    reserves: ReserveState,
    stake: float,
    outcome: Outcome,
    fee_bps: float = DEFAULT_FEE_BPS,
    min_probability: float = MIN_PROBABILITY,
) -> PricingResult:
    """Quote a stake: what the user sees and what the stake actually buys.

    Raises:
        InvalidInputError: a reserve is not positive, or the stake is not.
        DegenerateMarketError: the selected probability is below
            ``min_probability``; the pool needs rebalancing before it can
            price this side without handing out near-unbounded shares.
    """
    if reserves.yes_reserve <= 0 or reserves.no_reserve <= 0:
        raise InvalidInputError("reserves must be positive")
    if stake <= 0:
        raise InvalidInputError("stake must be positive")

    total = reserves.yes_reserve + reserves.no_reserve
    display_prob_yes = reserves.yes_reserve / total
    display_prob_no = reserves.no_reserve / total

    platform_fee = calculate_platform_fee(stake, fee_bps)
    net_stake = stake - platform_fee

    selected = display_prob_yes if outcome == "yes" else display_prob_no
    if selected < min_probability:
        raise DegenerateMarketError(selected, min_probability)

    net_shares = net_stake / selected
    potential_payout = net_shares  # each winning share redeems for 1 unit

    return PricingResult(
        display_prob_yes=display_prob_yes,
        display_prob_no=display_prob_no,
        display_odds_yes=1 / display_prob_yes,
        display_odds_no=1 / display_prob_no,
        platform_fee=platform_fee,
        net_stake=net_stake,
        net_shares=net_shares,
        potential_payout=potential_payout,
        potential_profit=potential_payout - stake,
    )


def create_amm_snapshot(
    market_id: str,
    yes_reserve: float,
    no_reserve: float,
    ts: datetime | None = None,
) -> AmmSnapshot:
    """Capture reserves and displayed probabilities for historical charts."""
    total = yes_reserve + no_reserve
    return AmmSnapshot(
        market_id=market_id,
        yes_reserve=yes_reserve,
        no_reserve=no_reserve,
        prob_yes=yes_reserve / total,
        prob_no=no_reserve / total,
        ts=ts,
    )
