"""CPMM engine — spot price and bonding-curve trade simulation, pure functions.

Reserves hold virtual liquidity for a binary market; the invariant product
``k = yes_reserve * no_reserve`` is recomputed after each trade.

Buys and sells walk the curve in discrete steps of ``step`` shares, pricing
each step at the instantaneous spot price. Smaller steps track the
continuous curve more closely but cost proportionally more iterations;
the discretization error in the result is of the order of ``step``.
No fees and no display smoothing happen here.
"""

from __future__ import annotations

from amm_core.errors import InvalidInputError, MarketNotSeededError
from amm_core.models import Outcome, ReserveState, TradeResult

EPSILON = 0.01  # placeholder opposite reserve after a zero-liquidity first trade
DEFAULT_STEP = 0.01


def get_price(outcome: Outcome, state: ReserveState) -> float | None:
    """Spot price of ``outcome`` as a probability, or None with no liquidity.

    price = opposite_reserve / (yes_reserve + no_reserve)

    A larger opposing reserve means a cheaper outcome share.
    """
    if state.yes_reserve == 0 and state.no_reserve == 0:
        return None
    total = state.yes_reserve + state.no_reserve
    if total == 0:
        return None
    return state.opposite_reserve(outcome) / total


def seed_market(seed_amount: float) -> ReserveState:
    """Seed a symmetric 50/50 pool from ``seed_amount`` total liquidity."""
    if seed_amount <= 0:
        raise InvalidInputError("seed amount must be positive")
    half = seed_amount / 2
    return ReserveState(yes_reserve=half, no_reserve=half, k=half * half)


def _split(outcome: Outcome, chosen: float, opposite: float) -> tuple[float, float]:
    """Map (chosen, opposite) reserves back to (yes, no)."""
    if outcome == "yes":
        return chosen, opposite
    return opposite, chosen


def _bootstrap_first_trade(stake_in: float, outcome: Outcome, epsilon: float) -> TradeResult:
    yes, no = _split(outcome, stake_in, epsilon)
    return TradeResult(
        shares_bought=stake_in,
        avg_price=1.0,
        new_yes_reserve=yes,
        new_no_reserve=no,
        new_k=stake_in * epsilon,
    )


def buy_shares(
    stake_in: float,
    outcome: Outcome,
    state: ReserveState,
    step: float = DEFAULT_STEP,
    epsilon: float = EPSILON,
) -> TradeResult:
    """Spend ``stake_in`` buying ``outcome`` shares along the curve.

    An empty pool (both reserves zero) is bootstrapped by the first trade:
    shares are sold 1:1 and the opposite reserve is set to ``epsilon`` so
    the next price query is defined. The resulting price is close to 100% until
    another trade or a re-bootstrap moves it.

    Otherwise each step buys ``step`` shares at the current spot price,
    moving them out of the chosen reserve and the cost into the opposite
    one. The last step spends only what is left of the budget. Stakes
    larger than the pool never fail: once the chosen reserve is drained the
    price is 1 and the rest of the stake buys shares one for one.
    """
    if state.yes_reserve == 0 and state.no_reserve == 0:
        return _bootstrap_first_trade(stake_in, outcome, epsilon)

    chosen = state.reserve(outcome)
    opposite = state.opposite_reserve(outcome)
    spent = 0.0
    shares = 0.0

    while spent < stake_in:
        remaining = stake_in - spent
        if chosen <= 0:
            # Chosen reserve exhausted; price is 1 from here on
            shares += remaining
            spent += remaining
            opposite += remaining
            chosen = 0.0
            break
        price = opposite / (chosen + opposite)
        if price <= 0:
            break
        this_step = min(step, chosen)
        cost = price * this_step
        if cost >= remaining:
            partial = remaining / price
            shares += partial
            spent += remaining
            chosen -= partial
            opposite += remaining
            break
        shares += this_step
        spent += cost
        chosen -= this_step
        opposite += cost

    yes, no = _split(outcome, chosen, opposite)
    return TradeResult(
        shares_bought=shares,
        avg_price=spent / shares if shares > 0 else 0.0,
        new_yes_reserve=yes,
        new_no_reserve=no,
        new_k=yes * no,
    )


def sell_shares(
    shares_to_sell: float,
    outcome: Outcome,
    state: ReserveState,
    step: float = DEFAULT_STEP,
) -> TradeResult:
    """Sell ``shares_to_sell`` back to the pool, walking the curve in reverse.

    Shares return to the chosen reserve and the proceeds leave the opposite
    one. ``shares_bought`` is reported negative. Proceeds have no floor: the
    outcome's price keeps falling as more is sold.
    """
    if state.yes_reserve + state.no_reserve == 0:
        raise MarketNotSeededError()

    chosen = state.reserve(outcome)
    opposite = state.opposite_reserve(outcome)
    proceeds = 0.0
    remaining = shares_to_sell

    while remaining > 0:
        price = opposite / (chosen + opposite)
        this_step = min(step, remaining)
        value = this_step * price
        proceeds += value
        remaining -= this_step
        chosen += this_step
        opposite -= value

    yes, no = _split(outcome, chosen, opposite)
    return TradeResult(
        shares_bought=-shares_to_sell,
        avg_price=proceeds / shares_to_sell if shares_to_sell > 0 else 0.0,
        new_yes_reserve=yes,
        new_no_reserve=no,
        new_k=yes * no,
    )


def quote_exact_buy(stake_in: float, outcome: Outcome, state: ReserveState) -> TradeResult:
    """Closed-form constant-product buy on the pre-trade k.

    (opposite + stake) * (chosen - shares) = k

    This is a different curve from buy_shares, not its limit: the walk
    prices each step at opposite / (yes + no), while the marginal price of
    x * y = k is opposite / chosen. On a balanced pool a small stake buys
    about half as many shares here as along the walk, and k is held exactly.
    """
    if state.yes_reserve <= 0 or state.no_reserve <= 0:
        raise MarketNotSeededError()
    k = state.yes_reserve * state.no_reserve
    chosen = state.reserve(outcome)
    new_opposite = state.opposite_reserve(outcome) + stake_in
    new_chosen = k / new_opposite
    shares = chosen - new_chosen
    yes, no = _split(outcome, new_chosen, new_opposite)
    return TradeResult(
        shares_bought=shares,
        avg_price=stake_in / shares,
        new_yes_reserve=yes,
        new_no_reserve=no,
        new_k=yes * no,
    )
