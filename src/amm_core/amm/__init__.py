"""AMM pricing core — CPMM engine, unified pricing, reserve bootstrapping."""

from amm_core.amm.bootstrap import bootstrap_reserves_from_probability, clamp_probability, seed_liquidity
from amm_core.amm.engine import buy_shares, get_price, quote_exact_buy, seed_market, sell_shares
from amm_core.amm.odds import calculate_payout, calculate_profit, odds_to_probability, prob_to_odds
from amm_core.amm.pricing import calculate_amm_pricing, calculate_platform_fee, create_amm_snapshot

__all__ = [
    "bootstrap_reserves_from_probability",
    "buy_shares",
    "calculate_amm_pricing",
    "calculate_payout",
    "calculate_platform_fee",
    "calculate_profit",
    "clamp_probability",
    "create_amm_snapshot",
    "get_price",
    "odds_to_probability",
    "prob_to_odds",
    "quote_exact_buy",
    "seed_liquidity",
    "seed_market",
    "sell_shares",
]
