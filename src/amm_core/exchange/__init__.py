"""Upstream odds feed clients."""

from amm_core.exchange.polymarket import PolymarketClient, extract_prob_yes

__all__ = ["PolymarketClient", "extract_prob_yes"]
