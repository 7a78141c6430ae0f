"""Structured logging."""

from amm_core.logging.setup import bind_market, clear_market, get_logger, setup_logging

__all__ = ["bind_market", "clear_market", "get_logger", "setup_logging"]
