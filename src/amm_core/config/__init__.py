"""Configuration system."""

from amm_core.config.loader import load_config
from amm_core.config.schema import AmmConfig, AppConfig, FeedConfig, MarketLink, MirrorConfig

__all__ = ["AmmConfig", "AppConfig", "FeedConfig", "MarketLink", "MirrorConfig", "load_config"]
