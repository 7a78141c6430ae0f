"""Config loader — reads YAML, applies AMM_* env var overrides."""

from __future__ import annotations

import os
from pathlib import Path

import yaml

from amm_core.config.schema import AppConfig

# env var -> (section, key)
_ENV_OVERRIDES = {
    "AMM_DATABASE_URL": ("database", "url"),
    "AMM_LOG_LEVEL": ("logging", "level"),
    "AMM_LOG_FORMAT": ("logging", "format"),
    "AMM_FEED_URL": ("feed", "base_url"),
    "AMM_POLL_INTERVAL_S": ("feed", "poll_interval_s"),
    "AMM_SPIKE_THRESHOLD": ("mirror", "spike_threshold"),
    "AMM_STABILIZE_NEED": ("mirror", "stabilize_need"),
    "AMM_FAILSAFE_SEC": ("mirror", "failsafe_seconds"),
}


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load config from a YAML file, then apply env var overrides.

    If *path* is None or the file doesn't exist, returns defaults.

    Environment variable overrides:
        AMM_DATABASE_URL     -> database.url
        AMM_LOG_LEVEL        -> logging.level
        AMM_LOG_FORMAT       -> logging.format
        AMM_FEED_URL         -> feed.base_url
        AMM_POLL_INTERVAL_S  -> feed.poll_interval_s
        AMM_SPIKE_THRESHOLD  -> mirror.spike_threshold
        AMM_STABILIZE_NEED   -> mirror.stabilize_need
        AMM_FAILSAFE_SEC     -> mirror.failsafe_seconds

    Values are validated (and coerced from strings) by the schema.
    """
    data: dict = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p) as f:
                data = yaml.safe_load(f) or {}

    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            data.setdefault(section, {})[key] = value

    return AppConfig.model_validate(data)
