"""Polymarket odds feed — gamma API (gamma-api.polymarket.com).

The gamma API has no per-slug lookup, so the active-markets list is fetched
once and cached; individual markets are then found by slug locally.

outcomes and outcomePrices arrive either as JSON-encoded strings
('["Yes", "No"]') or as plain lists, and their order is not guaranteed.
YES/NO are always located by outcome name, never by position.
"""

from __future__ import annotations

import json
import math
from typing import Any

import httpx
import structlog

from amm_core.errors import FeedError, FeedMarketNotFoundError
from amm_core.exchange.cache import TTLCache
from amm_core.models import FeedReading

log = structlog.get_logger("polymarket")

_MARKETS_KEY = "markets"
_EVENTS_KEY = "events"


def _clamp01(p: float) -> float:
    return max(0.0, min(1.0, p))


def _parse_list(raw: Any) -> list[str]:
    """Parse a JSON-string list, falling back to a comma-separated one."""
    if isinstance(raw, list):
        return [str(x) for x in raw]
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = json.loads(raw)
        except ValueError:
            return [s.strip() for s in raw.split(",")]
        if isinstance(parsed, list):
            return [str(x) for x in parsed]
    return []


def _price_at(prices: list[str], index: int) -> float | None:
    if index < 0 or index >= len(prices):
        return None
    try:
        price = float(prices[index])
    except ValueError:
        return None
    return price if math.isfinite(price) else None


def extract_prob_yes(market: dict) -> float:
    """YES probability from a gamma market dict.

    Uses the YES price when present, else ``1 - NO``, else 0.5.
    """
    names = [n.strip().lower() for n in _parse_list(market.get("outcomes"))]
    prices = _parse_list(market.get("outcomePrices"))

    yes_price = _price_at(prices, names.index("yes") if "yes" in names else -1)
    if yes_price is not None:
        return _clamp01(yes_price)

    no_price = _price_at(prices, names.index("no") if "no" in names else -1)
    if no_price is not None:
        return _clamp01(1 - no_price)

    log.warning("prob_yes_fallback", slug=market.get("slug"), outcomes=market.get("outcomes"))
    return 0.5


def to_reading(market: dict, fallback_key: str = "") -> FeedReading:
    key = market.get("slug") or fallback_key
    return FeedReading(
        key=key,
        title=market.get("question") or key,
        prob_yes=extract_prob_yes(market),
        volume_usd=market.get("volume") or market.get("volumeNum"),
        one_day_price_change=market.get("oneDayPriceChange"),
        one_week_price_change=market.get("oneWeekPriceChange"),
    )


class PolymarketClient:
    """Async client for the Polymarket gamma API."""

    def __init__(
        self,
        base_url: str = "https://gamma-api.polymarket.com",
        timeout_s: float = 15.0,
        cache_ttl_s: float = 600.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport
        self._cache = TTLCache(ttl_seconds=cache_ttl_s)
        self._http: httpx.AsyncClient | None = None

    async def _get_http(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport)
        return self._http

    async def close(self) -> None:
        if self._http and not self._http.is_closed:
            await self._http.aclose()

    async def _get_list(self, path: str, params: dict[str, Any]) -> list[dict]:
        http = await self._get_http()
        try:
            resp = await http.get(f"{self.base_url}{path}", params=params)
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPStatusError as exc:
            raise FeedError(
                f"{path} returned {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise FeedError(f"{path} request failed: {exc}") from exc

        if not isinstance(body, list):
            raise FeedError(f"{path} returned {type(body).__name__}, expected a list")
        return [m for m in body if isinstance(m, dict)]

    async def get_active_markets(self) -> list[dict]:
        """Active, open markets. Cached for ``cache_ttl_s``."""
        markets = self._cache.get(_MARKETS_KEY)
        if not markets:
            markets = await self._get_list(
                "/markets", {"active": "true", "closed": "false", "limit": 500},
            )
            self._cache.set(_MARKETS_KEY, markets)
            log.info("markets_cache_refreshed", count=len(markets))
        return markets

    async def get_active_events(self) -> list[dict]:
        events = self._cache.get(_EVENTS_KEY)
        if not events:
            events = await self._get_list(
                "/events", {"active": "true", "closed": "false", "limit": 100},
            )
            self._cache.set(_EVENTS_KEY, events)
            log.info("events_cache_refreshed", count=len(events))
        return events

    async def fetch_probability(self, slug: str) -> FeedReading:
        """Current reading for one market slug (case-insensitive match).

        Raises FeedMarketNotFoundError if the slug is not among the active
        markets, FeedError on transport or upstream failures.
        """
        wanted = slug.lower()
        for market in await self.get_active_markets():
            if str(market.get("slug", "")).lower() == wanted:
                return to_reading(market, fallback_key=slug)
        raise FeedMarketNotFoundError(slug)

    async def fetch_event_markets(self, event_slug: str) -> list[FeedReading]:
        """Readings for every market nested in a multi-outcome event.

        An unknown event yields an empty list.
        """
        wanted = event_slug.lower()
        for event in await self.get_active_events():
            if str(event.get("slug", "")).lower() == wanted:
                markets = [m for m in event.get("markets") or [] if isinstance(m, dict)]
                return [to_reading(m) for m in markets]
        log.warning("event_not_found", event_slug=event_slug)
        return []

    def invalidate(self) -> None:
        self._cache.clear()
