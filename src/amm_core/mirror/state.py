"""Mirror state — smooths a volatile upstream probability into display odds.

Every feed reading updates the raw probability. The display probability
follows it until a reading jumps at least ``spike_threshold`` away from the
last stable value; the display is then frozen at that stable value until
the feed settles (``stabilize_need`` consecutive stable readings) or the
fail-safe timeout expires.

While frozen, a reading counts as stable along one of two paths:

  reversion: close to the previous reading and back near the pre-spike anchor
  plateau:   close to the previous reading and to a newly seeded price level

State lives in process memory and resets on restart.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from amm_core.config.schema import MirrorConfig
from amm_core.errors import InvalidInputError
from amm_core.execution.locks import KeyedLocks
from amm_core.models import FeedReading, FreezeReason, MirrorMarket, MirrorSnapshot, UnfreezeReason

log = structlog.get_logger("mirror_state")


@dataclass
class _Tracked:
    key: str
    title: str
    volume_usd: float | None
    raw: float
    display: float
    last_stable: float
    last_update: float
    frozen: bool = False
    freeze_reason: FreezeReason | None = None
    stable_count: int = 0
    frozen_at: float | None = None
    previous_raw: float | None = None
    plateau_anchor: float | None = None

    def pin(self) -> None:
        self.display = self.last_stable

    def accept(self, prob_yes: float) -> None:
        """Make ``prob_yes`` the new baseline and drop all freeze bookkeeping."""
        self.raw = prob_yes
        self.display = prob_yes
        self.last_stable = prob_yes
        self.frozen = False
        self.freeze_reason = None
        self.stable_count = 0
        self.frozen_at = None
        self.previous_raw = None
        self.plateau_anchor = None

    def view(self) -> MirrorMarket:
        return MirrorMarket(
            key=self.key,
            title=self.title,
            volume_usd=self.volume_usd,
            prob_yes_raw=self.raw,
            prob_no_raw=1 - self.raw,
            prob_yes_display=self.display,
            prob_no_display=1 - self.display,
            frozen=self.frozen,
            freeze_reason=self.freeze_reason,
            last_stable_yes=self.last_stable,
            last_update=self.last_update,
        )


class MirrorState:
    """Per-key freeze state machine. Safe to drive from several threads."""

    def __init__(
        self,
        config: MirrorConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or MirrorConfig()
        self._clock = clock
        self._locks = KeyedLocks()
        self._guard = threading.Lock()
        self._markets: dict[str, _Tracked] = {}
        self._updated_at = clock()

    # ── Feed input ────────────────────────────────────────────

    def upsert_feed_reading(
        self,
        key: str,
        prob_yes: float,
        title: str = "",
        volume_usd: float | None = None,
    ) -> MirrorMarket:
        """Apply one raw reading and return the resulting market view."""
        if not key:
            raise InvalidInputError("market key must not be empty")
        if not 0.0 <= prob_yes <= 1.0:
            raise InvalidInputError(f"probability must be in [0, 1], got {prob_yes}")

        with self._locks.hold(key):
            now = self._clock()
            with self._guard:
                market = self._markets.get(key)
                if market is None:
                    market = _Tracked(
                        key=key,
                        title=title,
                        volume_usd=volume_usd,
                        raw=prob_yes,
                        display=prob_yes,
                        last_stable=prob_yes,
                        last_update=now,
                    )
                    self._markets[key] = market
                    self._updated_at = now
                    log.info("mirror_initialized", key=key, prob_yes=round(prob_yes, 4))
                    return market.view()

            market.raw = prob_yes
            market.title = title or market.title
            market.volume_usd = volume_usd
            market.last_update = now

            if not market.frozen:
                self._tick_unfrozen(market, prob_yes, now)
            elif market.freeze_reason is FreezeReason.MANUAL:
                market.pin()
            else:
                self._tick_frozen(market, prob_yes, now)

            self._touch(now)
            return market.view()

    def apply(self, reading: FeedReading) -> MirrorMarket:
        return self.upsert_feed_reading(
            reading.key, reading.prob_yes, reading.title, reading.volume_usd,
        )

    def _tick_unfrozen(self, market: _Tracked, prob_yes: float, now: float) -> None:
        threshold = self.config.spike_threshold
        delta = abs(prob_yes - market.last_stable)
        if delta < threshold:
            market.display = prob_yes
            market.last_stable = prob_yes
            return

        market.frozen = True
        market.freeze_reason = FreezeReason.SPIKE
        market.stable_count = 0
        market.frozen_at = now
        # The spike reading is the reference for the next consecutive check
        market.previous_raw = prob_yes
        market.plateau_anchor = None
        market.pin()
        log.info(
            "mirror_frozen",
            key=market.key,
            reason=FreezeReason.SPIKE.value,
            stable=round(market.last_stable, 4),
            raw=round(prob_yes, 4),
            delta=round(delta, 4),
        )

    def _tick_frozen(self, market: _Tracked, prob_yes: float, now: float) -> None:
        threshold = self.config.spike_threshold
        previous = market.previous_raw if market.previous_raw is not None else market.last_stable
        near_previous = abs(prob_yes - previous) < threshold
        near_anchor = abs(prob_yes - market.last_stable) < threshold

        if market.plateau_anchor is None and near_previous and not near_anchor:
            market.plateau_anchor = prob_yes

        near_plateau = (
            market.plateau_anchor is not None
            and abs(prob_yes - market.plateau_anchor) < threshold
        )
        stable = near_previous and (near_anchor or near_plateau)

        if stable:
            market.stable_count += 1
        else:
            market.stable_count = 0
            if not near_previous or (market.plateau_anchor is not None and not near_plateau):
                market.plateau_anchor = None

        market.previous_raw = prob_yes

        elapsed = now - (market.frozen_at if market.frozen_at is not None else now)
        if elapsed >= self.config.failsafe_seconds:
            self._release(market, prob_yes, UnfreezeReason.TIMEOUT)
        elif market.stable_count >= self.config.stabilize_need:
            self._release(market, prob_yes, UnfreezeReason.STABILIZED)
        else:
            market.pin()

    def _release(self, market: _Tracked, prob_yes: float, reason: UnfreezeReason) -> None:
        frozen_at = market.frozen_at
        market.accept(prob_yes)
        log.info(
            "mirror_unfrozen",
            key=market.key,
            reason=reason.value,
            prob_yes=round(prob_yes, 4),
            frozen_for_s=round(self._clock() - frozen_at, 1) if frozen_at is not None else None,
        )

    # ── Operator overrides ────────────────────────────────────

    def freeze_market(self, key: str) -> bool:
        """Pin the display at the last stable value until unfrozen by hand.

        Returns False when the key is unknown or already frozen.
        """
        with self._locks.hold(key):
            market = self._markets.get(key)
            if market is None or market.frozen:
                return False
            market.frozen = True
            market.freeze_reason = FreezeReason.MANUAL
            market.stable_count = 0
            market.frozen_at = self._clock()
            market.pin()
            self._touch(market.frozen_at)
        log.info("mirror_frozen", key=key, reason=FreezeReason.MANUAL.value)
        return True

    def unfreeze_market(self, key: str) -> bool:
        """Snap the display to the current raw reading."""
        with self._locks.hold(key):
            market = self._markets.get(key)
            if market is None or not market.frozen:
                return False
            market.accept(market.raw)
            self._touch(self._clock())
        log.info("mirror_unfrozen", key=key, reason=UnfreezeReason.MANUAL.value)
        return True

    def release_expired(self) -> list[str]:
        """Apply the fail-safe timeout to spike freezes between feed ticks.

        Expired markets unfreeze at their latest raw reading. Returns the keys
        released.
        """
        released: list[str] = []
        now = self._clock()
        for key in self.keys():
            with self._locks.hold(key):
                market = self._markets[key]
                if (
                    not market.frozen
                    or market.freeze_reason is not FreezeReason.SPIKE
                    or market.frozen_at is None
                    or now - market.frozen_at < self.config.failsafe_seconds
                ):
                    continue
                self._release(market, market.raw, UnfreezeReason.TIMEOUT)
                released.append(key)
        if released:
            self._touch(now)
        return released

    # ── Readers ───────────────────────────────────────────────

    def keys(self) -> list[str]:
        with self._guard:
            return list(self._markets)

    def get_market(self, key: str) -> MirrorMarket | None:
        with self._locks.hold(key):
            market = self._markets.get(key)
            return market.view() if market is not None else None

    def display_probability(self, key: str) -> float | None:
        market = self.get_market(key)
        return market.prob_yes_display if market is not None else None

    def get_snapshot(self) -> MirrorSnapshot:
        markets = {}
        for key in self.keys():
            view = self.get_market(key)
            if view is not None:
                markets[key] = view
        return MirrorSnapshot(markets=markets, updated_at=self._updated_at)

    def _touch(self, now: float) -> None:
        with self._guard:
            self._updated_at = now
