"""MarketTrader — serialized trade execution against persisted reserves."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

import structlog

from amm_core.amm.engine import buy_shares, sell_shares
from amm_core.amm.pricing import calculate_amm_pricing
from amm_core.config.schema import AmmConfig
from amm_core.errors import ConcurrentModificationError, InvalidInputError, MarketResolvedError
from amm_core.execution.locks import KeyedLocks
from amm_core.logging import bind_market, clear_market
from amm_core.models import ExecutionResult, Outcome, PricingResult, TradeResult
from amm_core.store.base import ReserveStore, StoredMarket

log = structlog.get_logger("trader")


def _validate_outcome(outcome: str) -> None:
    if outcome not in ("yes", "no"):
        raise InvalidInputError(f"outcome must be 'yes' or 'no', got {outcome!r}")


class MarketTrader:
    """Prices and commits trades, one writer per market at a time.

    Mutations on the same market are serialized by an in-process lock, and
    every write carries the version it was computed from. A write that loses
    a race (e.g. against a re-bootstrap from another process) is recomputed
    from fresh reserves up to ``max_trade_retries`` times before the
    ConcurrentModificationError reaches the caller.
    """

    def __init__(
        self,
        store: ReserveStore,
        config: AmmConfig | None = None,
        locks: KeyedLocks | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.config = config or AmmConfig()
        self.locks = locks or KeyedLocks()
        self._now = now or (lambda: datetime.now(timezone.utc))

    # ── Preview ───────────────────────────────────────────────

    def preview(self, market_id: str, stake: float, outcome: Outcome) -> PricingResult:
        """Quote a stake without committing anything."""
        _validate_outcome(outcome)
        market = self.store.load_reserves(market_id)
        return calculate_amm_pricing(
            market.reserves,
            stake,
            outcome,
            fee_bps=self.config.fee_bps,
            min_probability=self.config.min_probability,
        )

    # ── Execution ─────────────────────────────────────────────

    def buy(self, market_id: str, stake: float, outcome: Outcome) -> ExecutionResult:
        """Buy with ``stake``: quote at displayed odds, then walk the curve.

        The platform fee comes off the stake first; only the net stake moves
        the reserves.
        """
        _validate_outcome(outcome)
        if stake <= 0:
            raise InvalidInputError("stake must be positive")

        def compute(market: StoredMarket) -> tuple[PricingResult | None, TradeResult]:
            reserves = market.reserves
            if reserves.yes_reserve == 0 and reserves.no_reserve == 0:
                # First trade on an empty pool; there are no displayed odds yet
                fee = stake * self.config.fee_bps / 10000
                trade = buy_shares(
                    stake - fee, outcome, reserves,
                    step=self.config.step, epsilon=self.config.epsilon,
                )
                return None, trade.model_copy(update={"platform_fee": fee})
            pricing = calculate_amm_pricing(
                reserves,
                stake,
                outcome,
                fee_bps=self.config.fee_bps,
                min_probability=self.config.min_probability,
            )
            trade = buy_shares(
                pricing.net_stake, outcome, reserves,
                step=self.config.step, epsilon=self.config.epsilon,
            )
            return pricing, trade.model_copy(update={"platform_fee": pricing.platform_fee})

        return self._commit(market_id, outcome, "buy", compute)

    def sell(self, market_id: str, shares: float, outcome: Outcome) -> ExecutionResult:
        """Sell ``shares`` of ``outcome`` back to the pool."""
        _validate_outcome(outcome)
        if shares <= 0:
            raise InvalidInputError("shares must be positive")

        def compute(market: StoredMarket) -> tuple[PricingResult | None, TradeResult]:
            return None, sell_shares(shares, outcome, market.reserves, step=self.config.step)

        return self._commit(market_id, outcome, "sell", compute)

    def resolve(self, market_id: str) -> None:
        """Close the market; reserves become read-only."""
        with self.locks.hold(market_id):
            self.store.resolve_market(market_id)
        log.info("market_resolved", market_id=market_id)

    def _commit(
        self,
        market_id: str,
        outcome: Outcome,
        side: str,
        compute: Callable[[StoredMarket], tuple[PricingResult | None, TradeResult]],
    ) -> ExecutionResult:
        bind_market(market_id)
        try:
            with self.locks.hold(market_id):
                return self._attempt(market_id, outcome, side, compute)
        finally:
            clear_market()

    def _attempt(
        self,
        market_id: str,
        outcome: Outcome,
        side: str,
        compute: Callable[[StoredMarket], tuple[PricingResult | None, TradeResult]],
    ) -> ExecutionResult:
        attempts = self.config.max_trade_retries + 1
        attempt = 0
        while True:
            attempt += 1
            market = self.store.load_reserves(market_id)
            if market.resolved:
                raise MarketResolvedError(market_id)

            pricing, trade = compute(market)
            try:
                version = self.store.save_reserves(
                    market_id, trade.reserves, expected_version=market.version,
                )
            except ConcurrentModificationError:
                log.warning("trade_write_conflict", attempt=attempt, max_attempts=attempts)
                if attempt >= attempts:
                    raise
                continue

            try:
                self.store.append_snapshot(market_id, trade.reserves, self._now())
            except Exception:
                # Reserves are already committed; the trade stands without its snapshot
                log.exception("trade_snapshot_failed", version=version)

            log.info(
                "trade_executed",
                side=side,
                outcome=outcome,
                shares=trade.shares_bought,
                avg_price=trade.avg_price,
                platform_fee=trade.platform_fee,
                version=version,
            )
            return ExecutionResult(
                market_id=market_id,
                outcome=outcome,
                pricing=pricing,
                trade=trade,
                version=version,
            )
