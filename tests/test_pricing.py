"""Tests for unified pricing — displayed odds, fee withholding, snapshots."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from amm_core.amm.pricing import calculate_amm_pricing, calculate_platform_fee, create_amm_snapshot
from amm_core.errors import AmmError, DegenerateMarketError, InvalidInputError
from amm_core.models import ReserveState

SKEWED = ReserveState.from_reserves(8000, 2000)


class TestCalculateAmmPricing:
    def test_fee_arithmetic(self):
        p = calculate_amm_pricing(SKEWED, 100, "yes")
        assert p.display_prob_yes == pytest.approx(0.8)
        assert p.display_prob_no == pytest.approx(0.2)
        assert p.display_odds_yes == pytest.approx(1.25)
        assert p.display_odds_no == pytest.approx(5.0)
        assert p.platform_fee == pytest.approx(2.0)
        assert p.net_stake == pytest.approx(98.0)
        assert p.net_shares == pytest.approx(122.5)
        assert p.potential_payout == pytest.approx(122.5)
        assert p.potential_profit == pytest.approx(22.5)

    def test_no_side_uses_no_probability(self):
        p = calculate_amm_pricing(SKEWED, 100, "no")
        assert p.net_shares == pytest.approx(490.0)
        assert p.potential_profit == pytest.approx(390.0)

    def test_display_follows_same_side_reserve(self):
        p = calculate_amm_pricing(ReserveState.from_reserves(430, 9570), 10, "yes")
        assert p.display_prob_yes == pytest.approx(0.043)

    def test_custom_fee(self):
        p = calculate_amm_pricing(SKEWED, 100, "yes", fee_bps=0)
        assert p.platform_fee == 0
        assert p.net_shares == pytest.approx(125.0)

    def test_preview_is_idempotent(self):
        first = calculate_amm_pricing(SKEWED, 250, "no")
        second = calculate_amm_pricing(SKEWED, 250, "no")
        assert first == second

    def test_does_not_touch_reserves(self):
        before = SKEWED.model_copy()
        calculate_amm_pricing(SKEWED, 500, "yes")
        assert SKEWED == before


class TestPricingErrors:
    @pytest.mark.parametrize("yes,no", [(0, 100), (100, 0), (-1, 100)])
    def test_non_positive_reserves(self, yes, no):
        with pytest.raises(InvalidInputError):
            calculate_amm_pricing(ReserveState.from_reserves(yes, no), 10, "yes")

    @pytest.mark.parametrize("stake", [0, -10])
    def test_non_positive_stake(self, stake):
        with pytest.raises(InvalidInputError) as exc:
            calculate_amm_pricing(SKEWED, stake, "yes")
        assert exc.value.code == 1001

    def test_degenerate_probability(self):
        reserves = ReserveState.from_reserves(5, 9995)
        with pytest.raises(DegenerateMarketError) as exc:
            calculate_amm_pricing(reserves, 10, "yes")
        assert exc.value.code == 2001
        assert "rebalancing" in exc.value.message
        assert not isinstance(exc.value, InvalidInputError)
        assert isinstance(exc.value, AmmError)

    def test_degenerate_only_on_selected_side(self):
        reserves = ReserveState.from_reserves(5, 9995)
        p = calculate_amm_pricing(reserves, 10, "no")
        assert p.display_prob_no == pytest.approx(0.9995)


class TestHelpers:
    def test_platform_fee(self):
        assert calculate_platform_fee(250, 200) == pytest.approx(5.0)
        assert calculate_platform_fee(250, 0) == 0

    def test_snapshot_probabilities(self):
        ts = datetime(2026, 1, 1, tzinfo=timezone.utc)
        snap = create_amm_snapshot("m1", 430, 9570, ts)
        assert snap.market_id == "m1"
        assert snap.prob_yes == pytest.approx(0.043)
        assert snap.prob_no == pytest.approx(0.957)
        assert snap.ts == ts
