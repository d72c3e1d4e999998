"""Tests for system pricing, phase adjustment and payback figures."""

import pytest

from solarcalc.financial import (
    NO_PAYBACK_YEARS,
    apply_phase_adjustment,
    calculate_system_cost,
    cash_flow_projection,
    payback_years,
    roi_percent,
)
from solarcalc.pricing_table import (
    DISCOUNT_BANDS,
    SYSTEM_PRICING,
    find_discount_band,
    find_pricing_tier,
)


class TestPricingTable:
    def test_tiers_sorted_and_increasing(self):
        panels = [tier.panels for tier in SYSTEM_PRICING]
        assert panels == list(range(6, 57))
        cash = [tier.cash_price for tier in SYSTEM_PRICING]
        assert cash == sorted(cash)

    def test_bands_do_not_overlap(self):
        for lower, upper in zip(DISCOUNT_BANDS, DISCOUNT_BANDS[1:]):
            assert lower.max < upper.min

    def test_band_lookup(self):
        assert find_discount_band(0) is None
        assert find_discount_band(1).discount_sen == -25
        assert find_discount_band(200).discount_sen == -25
        assert find_discount_band(201).discount_sen == -24.5
        assert find_discount_band(200.5).discount_sen == -24.5
        assert find_discount_band(1000).discount_sen == -0.5
        assert find_discount_band(1000.5) is None

    def test_band_rate_in_ringgit(self):
        assert find_discount_band(100).rate == pytest.approx(-0.25)

    def test_tier_lookup_exact_only(self):
        assert find_pricing_tier(12).cash_price == 21200
        assert find_pricing_tier(5) is None
        assert find_pricing_tier(57) is None
        assert find_pricing_tier(12.5) is None


class TestSystemCost:
    def test_panels_only(self):
        cost = calculate_system_cost(12, 0)
        assert cost.cash_price == 21200
        assert cost.instalment_price == 23170
        assert cost.inverter_size == "5 kWac Single Phase"
        assert cost.tier.panels == 12

    def test_batteries_added(self):
        cost = calculate_system_cost(12, 2)
        assert cost.cash_price == 21200 + 2 * 7400
        assert cost.instalment_price == 23170 + 2 * 8000

    def test_unsupported_panel_count(self):
        assert calculate_system_cost(5, 0) is None
        assert calculate_system_cost(57, 1) is None

    def test_three_phase_small_system(self):
        cost = calculate_system_cost(10, 0, "three")
        assert cost.cash_price == 19800 + 3350
        assert cost.instalment_price == 21640 + 3350
        assert cost.inverter_size == "10 kWac Three Phase"

    def test_three_phase_medium_system(self):
        cost = calculate_system_cost(20, 1, "three")
        assert cost.cash_price == 31200 + 7400 + 1600
        assert cost.inverter_size == "10 kWac Three Phase"

    def test_native_three_phase_tier_unchanged(self):
        cost = calculate_system_cost(30, 0, "three")
        assert cost.cash_price == 42700
        assert cost.inverter_size == "12 kWac Three Phase"

    def test_single_phase_unchanged(self):
        base = calculate_system_cost(10, 0)
        assert apply_phase_adjustment(base, 10, "single") == base

    def test_unknown_phase(self):
        with pytest.raises(ValueError):
            calculate_system_cost(10, 0, "split")


class TestPayback:
    def test_payback_simple(self):
        """24000 at RM200/month -> 10 years."""
        assert payback_years(24000, 200) == pytest.approx(10.0)

    def test_no_savings_never_pays_back(self):
        assert payback_years(24000, 0) == NO_PAYBACK_YEARS
        assert payback_years(24000, -15) == NO_PAYBACK_YEARS

    def test_roi(self):
        assert roi_percent(24000, 200) == pytest.approx(10.0)

    def test_cash_flow_projection(self):
        assert cash_flow_projection(1000, 50, years=3) == pytest.approx([-1000, -400, 200, 800])

    def test_cash_flow_default_lifetime(self):
        flows = cash_flow_projection(30000, 250)
        assert len(flows) == 26
        assert flows[0] == -30000
        assert flows[-1] == pytest.approx(-30000 + 25 * 3000)
