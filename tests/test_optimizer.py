"""Tests for the plan recommender grid search."""

import math

import pytest

from solarcalc.financial import NO_PAYBACK_YEARS
from solarcalc.optimizer import (
    Recommendations,
    crossover_panels,
    evaluate_plan,
    feasible_plans,
    panel_bounds,
    recommend,
    results_frame,
    savings_curves,
    select_recommendations,
    usage_targets,
)


@pytest.fixture(scope="module")
def reference_plans():
    return feasible_plans(1200, 30, "single")


@pytest.fixture(scope="module")
def reference_recommendations():
    return recommend(1200, 30, "single")


class TestEvaluatePlan:
    def test_reference_plan(self):
        plan = evaluate_plan(1200, 30, 12, 1)
        assert plan.system_cost_cash == 28600
        assert plan.system_cost_instalment == 31170
        assert plan.monthly_savings == pytest.approx(412.602811912)
        assert plan.saved_percentage == pytest.approx(412.602811912 / 573.01696 * 100)
        assert plan.payback_years_cash == pytest.approx(28600 / (412.602811912 * 12))
        assert plan.new_import_kwh == pytest.approx(492.51)
        assert plan.new_export_kwh == pytest.approx(35.1)
        assert plan.battery_utilization == pytest.approx(1.0)
        assert plan.kwp == pytest.approx(7.44)
        assert plan.is_feasible

    def test_no_battery_utilization(self):
        assert evaluate_plan(1200, 30, 12, 0).battery_utilization == 0.0

    def test_unsupported_panels(self):
        assert evaluate_plan(1200, 30, 5, 0) is None

    def test_three_phase_price(self):
        plan = evaluate_plan(1200, 30, 10, 0, "three")
        assert plan.system_cost_cash == 19800 + 3350
        assert plan.inverter_size == "10 kWac Three Phase"


class TestFeasiblePlans:
    def test_never_exports_more_than_imports(self, reference_plans):
        assert reference_plans
        for plan in reference_plans:
            assert plan.new_export_kwh <= plan.new_import_kwh

    def test_single_phase_ceiling(self, reference_plans):
        assert max(plan.panels for plan in reference_plans) <= 22
        assert min(plan.panels for plan in reference_plans) >= 6

    def test_infeasible_cells_dropped(self, reference_plans):
        """Without a battery 19+ panels export more than the 840 kWh imported at night."""
        cells = {(plan.panels, plan.batteries) for plan in reference_plans}
        assert (18, 0) in cells
        assert (19, 0) not in cells

    def test_bounds(self):
        assert panel_bounds("single") == (6, 22)
        assert panel_bounds("three") == (6, 56)
        assert panel_bounds("three", roof_limit=30) == (6, 30)

    def test_unknown_phase(self):
        with pytest.raises(ValueError):
            feasible_plans(1200, 30, "two")


class TestRecommend:
    def test_all_found(self, reference_recommendations):
        assert reference_recommendations.lowest_payback is not None
        assert reference_recommendations.usage_matched is not None
        assert reference_recommendations.max_saving is not None

    def test_selections_are_feasible(self, reference_recommendations):
        for plan in reference_recommendations.as_dict().values():
            if plan is not None:
                assert plan.new_export_kwh <= plan.new_import_kwh

    def test_lowest_payback(self, reference_plans, reference_recommendations):
        best = min(plan.payback_years_cash for plan in reference_plans)
        assert reference_recommendations.lowest_payback.payback_years_cash == best

    def test_max_saving(self, reference_plans, reference_recommendations):
        best = max(plan.monthly_savings for plan in reference_plans)
        assert reference_recommendations.max_saving.monthly_savings >= best - 0.1

    def test_usage_matched(self, reference_plans, reference_recommendations):
        target_panels, target_batteries = usage_targets(1200, 30)

        def distance(plan):
            return abs(plan.panels - target_panels) + abs(plan.batteries - target_batteries)

        best = min(distance(plan) for plan in reference_plans)
        assert distance(reference_recommendations.usage_matched) == pytest.approx(best)

    def test_high_offset_range(self, reference_plans, reference_recommendations):
        plan = reference_recommendations.high_offset
        candidates = [p for p in reference_plans if 90 <= p.saved_percentage <= 99]
        if candidates:
            assert 90 <= plan.saved_percentage <= 99
            assert plan.system_cost_cash == min(p.system_cost_cash for p in candidates)
        else:
            assert plan is None

    def test_roof_below_table_minimum(self):
        result = recommend(1200, 30, "single", roof_limit=5)
        assert result == Recommendations()
        assert result.is_empty
        assert all(plan is None for plan in result.as_dict().values())

    def test_no_usage_saves_nothing(self):
        """With no demand only packages whose batteries soak up all the generation pass the filter."""
        cells = {(plan.panels, plan.batteries): plan for plan in feasible_plans(0, 30)}
        # 6 panels make 13.02 kWh/day: one 12.87 kWh battery spills, two absorb it all
        assert (6, 0) not in cells
        assert (6, 1) not in cells
        assert cells[(6, 2)].new_export_kwh == 0
        assert cells[(6, 2)].new_import_kwh == 0

        result = recommend(0, 30)
        assert result.lowest_payback is not None
        assert result.high_offset is None
        for plan in result.as_dict().values():
            if plan is not None:
                assert plan.monthly_savings == 0
                assert plan.payback_years_cash == NO_PAYBACK_YEARS
                assert plan.payback_years_instalment == NO_PAYBACK_YEARS

    def test_nan_daytime_treated_as_zero(self):
        result = recommend(1200, math.nan)
        assert result == recommend(1200, 0)
        for plan in result.as_dict().values():
            if plan is not None:
                assert not math.isnan(plan.monthly_savings)

    def test_daytime_above_100_capped(self):
        assert recommend(1200, 150) == recommend(1200, 100)

    def test_negative_usage_treated_as_zero(self):
        assert recommend(-50, 30) == recommend(0, 30)

    def test_select_matches_recommend(self, reference_plans, reference_recommendations):
        assert select_recommendations(reference_plans, 1200, 30) == reference_recommendations

    def test_select_from_nothing(self):
        assert select_recommendations([], 1200, 30).is_empty

    def test_roof_limit_respected(self):
        result = recommend(2500, 40, "three", roof_limit=25)
        for plan in result.as_dict().values():
            if plan is not None:
                assert plan.panels <= 25


class TestTargets:
    def test_usage_targets(self):
        target_panels, target_batteries = usage_targets(1200, 30)
        assert target_panels == pytest.approx(40 / 2.17)
        assert target_batteries == pytest.approx(28 / 12.87)

    def test_targets_never_nan_or_negative(self):
        assert usage_targets(1200, math.nan) == usage_targets(1200, 0)
        target_panels, target_batteries = usage_targets(1200, 150)
        assert target_panels == pytest.approx(40 / 2.17)
        assert target_batteries == 0

    def test_curves_with_out_of_range_daytime(self):
        curves = savings_curves(1200, 150)
        assert sorted(curves['batteries'].unique()) == [0]
        assert not curves['savings'].isna().any()


class TestCurves:
    def test_shape(self):
        curves = savings_curves(1200, 30)
        # ceil(28 / 12.87) = 3 -> battery curves 0..3, panels 6..54
        assert sorted(curves['batteries'].unique()) == [0, 1, 2, 3]
        assert len(curves) == 4 * 49
        assert list(curves.columns) == ['batteries', 'panels', 'savings', 'bill',
                                        'export', 'import', 'saved_percentage']

    def test_battery_curves_capped(self):
        curves = savings_curves(20000, 0)
        assert curves['batteries'].max() == 10

    def test_crossover(self):
        crossovers = crossover_panels(savings_curves(1200, 30))
        assert crossovers[0] == 19
        assert set(crossovers) == {0, 1, 2, 3}

    def test_results_frame(self, reference_plans):
        frame = results_frame(reference_plans)
        assert len(frame) == len(reference_plans)
        assert 'kwp' in frame.columns
        assert 'payback_years_cash' in frame.columns
