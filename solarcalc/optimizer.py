# -*- coding: utf-8 -*-
"""
Plan recommender: brute-force search over (panels, batteries) packages.

Every supported package is simulated and priced; packages exporting more
than they still import are dropped, and four independent winners are picked
from the rest.
"""

import logging
import math
from dataclasses import dataclass, asdict

import numpy as np
import pandas as pd

from solarcalc.financial import (
    PHASE_PANEL_LIMITS, check_phase, calculate_system_cost,
    payback_years, roi_percent,
)
from solarcalc.pricing_table import (
    PANEL_WATTAGE, PEAK_SUN_HOURS, DAYS_PER_MONTH, BATTERY_CAPACITY_KWH,
    MIN_PANELS, MAX_PANELS, MAX_BATTERIES,
)
from solarcalc.solar_flow import clamp_input, simulate_solar

logger = logging.getLogger(__name__)

HIGH_OFFSET_RANGE = (90, 99)   # saved percentage, inclusive
SAVINGS_TIE_TOLERANCE = 0.1    # RM

# Savings-curve view limits
CURVE_PANEL_RANGE = (6, 54)
CURVE_MAX_BATTERIES = 10


@dataclass(frozen=True)
class RecommendationResult:
    panels: int
    batteries: int
    system_cost_cash: float
    system_cost_instalment: float
    monthly_savings: float
    saved_percentage: float
    new_bill_amount: float
    payback_years_cash: float
    payback_years_instalment: float
    roi_percentage: float
    generation: float
    inverter_size: str
    new_import_kwh: float
    new_export_kwh: float
    battery_utilization: float

    @property
    def kwp(self):
        return self.panels * PANEL_WATTAGE / 1000

    @property
    def is_feasible(self):
        return self.new_export_kwh <= self.new_import_kwh


@dataclass(frozen=True)
class Recommendations:
    lowest_payback: RecommendationResult = None
    usage_matched: RecommendationResult = None
    high_offset: RecommendationResult = None
    max_saving: RecommendationResult = None

    def as_dict(self):
        """Strategy name -> selected package (or None)."""
        return {
            "lowest_payback": self.lowest_payback,
            "usage_matched": self.usage_matched,
            "high_offset": self.high_offset,
            "max_saving": self.max_saving,
        }

    @property
    def is_empty(self):
        return all(plan is None for plan in self.as_dict().values())


def evaluate_plan(usage_kwh, daytime_percentage, panels, batteries, phase="single"):
    """
    Simulate and price a single package.

    Returns None when the panel count has no row in the pricing table.
    """
    cost = calculate_system_cost(panels, batteries, phase)
    if cost is None:
        return None

    sim = simulate_solar(usage_kwh, daytime_percentage, panels, batteries)
    original = sim.original_bill.final_total
    saved_pct = sim.monthly_savings / original * 100 if original > 0 else 0.0

    capacity_monthly = batteries * BATTERY_CAPACITY_KWH * DAYS_PER_MONTH
    utilization = sim.battery_charge / capacity_monthly if capacity_monthly > 0 else 0.0

    return RecommendationResult(
        panels=panels,
        batteries=batteries,
        system_cost_cash=cost.cash_price,
        system_cost_instalment=cost.instalment_price,
        monthly_savings=sim.monthly_savings,
        saved_percentage=saved_pct,
        new_bill_amount=sim.new_bill.final_total,
        payback_years_cash=payback_years(cost.cash_price, sim.monthly_savings),
        payback_years_instalment=payback_years(cost.instalment_price, sim.monthly_savings),
        roi_percentage=roi_percent(cost.cash_price, sim.monthly_savings),
        generation=sim.solar_generation_monthly,
        inverter_size=cost.inverter_size,
        new_import_kwh=sim.grid_import,
        new_export_kwh=sim.export_units,
        battery_utilization=utilization,
    )


def panel_bounds(phase, roof_limit=None):
    """Inclusive panel range searched for a phase and optional roof ceiling."""
    check_phase(phase)
    max_panels = min(PHASE_PANEL_LIMITS[phase], MAX_PANELS)
    if roof_limit is not None:
        max_panels = min(max_panels, int(roof_limit))
    return MIN_PANELS, max_panels


def feasible_plans(usage_kwh, daytime_percentage, phase="single", roof_limit=None):
    """
    All priced packages within the search grid that do not export more than
    they import.

    Parameters:
    -----------
    usage_kwh : float
        Monthly usage in kWh
    daytime_percentage : float
        Share of usage during daylight hours, 0-100
    phase : str
        "single" or "three"
    roof_limit : int, optional
        Most panels the roof can take; None for no limit

    Returns:
    --------
    list
        RecommendationResult for every feasible cell
    """
    min_panels, max_panels = panel_bounds(phase, roof_limit)
    results = []
    skipped = 0
    for panels in range(min_panels, max_panels + 1):
        for batteries in range(0, MAX_BATTERIES + 1):
            result = evaluate_plan(usage_kwh, daytime_percentage, panels, batteries, phase)
            if result is None:
                logger.warning("No pricing tier for %d panels, skipping", panels)
                break
            if not result.is_feasible:
                skipped += 1
                continue
            results.append(result)

    logger.debug("Grid %d-%d panels x 0-%d batteries: %d feasible, %d exporting more than importing",
                 min_panels, max_panels, MAX_BATTERIES, len(results), skipped)
    return results


def usage_targets(usage_kwh, daytime_percentage):
    """Panel and battery counts that would just cover usage and nightly demand."""
    usage_kwh = clamp_input(usage_kwh)
    daytime_percentage = clamp_input(daytime_percentage, 100)
    kw_per_panel = PANEL_WATTAGE / 1000
    target_panels = usage_kwh / DAYS_PER_MONTH / PEAK_SUN_HOURS / kw_per_panel
    night_daily = usage_kwh * (1 - daytime_percentage / 100) / DAYS_PER_MONTH
    target_batteries = night_daily / BATTERY_CAPACITY_KWH
    return target_panels, target_batteries


def _lowest_payback(results):
    return min(results, key=lambda r: r.payback_years_cash)


def _usage_matched(results, target_panels, target_batteries):
    return min(results, key=lambda r: abs(r.panels - target_panels) + abs(r.batteries - target_batteries))


def _high_offset(results):
    low, high = HIGH_OFFSET_RANGE
    candidates = [r for r in results if low <= r.saved_percentage <= high]
    if not candidates:
        return None
    return min(candidates, key=lambda r: r.system_cost_cash)


def _max_saving(results):
    best = max(r.monthly_savings for r in results)
    tied = [r for r in results if best - r.monthly_savings <= SAVINGS_TIE_TOLERANCE]
    return min(tied, key=lambda r: r.system_cost_cash)


def recommend(usage_kwh, daytime_percentage, phase="single", roof_limit=None):
    """
    Pick the four recommended packages for a household.

    - lowest_payback: shortest cash payback
    - usage_matched: closest to the packages that just cover usage
    - high_offset: cheapest package saving 90-99 % of the bill
    - max_saving: largest monthly saving, cheapest on a tie

    Any of them may be None; all four are None when nothing is feasible.
    Usage and daytime share are clamped like ``simulate_solar`` clamps them.
    """
    usage_kwh = clamp_input(usage_kwh)
    daytime_percentage = clamp_input(daytime_percentage, 100)
    results = feasible_plans(usage_kwh, daytime_percentage, phase, roof_limit)
    if not results:
        logger.info("No feasible configuration for %.0f kWh (%s phase, roof limit %s)",
                    usage_kwh, phase, roof_limit)
        return Recommendations()
    return select_recommendations(results, usage_kwh, daytime_percentage)


def select_recommendations(results, usage_kwh, daytime_percentage):
    """Apply the four selection strategies to already evaluated packages."""
    if not results:
        return Recommendations()
    target_panels, target_batteries = usage_targets(usage_kwh, daytime_percentage)
    return Recommendations(
        lowest_payback=_lowest_payback(results),
        usage_matched=_usage_matched(results, target_panels, target_batteries),
        high_offset=_high_offset(results),
        max_saving=_max_saving(results),
    )


def results_frame(results):
    """Tabulate recommendation results, one row per package."""
    rows = []
    for result in results:
        row = asdict(result)
        row["kwp"] = result.kwp
        rows.append(row)
    return pd.DataFrame(rows)


def savings_curves(usage_kwh, daytime_percentage):
    """
    Savings against panel count, one curve per battery count.

    Battery counts run from 0 to the number needed to cover nightly demand,
    capped at CURVE_MAX_BATTERIES.

    Returns:
    --------
    pandas.DataFrame
        Columns: batteries, panels, savings, bill, export, import, saved_percentage
    """
    usage_kwh = clamp_input(usage_kwh)
    daytime_percentage = clamp_input(daytime_percentage, 100)
    night_daily = usage_kwh / DAYS_PER_MONTH * (1 - daytime_percentage / 100)
    battery_limit = min(math.ceil(night_daily / BATTERY_CAPACITY_KWH), CURVE_MAX_BATTERIES)
    panel_counts = np.arange(CURVE_PANEL_RANGE[0], CURVE_PANEL_RANGE[1] + 1)

    rows = []
    for batteries in range(0, battery_limit + 1):
        for panels in panel_counts:
            sim = simulate_solar(usage_kwh, daytime_percentage, int(panels), batteries)
            original = sim.original_bill.final_total
            rows.append({
                'batteries': batteries,
                'panels': int(panels),
                'savings': sim.monthly_savings,
                'bill': sim.new_bill.final_total,
                'export': sim.export_units,
                'import': sim.grid_import,
                'saved_percentage': sim.monthly_savings / original * 100 if original > 0 else 0.0,
            })
    return pd.DataFrame(rows, columns=['batteries', 'panels', 'savings', 'bill',
                                       'export', 'import', 'saved_percentage'])


def crossover_panels(curves):
    """First panel count per battery curve where export exceeds import, else None."""
    crossovers = {}
    for batteries, curve in curves.groupby('batteries'):
        over = curve[curve['export'] > curve['import']]
        crossovers[int(batteries)] = int(over['panels'].min()) if not over.empty else None
    return crossovers
