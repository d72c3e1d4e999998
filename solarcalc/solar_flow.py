# -*- coding: utf-8 -*-
"""
Solar + battery energy routing for one representative day, scaled to a
30-day month and billed before and after the installation.

Routing priority:
- daytime solar serves the home first, then charges the battery, then exports
- the battery only serves the home at night
- the grid covers whatever is left
"""

import logging
import math
from dataclasses import dataclass, replace

from solarcalc.pricing_table import (
    PANEL_WATTAGE, PEAK_SUN_HOURS, DAYS_PER_MONTH,
    BATTERY_CAPACITY_KWH, BATTERY_DISCHARGE_EFFICIENCY,
    EXPORT_RATE,
)
from solarcalc.tariff import BillBreakdown, calculate_bill, discount_amount

logger = logging.getLogger(__name__)

# Monthly kWh totals are rounded to this many decimals so float drift from
# the day/month scaling never pushes a figure across a tariff threshold
KWH_DECIMALS = 6


@dataclass(frozen=True)
class DailyFlow:
    """Energy flows in kWh for one representative day."""
    day_demand: float
    night_demand: float
    solar_generation: float
    battery_capacity: float
    solar_to_home: float
    grid_to_home_day: float
    solar_to_battery: float
    solar_to_grid: float
    battery_usable: float
    battery_to_home: float
    grid_to_home_night: float

    @property
    def battery_stored(self):
        return self.solar_to_battery


@dataclass(frozen=True)
class SimulationResult:
    original_bill: BillBreakdown
    new_bill: BillBreakdown
    solar_generation_monthly: float
    solar_utilized: float
    battery_discharge: float
    grid_import: float
    monthly_savings: float
    demand_day: float
    demand_night: float
    battery_charge: float = 0.0   # monthly solar routed into the battery
    daily: DailyFlow = None

    @property
    def export_units(self):
        return self.new_bill.export_units


def clamp_input(value, upper=None):
    """Coerce a user figure to a float in [0, upper]; NaN and junk become 0."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value) or value < 0:
        return 0.0
    if upper is not None and value > upper:
        return float(upper)
    return value


def simulate_day(usage_kwh, daytime_percentage, panel_count, battery_count):
    """
    Route one average day of solar generation.

    Parameters:
    -----------
    usage_kwh : float
        Monthly usage in kWh
    daytime_percentage : float
        Share of usage during daylight hours, 0-100
    panel_count : int
        Number of panels
    battery_count : int
        Number of battery units

    Returns:
    --------
    DailyFlow
        Per-day flows in kWh; every input is clamped to be non-negative
    """
    usage_kwh = clamp_input(usage_kwh)
    day_share = clamp_input(daytime_percentage, 100) / 100
    panel_count = clamp_input(panel_count)
    battery_count = clamp_input(battery_count)

    daily_usage = usage_kwh / DAYS_PER_MONTH
    day_demand = daily_usage * day_share
    night_demand = daily_usage * (1 - day_share)

    solar_generation = panel_count * (PANEL_WATTAGE / 1000) * PEAK_SUN_HOURS

    # Daytime
    solar_to_home = min(solar_generation, day_demand)
    surplus = max(0.0, solar_generation - day_demand)
    grid_to_home_day = max(0.0, day_demand - solar_generation)

    battery_capacity = battery_count * BATTERY_CAPACITY_KWH
    solar_to_battery = min(surplus, battery_capacity)
    solar_to_grid = max(0.0, surplus - solar_to_battery)

    # Night-time, the battery starts with what it took in today
    battery_usable = solar_to_battery * BATTERY_DISCHARGE_EFFICIENCY
    battery_to_home = min(battery_usable, night_demand)
    grid_to_home_night = max(0.0, night_demand - battery_to_home)

    return DailyFlow(
        day_demand=day_demand,
        night_demand=night_demand,
        solar_generation=solar_generation,
        battery_capacity=battery_capacity,
        solar_to_home=solar_to_home,
        grid_to_home_day=grid_to_home_day,
        solar_to_battery=solar_to_battery,
        solar_to_grid=solar_to_grid,
        battery_usable=battery_usable,
        battery_to_home=battery_to_home,
        grid_to_home_night=grid_to_home_night,
    )


def _monthly(daily_kwh):
    return round(daily_kwh * DAYS_PER_MONTH, KWH_DECIMALS)


def calculate_solar_bill(grid_import, export_units):
    """
    Bill for the grid import left after solar, with export credit.

    The EE incentive is trued up to the band of the net-metered usage
    (import minus export), so ``ee_adjustment`` is zero without export.
    """
    bill = calculate_bill(grid_import)
    export_credit = -export_units * EXPORT_RATE
    net_metered = max(0.0, grid_import - export_units)
    ee_adjustment = discount_amount(net_metered) - bill.discount if export_units > 0 else 0.0
    return replace(bill, export_credit=export_credit, export_units=export_units,
                   ee_adjustment=ee_adjustment)


def simulate_solar(usage_kwh, daytime_percentage, panel_count, battery_count):
    """
    Monthly effect of a solar installation on the bill.

    Parameters:
    -----------
    usage_kwh : float
        Monthly usage in kWh
    daytime_percentage : float
        Share of usage during daylight hours, 0-100
    panel_count : int
        Number of panels (0 for grid only)
    battery_count : int
        Number of battery units

    Returns:
    --------
    SimulationResult
        Bills before and after solar plus monthly energy flows
    """
    usage_kwh = clamp_input(usage_kwh)
    daily = simulate_day(usage_kwh, daytime_percentage, panel_count, battery_count)

    grid_import = _monthly(daily.grid_to_home_day + daily.grid_to_home_night)
    export_units = _monthly(daily.solar_to_grid)

    original_bill = calculate_bill(usage_kwh)
    new_bill = calculate_solar_bill(grid_import, export_units)
    if export_units > grid_import:
        logger.debug("%.0f kWh exported against %.0f kWh imported", export_units, grid_import)

    return SimulationResult(
        original_bill=original_bill,
        new_bill=new_bill,
        solar_generation_monthly=_monthly(daily.solar_generation),
        solar_utilized=_monthly(daily.solar_to_home),
        battery_discharge=_monthly(daily.battery_to_home),
        grid_import=grid_import,
        monthly_savings=original_bill.final_total - new_bill.final_total,
        demand_day=_monthly(daily.day_demand),
        demand_night=_monthly(daily.night_demand),
        battery_charge=_monthly(daily.solar_to_battery),
        daily=daily,
    )
