# -*- coding: utf-8 -*-
"""
System pricing and payback figures for solar + battery packages.
"""

import logging
from dataclasses import dataclass

import numpy as np

from solarcalc.pricing_table import (
    BATTERY_COST_CASH, BATTERY_COST_INSTALMENT,
    THREE_PHASE_INVERTER, THREE_PHASE_SURCHARGES,
    MAX_PANELS_SINGLE_PHASE, MAX_PANELS_THREE_PHASE,
    find_pricing_tier,
)

logger = logging.getLogger(__name__)

SINGLE_PHASE = "single"
THREE_PHASE = "three"
PHASE_PANEL_LIMITS = {
    SINGLE_PHASE: MAX_PANELS_SINGLE_PHASE,
    THREE_PHASE: MAX_PANELS_THREE_PHASE,
}

# Reported when a system never pays for itself
NO_PAYBACK_YEARS = 999


@dataclass(frozen=True)
class SystemCost:
    cash_price: float
    instalment_price: float
    inverter_size: str
    tier: object   # PricingTier


def check_phase(phase):
    if phase not in PHASE_PANEL_LIMITS:
        raise ValueError(f"Unknown phase {phase!r}, expected one of {sorted(PHASE_PANEL_LIMITS)}")
    return phase


def apply_phase_adjustment(cost, panels, phase):
    """
    Adjust a looked-up cost for the customer's supply phase.

    Single-phase tiers installed on a three-phase supply need a three-phase
    inverter: a flat surcharge on both prices and a new inverter label.
    """
    check_phase(phase)
    if phase != THREE_PHASE:
        return cost
    for low, high, surcharge in THREE_PHASE_SURCHARGES:
        if low <= panels <= high:
            return SystemCost(
                cash_price=cost.cash_price + surcharge,
                instalment_price=cost.instalment_price + surcharge,
                inverter_size=THREE_PHASE_INVERTER,
                tier=cost.tier,
            )
    return cost


def calculate_system_cost(panels, batteries, phase=None):
    """
    Price a package of ``panels`` panels and ``batteries`` batteries.

    Parameters:
    -----------
    panels : int
        Panel count, must match a row of the pricing table exactly
    batteries : int
        Battery count
    phase : str, optional
        "single" or "three"; when given the phase surcharge is applied

    Returns:
    --------
    SystemCost or None
        None when the panel count is not a supported configuration
    """
    tier = find_pricing_tier(panels)
    if tier is None:
        logger.debug("No pricing tier for %s panels", panels)
        return None

    batteries = max(0, int(batteries))
    cost = SystemCost(
        cash_price=tier.cash_price + batteries * BATTERY_COST_CASH,
        instalment_price=tier.instalment_price + batteries * BATTERY_COST_INSTALMENT,
        inverter_size=tier.inverter_size,
        tier=tier,
    )
    if phase is not None:
        cost = apply_phase_adjustment(cost, panels, phase)
    return cost


def payback_years(cost, monthly_savings):
    """Simple payback: cost over annual savings, NO_PAYBACK_YEARS if nothing is saved."""
    annual_savings = monthly_savings * 12
    if annual_savings <= 0:
        return NO_PAYBACK_YEARS
    return cost / annual_savings


def roi_percent(cost, monthly_savings):
    """Annual return as a percentage of the upfront cost."""
    if cost <= 0:
        return 0.0
    return monthly_savings * 12 / cost * 100


def cash_flow_projection(cost, monthly_savings, years=25):
    """
    Cumulative cash position over the life of the system.

    Parameters:
    -----------
    cost : float
        Upfront system cost in RM
    monthly_savings : float
        Monthly bill reduction in RM
    years : int
        Number of years to project (default: 25)

    Returns:
    --------
    list
        Cumulative cash flow for years 0..years, year 0 being -cost
    """
    cash_flows = [-cost] + [monthly_savings * 12] * years
    return np.cumsum(cash_flows).tolist()
