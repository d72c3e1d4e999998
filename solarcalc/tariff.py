# -*- coding: utf-8 -*-
"""
Residential tariff: usage -> bill breakdown, and the numerical inverse
bill -> usage used when a customer only knows their monthly bill.
"""

import logging
import math
from dataclasses import dataclass

from solarcalc.pricing_table import (
    RATE_LOW, RATE_HIGH, THRESHOLD_RATE_CHANGE,
    RETAIL_CHARGE, RETAIL_CHARGE_THRESHOLD,
    TAX_RATE, TAX_THRESHOLD, KWTBB_RATE,
    find_discount_band,
)

logger = logging.getLogger(__name__)

# Bisection settings for the bill -> usage inverse
INVERSE_TOLERANCE = 0.01      # RM
INVERSE_MAX_ITERATIONS = 100
INVERSE_UPPER_BOUND = 10000   # kWh, doubled while the bill is still higher
INVERSE_MAX_UPPER_BOUND = 1e7


@dataclass(frozen=True)
class BillBreakdown:
    units: float
    base_charge: float
    retail_charge: float
    discount: float
    service_tax: float
    kwtbb: float
    export_credit: float = 0.0
    export_units: float = 0.0
    ee_adjustment: float = 0.0

    @property
    def subtotal(self):
        """Charges before taxes and export items."""
        return self.base_charge + self.retail_charge + self.discount

    @property
    def final_total(self):
        return (self.base_charge + self.retail_charge + self.discount
                + self.service_tax + self.kwtbb
                + self.export_credit + self.ee_adjustment)


class TariffBlindSpotError(ValueError):
    """Raised when a bill falls in the gap no integer usage can produce."""

    def __init__(self, bill, lower, upper):
        self.bill = bill
        self.lower = lower
        self.upper = upper
        super().__init__(
            f"Bill RM{bill:.2f} is unreachable: amounts between RM{lower:.2f} "
            f"and RM{upper:.2f} fall in the tariff blind spot"
        )


def _check_amount(value, name):
    if value is None or isinstance(value, bool):
        raise ValueError(f"{name} must be a number, got {value!r}")
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        raise ValueError(f"{name} must be finite, got {value}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
    return value


def flat_rate(units):
    """The one per-unit rate applied to the whole of ``units``."""
    return RATE_LOW if units <= THRESHOLD_RATE_CHANGE else RATE_HIGH


def discount_amount(units):
    """EE incentive in RM (zero or negative) for a total usage."""
    band = find_discount_band(units)
    if band is None:
        return 0.0
    return units * band.rate


def calculate_bill(units):
    """
    Calculate the monthly bill for a given usage.

    The energy rate is chosen once from the *total* usage and applied to
    every unit, so crossing 1500 kWh re-rates the whole bill.

    Parameters:
    -----------
    units : float
        Monthly usage in kWh (non-negative)

    Returns:
    --------
    BillBreakdown
        All charge components; ``final_total`` is their sum at full precision
    """
    units = _check_amount(units, "units")
    if units == 0:
        return BillBreakdown(units=0.0, base_charge=0.0, retail_charge=0.0,
                             discount=0.0, service_tax=0.0, kwtbb=0.0)

    rate = flat_rate(units)
    base_charge = units * rate

    retail_charge = RETAIL_CHARGE if units > RETAIL_CHARGE_THRESHOLD else 0.0

    discount = discount_amount(units)

    # Tax only on the cost of the units above the threshold, at the same flat rate
    taxable_cost = max(0.0, units - TAX_THRESHOLD) * rate
    service_tax = taxable_cost * TAX_RATE

    kwtbb = base_charge * KWTBB_RATE

    return BillBreakdown(
        units=units,
        base_charge=base_charge,
        retail_charge=retail_charge,
        discount=discount,
        service_tax=service_tax,
        kwtbb=kwtbb,
    )


# Bills strictly between these two are unreachable by any integer usage
BILL_GAP_LOWER = calculate_bill(THRESHOLD_RATE_CHANGE).final_total
BILL_GAP_UPPER = calculate_bill(THRESHOLD_RATE_CHANGE + 1).final_total


def is_in_blind_spot(bill):
    return BILL_GAP_LOWER < bill < BILL_GAP_UPPER


@dataclass(frozen=True)
class BillInversion:
    units: float
    snapped: bool = False   # True when the bill sat in the blind spot


def _bisect_usage(bill):
    low = 0.0
    high = float(INVERSE_UPPER_BOUND)
    while calculate_bill(high).final_total < bill:
        if high >= INVERSE_MAX_UPPER_BOUND:
            raise ValueError(f"Bill RM{bill:.2f} is beyond the supported usage range")
        low = high
        high *= 2

    for iteration in range(INVERSE_MAX_ITERATIONS):
        mid = (low + high) / 2
        total = calculate_bill(mid).final_total
        if abs(total - bill) <= INVERSE_TOLERANCE:
            logger.debug("Inverted RM%.2f -> %.3f kWh in %d steps", bill, mid, iteration + 1)
            return mid
        if total < bill:
            low = mid
        else:
            high = mid

    # Bill sits on a step of the tariff (e.g. the retail charge); settle on the edge
    logger.debug("Inversion of RM%.2f stopped at the iteration limit", bill)
    return (low + high) / 2


def invert_bill(bill):
    """
    Find the usage that produces ``bill``, flagging blind-spot snaps.

    Parameters:
    -----------
    bill : float
        Monthly bill in RM (non-negative)

    Returns:
    --------
    BillInversion
        Usage in kWh. For a blind-spot bill the usage is snapped to whichever
        of 1500 or 1501 kWh bills closer, with ``snapped`` set.
    """
    bill = _check_amount(bill, "bill")
    if bill == 0:
        return BillInversion(units=0.0)

    if is_in_blind_spot(bill):
        if bill - BILL_GAP_LOWER <= BILL_GAP_UPPER - bill:
            units = THRESHOLD_RATE_CHANGE
        else:
            units = THRESHOLD_RATE_CHANGE + 1
        logger.warning("Bill RM%.2f is in the tariff blind spot, snapped to %d kWh", bill, units)
        return BillInversion(units=float(units), snapped=True)

    return BillInversion(units=_bisect_usage(bill))


def get_kwh_from_bill(bill):
    """
    Usage in kWh for a monthly bill.

    Raises TariffBlindSpotError when the bill cannot be produced by any
    usage; check ``is_in_blind_spot`` first or use ``invert_bill``.
    """
    bill = _check_amount(bill, "bill")
    if is_in_blind_spot(bill):
        raise TariffBlindSpotError(bill, BILL_GAP_LOWER, BILL_GAP_UPPER)
    return invert_bill(bill).units


# ============================================================================
# Bill <-> usage field synchronisation
# ============================================================================

@dataclass(frozen=True)
class BillUsageState:
    usage: float
    bill: float
    gap_warning: bool = False


def sync_from_usage(usage):
    """New state after the usage field changed."""
    bill = calculate_bill(usage).final_total
    return BillUsageState(usage=float(usage), bill=round(bill, 2))


def sync_from_bill(bill):
    """
    New state after the bill field changed.

    A blind-spot bill is kept as typed, the usage is rounded up to 1501 kWh
    and the warning is raised so the view can offer ``round_up_blind_spot``.
    """
    bill = _check_amount(bill, "bill")
    if is_in_blind_spot(bill):
        return BillUsageState(usage=float(THRESHOLD_RATE_CHANGE + 1), bill=bill,
                              gap_warning=True)
    return BillUsageState(usage=get_kwh_from_bill(bill), bill=bill)


def round_up_blind_spot():
    """State after the user accepts the correction offered for a blind-spot bill."""
    return BillUsageState(usage=float(THRESHOLD_RATE_CHANGE + 1),
                          bill=round(BILL_GAP_UPPER, 1))
