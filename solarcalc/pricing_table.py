# -*- coding: utf-8 -*-
"""
Static pricing and physics data for the residential tariff and the
solar + battery packages on offer.

Nothing in here computes a bill; the tables are read-only lookups shared by
the tariff calculator, the flow simulator and the plan optimizer.
"""

from dataclasses import dataclass


# ============================================================================
# Tariff
# ============================================================================
RATE_LOW = 0.4443            # RM/kWh, whole usage when usage <= 1500 kWh
RATE_HIGH = 0.5443           # RM/kWh, whole usage when usage > 1500 kWh
THRESHOLD_RATE_CHANGE = 1500  # kWh

RETAIL_CHARGE = 10.00        # RM
RETAIL_CHARGE_THRESHOLD = 600  # kWh

TAX_RATE = 0.08              # service tax on the cost above the threshold
TAX_THRESHOLD = 600          # kWh

KWTBB_RATE = 0.016           # renewable energy fund levy on the base charge

EXPORT_RATE = 0.20           # RM/kWh credited for exported energy


# ============================================================================
# Solar & storage physics
# ============================================================================
PANEL_WATTAGE = 620          # W per panel
PEAK_SUN_HOURS = 3.5         # h/day
DAYS_PER_MONTH = 30

BATTERY_NOMINAL_KWH = 14.3   # nameplate capacity per unit
BATTERY_DERATING = 0.9       # installation derating, nominal -> usable
BATTERY_CAPACITY_KWH = round(BATTERY_NOMINAL_KWH * BATTERY_DERATING, 2)  # 12.87
BATTERY_DISCHARGE_EFFICIENCY = 0.9  # applied again on the way out


# ============================================================================
# System pricing
# ============================================================================
BATTERY_COST_CASH = 7400
BATTERY_COST_INSTALMENT = 8000

MAX_PANELS_SINGLE_PHASE = 22
MAX_PANELS_THREE_PHASE = 56
MAX_BATTERIES = 20

THREE_PHASE_INVERTER = "10 kWac Three Phase"
# (min panels, max panels, flat surcharge) for single-phase tiers on a three-phase supply
THREE_PHASE_SURCHARGES = (
    (6, 14, 3350),
    (15, 22, 1600),
)


@dataclass(frozen=True)
class DiscountBand:
    """EE incentive band, limits in kWh and the rate in sen/kWh (negative)."""
    min: int
    max: int
    discount_sen: float

    @property
    def rate(self):
        """Discount in RM/kWh."""
        return self.discount_sen / 100


@dataclass(frozen=True)
class PricingTier:
    panels: int
    kwp: float
    inverter_size: str
    cash_price: float
    instalment_price: float  # 36 month plan


DISCOUNT_BANDS = (
    DiscountBand(1, 200, -25),
    DiscountBand(201, 250, -24.5),
    DiscountBand(251, 300, -22.5),
    DiscountBand(301, 350, -21),
    DiscountBand(351, 400, -17),
    DiscountBand(401, 450, -14.5),
    DiscountBand(451, 500, -12),
    DiscountBand(501, 550, -10.5),
    DiscountBand(551, 600, -9),
    DiscountBand(601, 650, -7.5),
    DiscountBand(651, 700, -5.5),
    DiscountBand(701, 750, -4.5),
    DiscountBand(751, 800, -4),
    DiscountBand(801, 850, -2.5),
    DiscountBand(851, 900, -1),
    DiscountBand(901, 1000, -0.5),
)

_SP5 = "5 kWac Single Phase"
_SP8 = "8 kWac Single Phase"
_TP10 = "10 kWac Three Phase"
_TP12 = "12 kWac Three Phase"
_TP15 = "15 kWac Three Phase"
_TP20 = "20 kWac Three Phase"

SYSTEM_PRICING = (
    PricingTier(6, 3.72, _SP5, 18200, 20040),
    PricingTier(7, 4.34, _SP5, 18600, 20440),
    PricingTier(8, 4.96, _SP5, 19000, 20840),
    PricingTier(9, 5.58, _SP5, 19400, 21240),
    PricingTier(10, 6.2, _SP5, 19800, 21640),
    PricingTier(11, 6.82, _SP5, 20500, 22410),
    PricingTier(12, 7.44, _SP5, 21200, 23170),
    PricingTier(13, 8.06, _SP5, 21950, 24000),
    PricingTier(14, 8.68, _SP5, 22650, 24760),
    PricingTier(15, 9.3, _SP8, 26800, 29290),
    PricingTier(16, 9.92, _SP8, 27700, 30280),
    PricingTier(17, 10.54, _SP8, 28600, 31260),
    PricingTier(18, 11.16, _SP8, 29500, 32250),
    PricingTier(19, 11.78, _SP8, 30400, 33230),
    PricingTier(20, 12.4, _SP8, 31200, 34100),
    PricingTier(21, 13.02, _SP8, 32100, 35100),
    PricingTier(22, 13.64, _SP8, 33000, 36100),
    PricingTier(23, 14.26, _TP10, 37200, 40700),
    PricingTier(24, 14.88, _TP10, 38100, 41640),
    PricingTier(25, 15.5, _TP10, 39000, 42630),
    PricingTier(26, 16.12, _TP10, 39900, 43610),
    PricingTier(27, 16.74, _TP12, 41500, 45360),
    PricingTier(28, 17.36, _TP12, 41900, 45800),
    PricingTier(29, 17.98, _TP12, 42300, 46230),
    PricingTier(30, 18.6, _TP12, 42700, 46670),
    PricingTier(31, 19.22, _TP12, 43100, 47110),
    PricingTier(32, 19.84, _TP12, 43500, 47550),
    PricingTier(33, 20.46, _TP15, 44800, 48850),
    PricingTier(34, 21.08, _TP15, 45400, 49450),
    PricingTier(35, 21.7, _TP15, 46000, 50050),
    PricingTier(36, 22.32, _TP15, 46600, 50650),
    PricingTier(37, 22.94, _TP15, 47200, 51250),
    PricingTier(38, 23.56, _TP15, 47800, 51850),
    PricingTier(39, 24.18, _TP15, 48400, 52450),
    PricingTier(40, 24.8, _TP15, 49000, 53050),
    PricingTier(41, 25.42, _TP20, 51300, 55350),
    PricingTier(42, 26.04, _TP20, 52200, 56250),
    PricingTier(43, 26.66, _TP20, 53100, 57150),
    PricingTier(44, 27.28, _TP20, 54000, 58050),
    PricingTier(45, 27.9, _TP20, 54900, 58950),
    PricingTier(46, 28.52, _TP20, 55800, 59850),
    PricingTier(47, 29.14, _TP20, 56700, 60750),
    PricingTier(48, 29.76, _TP20, 57500, 61550),
    PricingTier(49, 30.38, _TP20, 58300, 62350),
    PricingTier(50, 31.0, _TP20, 59100, 63150),
    PricingTier(51, 31.62, _TP20, 59900, 63950),
    PricingTier(52, 32.24, _TP20, 60700, 64750),
    PricingTier(53, 32.86, _TP20, 61500, 65550),
    PricingTier(54, 33.48, _TP20, 62000, 67400),
    PricingTier(55, 34.10, _TP20, 62200, 67600),
    PricingTier(56, 34.72, _TP20, 62400, 67800),
)

MIN_PANELS = SYSTEM_PRICING[0].panels
MAX_PANELS = SYSTEM_PRICING[-1].panels


def find_discount_band(units):
    """
    Return the discount band covering ``units``, or None above the top band.

    Bands are stored with integer limits. For fractional usage a band covers
    everything above the previous band's max up to its own max, so usage
    anywhere in (0, 1000] lands in exactly one band.
    """
    if units <= 0:
        return None
    previous_max = 0
    for band in DISCOUNT_BANDS:
        if previous_max < units <= band.max:
            return band
        previous_max = band.max
    return None


def find_pricing_tier(panels):
    """Exact-match lookup; None when ``panels`` is outside the table."""
    for tier in SYSTEM_PRICING:
        if tier.panels == panels:
            return tier
        if tier.panels > panels:
            break
    return None
