"""
FII Screener Tool: Income Metrics

Projections derived from the trailing 12-month distribution per unit:
- Monthly income per unit and the implied monthly yield on price
- Daily income over the current month's day count
- "Magic number": units whose monthly income buys one more unit

Non-positive price or distribution yields zeros, never an error.
"""

from __future__ import annotations

import calendar
import math
from datetime import date
from typing import Optional

from fii_screener.schemas.instrument_output import IncomeMetrics


def monthly_income(distribution_12m: float) -> float:
    if distribution_12m <= 0:
        return 0.0
    return round(distribution_12m / 12, 2)


def monthly_yield_pct(price: float, monthly: float) -> float:
    if price <= 0 or monthly <= 0:
        return 0.0
    return round(monthly / price * 100, 2)


def daily_income(monthly: float, today: Optional[date] = None) -> float:
    today = today or date.today()
    days = calendar.monthrange(today.year, today.month)[1]
    if monthly <= 0:
        return 0.0
    return round(monthly / days, 6)


def magic_number_units(price: float, monthly: float) -> int:
    if price <= 0 or monthly <= 0:
        return 0
    return math.ceil(price / monthly)


def magic_number_value(units: int, price: float) -> float:
    if units <= 0 or price <= 0:
        return 0.0
    return round(units * price, 2)


def compute_income_metrics(
    price: float,
    distribution_12m: Optional[float],
    today: Optional[date] = None,
) -> IncomeMetrics:
    """All income projections for one instrument. None distribution -> zeros."""
    monthly = monthly_income(distribution_12m or 0.0)
    units = magic_number_units(price, monthly)
    return IncomeMetrics(
        monthly_income=monthly,
        monthly_yield_pct=monthly_yield_pct(price, monthly),
        daily_income=daily_income(monthly, today),
        magic_number_units=units,
        magic_number_value=magic_number_value(units, price),
    )
