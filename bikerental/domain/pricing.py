"""
Rental Pricing & Discount Calculator  (Strategy Pattern)
========================================================

Formula
-------
Subtotal = Price_Per_Hour x Billable_Hours
Discount = Subtotal x Discount_Percentage / 100   (rounded to cents)
Total    = Subtotal - Discount

* **Billable_Hours** = ceil(elapsed hours), never below 1.
* **Discount_Percentage** comes from the socioeconomic stratum table:
  strata 1-2 -> 10 %, 3-4 -> 5 %, 5-6 -> 0 %, no stratum -> 0 %.

Everything here is pure: same inputs, same output, no I/O.  The same code
prices a returned rental and previews the cost of a rental not yet started.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping, Optional, Union

Number = Union[Decimal, int, float, str]

CENTS = Decimal("0.01")

DEFAULT_STRATUM_DISCOUNTS: dict[int, int] = {1: 10, 2: 10, 3: 5, 4: 5, 5: 0, 6: 0}

SECONDS_PER_HOUR = 3600


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() first so floats like 0.1 keep their printed value
    return Decimal(str(value))


def billable_hours(start: datetime, end: datetime) -> int:
    """Partial hours are billed as full hours; any return costs at least 1 h."""
    elapsed = (end - start).total_seconds()
    if elapsed <= 0:
        return 1
    return max(1, math.ceil(elapsed / SECONDS_PER_HOUR))


@dataclass(frozen=True)
class CostBreakdown:
    subtotal: Decimal
    discount_percentage: Decimal
    discount: Decimal
    total: Decimal


# ── Strategy hierarchy ────────────────────────────────────────────────


class DiscountPolicy(ABC):
    @abstractmethod
    def percentage_for(self, stratum: Optional[int]) -> Decimal: ...


class StratumDiscount(DiscountPolicy):
    """Table-driven lookup; unknown or missing strata get no discount."""

    def __init__(self, table: Optional[Mapping[int, Number]] = None):
        source = DEFAULT_STRATUM_DISCOUNTS if table is None else table
        self.table = {int(k): to_decimal(v) for k, v in source.items()}

    def percentage_for(self, stratum: Optional[int]) -> Decimal:
        if stratum is None:
            return Decimal(0)
        return self.table.get(int(stratum), Decimal(0))


def calculate_cost(
    price_per_hour: Number,
    hours: Number,
    stratum: Optional[int] = None,
    policy: Optional[DiscountPolicy] = None,
) -> CostBreakdown:
    price = to_decimal(price_per_hour)
    qty = to_decimal(hours)
    if price < 0:
        raise ValueError("price_per_hour must not be negative")
    if qty < 0:
        raise ValueError("hours must not be negative")

    policy = policy or StratumDiscount()
    pct = policy.percentage_for(stratum)

    subtotal = (price * qty).quantize(CENTS, rounding=ROUND_HALF_UP)
    discount = (subtotal * pct / 100).quantize(CENTS, rounding=ROUND_HALF_UP)
    return CostBreakdown(
        subtotal=subtotal,
        discount_percentage=pct,
        discount=discount,
        total=subtotal - discount,
    )


# ── Engine facade ─────────────────────────────────────────────────────


class PricingEngine:
    """High-level API used by the rental ledger and the estimate endpoint."""

    def __init__(
        self,
        stratum_discounts: Optional[Mapping[int, Number]] = None,
        estimate_hours: Iterable[int] = (1, 3),
    ):
        self.policy = StratumDiscount(stratum_discounts)
        self.estimate_hours = tuple(estimate_hours)

    def price_rental(
        self,
        price_per_hour: Number,
        start: datetime,
        end: datetime,
        stratum: Optional[int] = None,
    ) -> tuple[int, CostBreakdown]:
        hours = billable_hours(start, end)
        return hours, calculate_cost(price_per_hour, hours, stratum, self.policy)

    def estimate(
        self,
        price_per_hour: Number,
        stratum: Optional[int] = None,
        hours: Optional[Iterable[int]] = None,
    ) -> dict[int, CostBreakdown]:
        return {
            h: calculate_cost(price_per_hour, h, stratum, self.policy)
            for h in (hours or self.estimate_hours)
        }
