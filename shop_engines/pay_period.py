"""
Module: shop_engines.pay_period
Responsibility:
    Compute the pay period that contains a given business date for a pay
    schedule: weekly (Monday to Sunday), biweekly (14-day blocks counted
    from an anchor date), semi-monthly (1-15 and 16-end of month) or
    monthly.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - start <= day <= end for the returned period.
    - Periods of one schedule never overlap and leave no gaps.

Failure modes:
    - ValueError for an unknown schedule type.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta

from shop_engines.tracer import traced_engine

VALID_SCHEDULE_TYPES = frozenset({"weekly", "biweekly", "semi-monthly", "monthly"})


@dataclass(frozen=True)
class PayPeriod:
    """An inclusive range of business dates."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError("PayPeriod end cannot precede start")

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


def _month_end(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


@traced_engine("pay_period", "1.0", fingerprint_fields=("day", "schedule_type", "anchor"))
def pay_period_for(
    day: date,
    schedule_type: str = "biweekly",
    anchor: date | None = None,
) -> PayPeriod:
    """
    The period of ``schedule_type`` that contains ``day``.

    ``anchor`` is the first day of some biweekly period; it defaults to
    ``day`` itself, which makes ``day`` the start of its period.
    """
    if schedule_type not in VALID_SCHEDULE_TYPES:
        raise ValueError(
            f"schedule_type must be one of {sorted(VALID_SCHEDULE_TYPES)}, "
            f"got '{schedule_type}'"
        )

    if schedule_type == "weekly":
        start = day - timedelta(days=day.weekday())
        return PayPeriod(start, start + timedelta(days=6))

    if schedule_type == "biweekly":
        base = anchor or day
        index = (day - base).days // 14
        start = base + timedelta(days=index * 14)
        return PayPeriod(start, start + timedelta(days=13))

    if schedule_type == "semi-monthly":
        if day.day <= 15:
            return PayPeriod(day.replace(day=1), day.replace(day=15))
        return PayPeriod(day.replace(day=16), _month_end(day))

    return PayPeriod(day.replace(day=1), _month_end(day))


def previous_period(
    period: PayPeriod,
    schedule_type: str = "biweekly",
    anchor: date | None = None,
) -> PayPeriod:
    """The period immediately before ``period``."""
    return pay_period_for(period.start - timedelta(days=1), schedule_type, anchor or period.start)
