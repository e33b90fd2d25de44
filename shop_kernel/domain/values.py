"""
Values -- Time and money primitives for shift pay.

Responsibility:
    Duration between timestamps, minute-to-hour conversion, money rounding
    and coercion, drawer denomination totals and gross pay.  Every payroll
    computation goes through these functions so previews, paystubs and
    postings round identically.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by engines and the payroll module.  No outward dependencies.

Invariants enforced:
    - minutes_between() is never negative and never raises.
    - Money is Decimal quantized to 2 places with ROUND_HALF_UP at every
      aggregation point (never deferred).
    - No floats: float input is converted through str().

Failure modes:
    - None.  Missing or malformed input degrades to zero.

Audit relevance:
    Paystub net pay must equal the sum of the run's ledger postings.  That
    identity holds only if every aggregation point rounds the same way.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
ZERO = Decimal("0.00")

# b_1000 (bill), c_0.25 (coin)
DENOMINATION_KEY = re.compile(r"^([bc])_(\d+(?:\.\d+)?)$", re.IGNORECASE)


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the ONLY sanctioned rounding function for money.  Previews,
    line recomputation, paystubs and postings all delegate here.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def parse_decimal(value: Any) -> Decimal | None:
    """Decimal for a numeric value, or None when it is not one (bools included)."""
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, float):
            amount = Decimal(str(value))
        else:
            amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def to_money(value: Any) -> Decimal:
    """
    Coerce stored or user-entered amounts to a rounded Decimal.

    Accepts Decimal, int, float, numeric strings and None.  Booleans,
    non-numeric strings, NaN and infinities become zero.
    """
    amount = parse_decimal(value)
    if amount is None:
        return ZERO
    return round_money(amount)


def ensure_utc(value: Any) -> datetime | None:
    """Return ``value`` as an aware UTC datetime, or None if it is not one."""
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def minutes_between(start: Any, end: Any) -> int:
    """
    Whole minutes from ``start`` to ``end``, rounded half-up.

    Returns 0 when either side is missing or not a datetime, and when
    ``end`` is not after ``start``.  Naive datetimes are taken as UTC.
    """
    a = ensure_utc(start)
    b = ensure_utc(end)
    if a is None or b is None:
        return 0
    seconds = Decimal(str((b - a).total_seconds()))
    if seconds <= 0:
        return 0
    return int((seconds / 60).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_hours(minutes: Any) -> Decimal:
    """Minutes as hours, rounded to 2 places for display."""
    amount = parse_decimal(minutes)
    if amount is None:
        return ZERO
    return round_money(amount / 60)


def sum_denominations(denominations: Mapping[str, Any] | None) -> Decimal:
    """
    Total drawer cash from a denomination count.

    Keys look like ``b_1000`` (bill) or ``c_0.25`` (coin); the value is the
    count.  Unrecognized keys and non-numeric counts are skipped.
    """
    if not denominations:
        return ZERO
    total = Decimal("0")
    for key, raw_count in denominations.items():
        match = DENOMINATION_KEY.match(str(key))
        if match is None:
            continue
        count = parse_decimal(raw_count if raw_count is not None else 0)
        if count is None:
            continue
        total += Decimal(match.group(2)) * count
    return round_money(total)


def calculate_gross(minutes: int, rate: Decimal) -> Decimal:
    """Gross pay for ``minutes`` at an hourly ``rate``, rounded once."""
    if minutes <= 0:
        return ZERO
    return round_money(Decimal(minutes) / 60 * rate)
