"""
Module: shop_engines.rates
Responsibility:
    Resolve the hourly rate in force for a staff member at a point in time
    from a default rate and an append-only, effective-dated rate history.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import shop_kernel/domain and the engine tracer.

Invariants enforced:
    - Purity: no clock access; ``as_of`` is always supplied by the caller.
    - Entries without ``effective_from`` count as always effective and sort
      before every dated entry.
    - The sort is stable, so among entries with the same ``effective_from``
      the last-inserted one wins.
    - Never raises.  A missing profile resolves to rate 0 with
      ``RateSource.MISSING``.

Failure modes:
    - None.  Non-numeric rates in the history are skipped.

Audit relevance:
    The resolved rate and its source are recorded on every payroll line so a
    paystub can be traced back to the history entry that priced it.

Usage:
    from shop_engines.rates import resolve_hourly_rate

    resolution = resolve_hourly_rate(staff.payroll, period_end)
    resolution.rate     # Decimal("55")
    resolution.source   # RateSource.HISTORY
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from shop_engines.tracer import traced_engine
from shop_kernel.domain.dtos import RateEntry, StaffPayrollProfile
from shop_kernel.domain.values import ensure_utc, parse_decimal
from shop_kernel.logging_config import get_logger

logger = get_logger("engines.rates")

_ALWAYS = datetime.min.replace(tzinfo=timezone.utc)


class RateSource(Enum):
    """Where a resolved rate came from."""

    HISTORY = "history"
    DEFAULT = "default"
    MISSING = "missing"


@dataclass(frozen=True)
class RateResolution:
    """
    A resolved hourly rate.

    Contract:
        ``source`` is MISSING exactly when neither a history entry nor a
        default rate applied; ``rate`` is then zero.
    """

    rate: Decimal
    source: RateSource
    effective_from: datetime | None = None

    @property
    def is_missing(self) -> bool:
        return self.source is RateSource.MISSING


def _effective_key(entry: RateEntry) -> datetime:
    return ensure_utc(entry.effective_from) or _ALWAYS


def _as_rate(value) -> Decimal | None:
    amount = parse_decimal(value)
    if amount is None or amount < 0:
        return None
    return amount


@traced_engine("rate_resolver", "1.0", fingerprint_fields=("as_of",))
def resolve_hourly_rate(
    profile: StaffPayrollProfile | None,
    as_of: datetime | None,
) -> RateResolution:
    """
    Pick the rate in force at ``as_of``.

    The latest history entry with ``effective_from <= as_of`` wins; undated
    entries are always effective.  Without a matching entry the default
    rate applies, and without a default the rate is zero.

    Args:
        profile: The staff member's payroll profile, or None.
        as_of: Moment to resolve at (payroll uses the end of the period).
            None treats every entry as effective.

    Returns:
        RateResolution carrying the rate and its source.
    """
    if profile is None:
        return RateResolution(rate=Decimal("0"), source=RateSource.MISSING)

    cutoff = ensure_utc(as_of)
    candidates: list[RateEntry] = []
    for entry in profile.rate_history:
        if _as_rate(entry.rate) is None:
            continue
        when = ensure_utc(entry.effective_from)
        if when is None or cutoff is None or when <= cutoff:
            candidates.append(entry)

    if candidates:
        picked = sorted(candidates, key=_effective_key)[-1]
        return RateResolution(
            rate=_as_rate(picked.rate),
            source=RateSource.HISTORY,
            effective_from=picked.effective_from,
        )

    default = _as_rate(profile.default_rate)
    if default is not None:
        return RateResolution(rate=default, source=RateSource.DEFAULT)

    return RateResolution(rate=Decimal("0"), source=RateSource.MISSING)
