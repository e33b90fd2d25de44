"""
Payroll helpers shared by the preview builder, the run loader and the
finalize engine.

Period boundaries are whole business days in the configured timezone,
converted to UTC for ledger and shift queries.  Shift rows and lines are
derived here so every pass over the same data produces the same figures.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from shop_engines.line_calculator import compute_line_totals
from shop_engines.rates import resolve_hourly_rate
from shop_engines.reattribution import DeductionRecord, ReattributionTable
from shop_engines.shift_metrics import (
    AdvanceSplit,
    format_local_date,
    infer_shift_name,
    minutes_worked,
    shortage_for_shift,
)
from shop_kernel.domain.dtos import ShiftRecord, StaffMember, staff_key_for
from shop_kernel.domain.values import minutes_between
from shop_kernel.exceptions import (
    InvalidExpenseModeError,
    InvalidPeriodError,
    MissingPeriodError,
)
from shop_kernel.logging_config import get_logger
from shop_modules.payroll.models import (
    Adjustment,
    AdjustmentType,
    DataQualityWarning,
    ExpenseMode,
    PayrollLineDraft,
    ShiftRow,
)

logger = get_logger("modules.payroll.helpers")


# -----------------------------------------------------------------------------
# Input validation
# -----------------------------------------------------------------------------

def validate_period(period_start: date | None, period_end: date | None) -> None:
    """Raise before any read or write when the period is unusable."""
    if period_start is None:
        raise MissingPeriodError("start")
    if period_end is None:
        raise MissingPeriodError("end")
    if period_end < period_start:
        raise InvalidPeriodError(period_start.isoformat(), period_end.isoformat())


def coerce_expense_mode(value: ExpenseMode | str | None, default: str = "per-staff") -> ExpenseMode:
    if isinstance(value, ExpenseMode):
        return value
    try:
        return ExpenseMode(value or default)
    except ValueError:
        raise InvalidExpenseModeError(str(value)) from None


# -----------------------------------------------------------------------------
# Business-day boundaries
# -----------------------------------------------------------------------------

def local_midnight(day: date, tz: str) -> datetime:
    """Start of ``day`` in ``tz``, as UTC."""
    return datetime.combine(day, time.min, tzinfo=ZoneInfo(tz)).astimezone(timezone.utc)


def period_bounds(period_start: date, period_end: date, tz: str) -> tuple[datetime, datetime]:
    """Half-open UTC range ``[start of first day, start of day after last)``."""
    return local_midnight(period_start, tz), local_midnight(period_end + timedelta(days=1), tz)


def rate_as_of(period_end: date, tz: str) -> datetime:
    """Last second of the period's final day, as UTC."""
    return datetime.combine(period_end, time(23, 59, 59), tzinfo=ZoneInfo(tz)).astimezone(
        timezone.utc
    )


def period_label(period_start: date, period_end: date) -> str:
    return f"{period_start.isoformat()} - {period_end.isoformat()}"


# -----------------------------------------------------------------------------
# Shift rows
# -----------------------------------------------------------------------------

def build_shift_row(
    shift: ShiftRecord,
    split: AdvanceSplit | None = None,
    *,
    override_start: datetime | None = None,
    override_end: datetime | None = None,
    excluded: bool = False,
    expense_date: datetime | None = None,
    now: datetime | None = None,
) -> ShiftRow:
    """
    Derive a payroll shift row from a shift and its advances.

    ``now`` stands in for the end of an ongoing shift when no override end
    was chosen; it is used for minutes only and never stored.
    """
    presumed_end = now if shift.end is None else None
    minutes_original = minutes_between(shift.start, shift.end or presumed_end)
    minutes_used = 0 if excluded else minutes_worked(
        shift, override_start, override_end, presumed_end
    )
    return ShiftRow(
        shift_id=shift.id,
        start=shift.start,
        end=shift.end,
        title=shift.title,
        label=shift.label,
        override_start=override_start,
        override_end=override_end,
        is_ongoing=shift.end is None,
        excluded=excluded,
        minutes_original=minutes_original,
        minutes_used=minutes_used,
        shortage=shortage_for_shift(shift),
        advance=split.owner_total if split is not None else Decimal("0.00"),
        advance_ids=split.owner_transaction_ids if split is not None else (),
        expense_date=expense_date,
    )


def row_label(row: ShiftRow, tz: str) -> str:
    """Display label such as ``1/5/2024 (Morning)`` for a shift row."""
    name = infer_shift_name(row.start, row.title, row.label, tz)
    return f"{format_local_date(row.start, tz)} ({name})"


def recompute_line(line: PayrollLineDraft) -> PayrollLineDraft:
    """Return ``line`` with totals recomputed from its rows and adjustments."""
    totals = compute_line_totals(
        line.rate,
        line.shift_rows,
        line.extra_advances,
        line.custom_deductions,
        line.custom_additions,
    )
    return replace(line, totals=totals)


def extra_advance_adjustments(records: Iterable[DeductionRecord]) -> tuple[Adjustment, ...]:
    return tuple(
        Adjustment(
            id=f"extra-adv-{r.transaction_id}",
            type=AdjustmentType.EXTRA_ADVANCE,
            label=r.label,
            amount=r.amount,
            from_shift_id=r.from_shift_id,
            transaction_id=r.transaction_id,
        )
        for r in records
    )


# -----------------------------------------------------------------------------
# Staff lookup and line assembly
# -----------------------------------------------------------------------------

class StaffIndex:
    """Staff members addressable by uid or by staff key."""

    def __init__(self, members: Iterable[StaffMember]):
        self._by_uid: dict[str, StaffMember] = {}
        self._by_key: dict[str, StaffMember] = {}
        self._members: list[StaffMember] = []
        for member in members:
            self._members.append(member)
            self._by_uid[member.uid] = member
            if member.email:
                self._by_key[staff_key_for(member.email, None)] = member

    def find(self, staff_id: str | None, staff_email: str | None) -> StaffMember | None:
        if staff_id and staff_id in self._by_uid:
            return self._by_uid[staff_id]
        if staff_email:
            return self._by_key.get(staff_key_for(staff_email, None))
        return None

    def identity(
        self, staff_id: str | None, staff_email: str | None
    ) -> tuple[str | None, str | None]:
        """``(uid, email)`` with missing fields filled from the directory."""
        member = self.find(staff_id, staff_email)
        if member is None:
            return staff_id, staff_email
        return staff_id or member.uid, staff_email or member.email

    def aliases(self, staff_id: str | None, staff_email: str | None) -> list[str]:
        """Every staff key the person may be recorded under."""
        uid, email = self.identity(staff_id, staff_email)
        keys = []
        if email:
            keys.append(staff_key_for(email, None))
        if uid:
            keys.append(staff_key_for(None, uid))
        return keys

    def canonical_keys(self) -> dict[str, str]:
        """Alias -> one staff key per directory member."""
        index: dict[str, str] = {}
        for member in self._members:
            key = staff_key_for(member.email, member.uid)
            for alias in self.aliases(member.uid, member.email):
                index.setdefault(alias, key)
        return index


@dataclass
class StaffBucket:
    """Working state for one staff member while lines are assembled."""
    staff_key: str
    staff_id: str | None
    staff_email: str | None
    staff_name: str | None
    rows: list[ShiftRow] = field(default_factory=list)
    rate: Decimal | None = None
    rate_source: str | None = None
    custom_deductions: tuple[Adjustment, ...] = ()
    custom_additions: tuple[Adjustment, ...] = ()

    def alias_keys(self) -> list[str]:
        keys = [self.staff_key]
        if self.staff_email:
            keys.append(staff_key_for(self.staff_email, None))
        if self.staff_id:
            keys.append(staff_key_for(None, self.staff_id))
        return keys


def assemble_lines(
    buckets: Mapping[str, StaffBucket],
    table: ReattributionTable,
    staff: StaffIndex,
    as_of: datetime,
) -> tuple[tuple[PayrollLineDraft, ...], tuple[DataQualityWarning, ...]]:
    """
    Turn staff buckets plus the reattribution table into payroll lines.

    Beneficiaries with no bucket get a line of their own.  Buckets without
    a preset rate resolve one as of ``as_of``; a missing rate profile
    yields rate 0 and a ``MISSING_RATE`` warning.

    Returns:
        Lines sorted by display name (case-insensitive), and warnings.
    """
    working: dict[str, StaffBucket] = dict(buckets)
    alias_index: dict[str, str] = {}
    for key, bucket in working.items():
        aliases = bucket.alias_keys() + staff.aliases(bucket.staff_id, bucket.staff_email)
        for alias in aliases:
            alias_index.setdefault(alias, key)
    for alias, key in staff.canonical_keys().items():
        alias_index.setdefault(alias, key)

    assigned = table.assign(alias_index)
    for key, records in assigned.items():
        if key in working:
            continue
        first = records[0]
        working[key] = StaffBucket(
            staff_key=key,
            staff_id=first.beneficiary_id,
            staff_email=first.beneficiary_email,
            staff_name=first.beneficiary_name,
        )
        logger.info(
            "beneficiary_line_created",
            extra={"staff_key": key, "records": len(records)},
        )

    warnings: list[DataQualityWarning] = []
    lines: list[PayrollLineDraft] = []
    for key, bucket in working.items():
        member = staff.find(bucket.staff_id, bucket.staff_email)
        name = (
            (member.name if member else None)
            or bucket.staff_name
            or bucket.staff_email
            or key
        )
        rate, source = bucket.rate, bucket.rate_source
        if rate is None:
            resolution = resolve_hourly_rate(member.payroll if member else None, as_of)
            rate, source = resolution.rate, resolution.source.value
            if resolution.is_missing:
                logger.warning(
                    "rate_profile_missing",
                    extra={"staff_key": key, "as_of": as_of.isoformat()},
                )
                warnings.append(
                    DataQualityWarning(
                        code="MISSING_RATE",
                        message=f"No hourly rate configured for {name}; rate 0 used",
                        staff_key=key,
                    )
                )
        line = PayrollLineDraft(
            staff_key=key,
            staff_id=bucket.staff_id or (member.uid if member else None),
            staff_email=bucket.staff_email or (member.email if member else None),
            staff_name=name,
            rate=rate,
            rate_source=source or "missing",
            shift_rows=tuple(bucket.rows),
            extra_advances=extra_advance_adjustments(assigned.get(key, [])),
            custom_deductions=bucket.custom_deductions,
            custom_additions=bucket.custom_additions,
        )
        lines.append(recompute_line(line))

    return sort_lines(lines), tuple(warnings)


def sort_lines(lines: Sequence[PayrollLineDraft]) -> tuple[PayrollLineDraft, ...]:
    return tuple(sorted(lines, key=lambda ln: (ln.staff_name.casefold(), ln.staff_key)))
