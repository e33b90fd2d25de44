"""
Payroll Preview Builder (``shop_modules.payroll.preview``).

Responsibility
--------------
Build the editable draft of a payroll run for a period: load the period's
shifts, group them by staff, attribute salary advances (including
advances recorded on someone else's shift and advances entered without a
shift), resolve hourly rates as of the period end, and compute each line.

Architecture position
---------------------
**Modules layer** -- reads through kernel services and selectors, computes
through ``shop_engines``.  Writes nothing.

Invariants enforced
-------------------
* Only shifts whose start falls inside the period's business days are used.
* Every active salary advance on an in-period shift is counted exactly
  once: on the owner's row or as an ``extra-advance`` of its beneficiary.
* Ongoing shifts are used only after an explicit include decision.

Failure modes
-------------
* ``MissingPeriodError`` / ``InvalidPeriodError`` /
  ``InvalidExpenseModeError`` before any read.
* Data problems (missing rate profile, zero-length shifts, ongoing shifts
  left out) are returned as ``DataQualityWarning`` records, never raised.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Sequence
from datetime import date

from sqlalchemy.orm import Session

from shop_engines.reattribution import build_reattribution_table, cross_staff_label
from shop_engines.shift_metrics import infer_shift_name, split_advances
from shop_kernel.domain.clock import Clock, SystemClock
from shop_kernel.domain.dtos import LedgerTransaction, ShiftRecord
from shop_kernel.logging_config import LogContext, get_logger
from shop_kernel.selectors.transaction_selector import TransactionSelector
from shop_kernel.services.shift_store import ShiftStore
from shop_kernel.services.staff_directory import StaffDirectory
from shop_modules.payroll.config import PayrollConfig
from shop_modules.payroll.helpers import (
    StaffBucket,
    StaffIndex,
    assemble_lines,
    build_shift_row,
    coerce_expense_mode,
    period_bounds,
    rate_as_of,
    validate_period,
)
from shop_modules.payroll.models import (
    DataQualityWarning,
    ExpenseMode,
    PayrollRunDraft,
    PreviewResult,
)

logger = get_logger("modules.payroll.preview")

# Receives the ongoing shifts found in the period; True includes them with
# the end presumed "now", False leaves them out.
OngoingShiftDecision = Callable[[Sequence[ShiftRecord]], bool]


class PayrollPreviewBuilder:
    """
    Builds ``PreviewResult`` objects.

    Contract
    --------
    * ``build`` is read-only and deterministic for a given database state
      and clock.
    * Lines are sorted by display name, case-insensitively.

    Non-goals
    ---------
    * Does NOT persist the draft; ``RunStore.create_run`` does.
    """

    def __init__(
        self,
        session: Session,
        config: PayrollConfig | None = None,
        clock: Clock | None = None,
    ):
        self._config = config or PayrollConfig()
        self._clock = clock or SystemClock()
        self._shifts = ShiftStore(session)
        self._transactions = TransactionSelector(session)
        self._directory = StaffDirectory(session)

    def build(
        self,
        period_start: date | None,
        period_end: date | None,
        pay_date: date | None = None,
        expense_mode: ExpenseMode | str | None = None,
        confirm_ongoing: OngoingShiftDecision | None = None,
    ) -> PreviewResult:
        """
        Preview payroll for ``[period_start, period_end]`` (whole days).

        Args:
            period_start: First business day of the period.
            period_end: Last business day of the period (inclusive).
            pay_date: Defaults to today in the business timezone.
            expense_mode: ``per-staff`` or ``per-shift``; defaults to config.
            confirm_ongoing: Decides whether ongoing shifts are included.
                Without it they are excluded and reported.
        """
        validate_period(period_start, period_end)
        mode = coerce_expense_mode(expense_mode, self._config.default_expense_mode)
        tz = self._config.timezone
        lo, hi = period_bounds(period_start, period_end, tz)

        with LogContext.bind(correlation_id=f"preview:{period_start}:{period_end}"):
            logger.info(
                "payroll_preview_started",
                extra={
                    "period_start": period_start.isoformat(),
                    "period_end": period_end.isoformat(),
                    "expense_mode": mode.value,
                },
            )
            warnings: list[DataQualityWarning] = []

            shifts = [s for s in self._shifts.shifts_in_period(lo, hi) if s.start is not None]
            ongoing = [s for s in shifts if s.is_ongoing]
            include_ongoing = bool(ongoing) and confirm_ongoing is not None and bool(
                confirm_ongoing(tuple(ongoing))
            )
            if ongoing and not include_ongoing:
                shifts = [s for s in shifts if not s.is_ongoing]
                for s in ongoing:
                    warnings.append(
                        DataQualityWarning(
                            code="ONGOING_SHIFT_EXCLUDED",
                            message="Shift has no end time and was left out",
                            staff_key=s.staff_key,
                            shift_id=s.id,
                        )
                    )
                logger.warning(
                    "ongoing_shifts_excluded",
                    extra={"count": len(ongoing)},
                )
            now = self._clock.now_utc()

            advances: dict = defaultdict(list)
            for tx in self._transactions.advances_for_shifts(
                [s.id for s in shifts], self._config.salary_advance_expense_type
            ):
                advances[tx.shift_id].append(tx)

            staff = StaffIndex(self._directory.list_by_role(self._config.staff_role, active_only=False))
            buckets: dict[str, StaffBucket] = {}
            bucket_by_alias: dict[str, StaffBucket] = {}
            foreign = []
            for shift in shifts:
                owner_id, owner_email = staff.identity(shift.staff_id, shift.staff_email)
                split = split_advances(shift, advances.get(shift.id, ()), owner_id, owner_email)
                name = infer_shift_name(shift.start, shift.title, shift.label, tz)
                foreign.extend(
                    (fa, cross_staff_label(name, shift.start, tz)) for fa in split.foreign
                )
                row = build_shift_row(
                    shift,
                    split,
                    override_end=now if shift.is_ongoing else None,
                )
                if row.minutes_used == 0 and not row.is_ongoing:
                    warnings.append(
                        DataQualityWarning(
                            code="ZERO_LENGTH_SHIFT",
                            message="Shift end is missing or not after its start",
                            staff_key=shift.staff_key,
                            shift_id=shift.id,
                        )
                    )
                if shift.payroll_run_id is not None:
                    warnings.append(
                        DataQualityWarning(
                            code="SHIFT_ALREADY_PAID",
                            message=f"Shift is already tagged with run {shift.payroll_run_id}",
                            staff_key=shift.staff_key,
                            shift_id=shift.id,
                        )
                    )
                aliases = [shift.staff_key] + staff.aliases(shift.staff_id, shift.staff_email)
                bucket = next((bucket_by_alias[a] for a in aliases if a in bucket_by_alias), None)
                if bucket is None:
                    bucket = buckets[shift.staff_key] = StaffBucket(
                        staff_key=shift.staff_key,
                        staff_id=shift.staff_id,
                        staff_email=shift.staff_email,
                        staff_name=shift.staff_name,
                    )
                for alias in aliases:
                    bucket_by_alias.setdefault(alias, bucket)
                bucket.rows.append(row)

            unlinked: list[LedgerTransaction] = []
            if self._config.include_unlinked_advances:
                unlinked = self._transactions.unlinked_advances(
                    lo, hi, self._config.salary_advance_expense_type
                )
            table = build_reattribution_table(foreign, unlinked, tz)

            lines, line_warnings = assemble_lines(
                buckets, table, staff, rate_as_of(period_end, tz)
            )
            warnings.extend(line_warnings)

            draft = PayrollRunDraft(
                period_start=period_start,
                period_end=period_end,
                pay_date=pay_date or self._clock.today(tz),
                expense_mode=mode,
                lines=lines,
            )
            logger.info(
                "payroll_preview_completed",
                extra={
                    "staff_count": len(lines),
                    "shift_count": len(shifts),
                    "reattributed": len(table),
                    "warnings": len(warnings),
                    "net": str(draft.totals.net),
                },
            )
            return PreviewResult(
                draft=draft,
                warnings=tuple(warnings),
                ongoing_excluded=tuple(s.id for s in ongoing) if not include_ongoing else (),
                ongoing_included=tuple(s.id for s in ongoing) if include_ongoing else (),
            )
