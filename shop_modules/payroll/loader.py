"""
Stored run loader -- rebuild an editable draft from a persisted run.

Lines keep their stored rate and manual adjustments.  Shift rows are
re-derived from the current shift documents with the stored overrides
applied; salary advances and the reattribution table are recomputed from
the ledger, so stored ``extra-advance`` adjustments are never trusted.

Used by ``PayrollService.load_run`` and by the finalize engine (step 4).
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime

from sqlalchemy.orm import Session

from shop_engines.reattribution import build_reattribution_table, cross_staff_label
from shop_engines.shift_metrics import infer_shift_name, split_advances
from shop_kernel.domain.clock import Clock, SystemClock
from shop_kernel.logging_config import get_logger
from shop_kernel.selectors.transaction_selector import TransactionSelector
from shop_kernel.services.shift_store import ShiftStore
from shop_kernel.services.staff_directory import StaffDirectory
from shop_modules.payroll.config import PayrollConfig
from shop_modules.payroll.helpers import (
    StaffBucket,
    StaffIndex,
    assemble_lines,
    build_shift_row,
    period_bounds,
    rate_as_of,
)
from shop_modules.payroll.models import (
    AdjustmentType,
    DataQualityWarning,
    PayrollRunDraft,
    StoredRun,
)

logger = get_logger("modules.payroll.loader")


class StoredRunLoader:
    """Turns a ``StoredRun`` back into a ``PayrollRunDraft``."""

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

    def rebuild(
        self,
        stored: StoredRun,
        presume_ongoing_end: bool = True,
    ) -> tuple[PayrollRunDraft, tuple[DataQualityWarning, ...]]:
        """
        Re-derive every line of ``stored``.

        Args:
            stored: The persisted run.
            presume_ongoing_end: When True an ongoing shift without an
                override end counts up to "now" (editing).  Finalize passes
                False so such a shift contributes zero minutes.
        """
        summary = stored.summary
        tz = self._config.timezone
        now: datetime | None = self._clock.now_utc() if presume_ongoing_end else None

        wanted = [sid for line in stored.lines for sid in line.source_shift_ids]
        shifts = self._shifts.get_many(wanted)
        warnings: list[DataQualityWarning] = []

        advances: dict = defaultdict(list)
        for tx in self._transactions.advances_for_shifts(
            list(shifts), self._config.salary_advance_expense_type
        ):
            advances[tx.shift_id].append(tx)

        staff = StaffIndex(
            self._directory.list_by_role(self._config.staff_role, active_only=False)
        )
        buckets: dict[str, StaffBucket] = {}
        foreign = []
        for line in stored.lines:
            bucket = buckets[line.staff_key] = StaffBucket(
                staff_key=line.staff_key,
                staff_id=line.staff_id,
                staff_email=line.staff_email,
                staff_name=line.staff_name,
                rate=line.rate,
                rate_source=line.rate_source,
                custom_deductions=line.adjustments_of(AdjustmentType.MANUAL_DEDUCTION),
                custom_additions=line.adjustments_of(AdjustmentType.MANUAL_ADDITION),
            )
            for shift_id in line.source_shift_ids:
                shift = shifts.get(shift_id)
                if shift is None or shift.start is None:
                    logger.warning(
                        "source_shift_missing",
                        extra={"staff_key": line.staff_key, "shift_id": str(shift_id)},
                    )
                    warnings.append(
                        DataQualityWarning(
                            code="SHIFT_MISSING",
                            message="Shift no longer exists or has no start time",
                            staff_key=line.staff_key,
                            shift_id=shift_id,
                        )
                    )
                    continue
                owner_id, owner_email = staff.identity(shift.staff_id, shift.staff_email)
                split = split_advances(shift, advances.get(shift.id, ()), owner_id, owner_email)
                name = infer_shift_name(shift.start, shift.title, shift.label, tz)
                foreign.extend(
                    (fa, cross_staff_label(name, shift.start, tz)) for fa in split.foreign
                )
                override = line.overrides.get(shift_id)
                bucket.rows.append(
                    build_shift_row(
                        shift,
                        split,
                        override_start=override.override_start if override else None,
                        override_end=override.override_end if override else None,
                        excluded=override.excluded if override else False,
                        expense_date=override.expense_date if override else None,
                        now=now,
                    )
                )

        unlinked = []
        if self._config.include_unlinked_advances:
            lo, hi = period_bounds(summary.period_start, summary.period_end, tz)
            unlinked = self._transactions.unlinked_advances(
                lo, hi, self._config.salary_advance_expense_type
            )
        table = build_reattribution_table(foreign, unlinked, tz)
        lines, line_warnings = assemble_lines(
            buckets, table, staff, rate_as_of(summary.period_end, tz)
        )
        warnings.extend(line_warnings)

        draft = PayrollRunDraft(
            period_start=summary.period_start,
            period_end=summary.period_end,
            pay_date=summary.pay_date,
            expense_mode=summary.expense_mode,
            status=summary.status,
            lines=lines,
            run_id=summary.run_id,
            finalize_attempt=summary.finalize_attempt,
        )
        logger.info(
            "payroll_run_rebuilt",
            extra={
                "run_id": str(summary.run_id),
                "staff_count": len(lines),
                "reattributed": len(table),
            },
        )
        return draft, tuple(warnings)
