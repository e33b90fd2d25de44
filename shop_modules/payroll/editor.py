"""
Run Line Editor (``shop_modules.payroll.editor``).

Responsibility
--------------
Interactive corrections to a draft run before it is committed: rates,
shift time overrides, exclusions, expense dates, manual deductions and
additions, and the expense mode.

Architecture position
---------------------
**Modules layer** -- pure transformation of ``PayrollRunDraft`` values.
ZERO I/O; persistence is ``RunStore.save_run``.

Invariants enforced
-------------------
* Only ``draft`` runs are editable; every mutation on a posting, posted
  or voided run raises ``RunNotEditableError``.
* Each mutation recomputes the totals of the touched line only.
* Drafts are frozen; the editor swaps in a new draft after each change.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from shop_kernel.domain.values import minutes_between, to_money
from shop_kernel.exceptions import (
    AdjustmentNotFoundError,
    LineNotFoundError,
    RunNotEditableError,
    ShiftRowNotFoundError,
)
from shop_kernel.logging_config import get_logger
from shop_modules.payroll.helpers import coerce_expense_mode, local_midnight, recompute_line
from shop_modules.payroll.models import (
    Adjustment,
    AdjustmentType,
    ExpenseMode,
    PayrollLineDraft,
    PayrollRunDraft,
    ShiftRow,
)

logger = get_logger("modules.payroll.editor")

_LIST_FIELDS = {
    AdjustmentType.MANUAL_DEDUCTION: ("custom_deductions", "manual-ded"),
    AdjustmentType.MANUAL_ADDITION: ("custom_additions", "manual-add"),
}


class RunLineEditor:
    """
    Applies edits to a draft run.

    Contract
    --------
    * Each public method returns the updated ``PayrollRunDraft``; the same
      value is available as ``editor.draft``.
    * Lines are addressed by staff key, shift rows by shift id, and manual
      adjustments by their position in the line's list.
    """

    def __init__(self, draft: PayrollRunDraft, timezone: str = "Asia/Manila"):
        self._draft = draft
        self._timezone = timezone

    @property
    def draft(self) -> PayrollRunDraft:
        return self._draft

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_editable(self) -> None:
        if not self._draft.is_editable:
            raise RunNotEditableError(
                str(self._draft.run_id) if self._draft.run_id else "(unsaved)",
                self._draft.status.value,
            )

    def _line(self, staff_key: str) -> PayrollLineDraft:
        line = self._draft.line(staff_key)
        if line is None:
            raise LineNotFoundError(staff_key)
        return line

    def _put_line(self, line: PayrollLineDraft) -> PayrollRunDraft:
        line = recompute_line(line)
        self._draft = replace(
            self._draft,
            lines=tuple(line if ln.staff_key == line.staff_key else ln for ln in self._draft.lines),
        )
        logger.debug(
            "payroll_line_recomputed",
            extra={"staff_key": line.staff_key, "net": str(line.net)},
        )
        return self._draft

    def _update_row(self, staff_key: str, shift_id: UUID, **changes) -> PayrollRunDraft:
        self._ensure_editable()
        line = self._line(staff_key)
        row = line.row(shift_id)
        if row is None:
            raise ShiftRowNotFoundError(staff_key, str(shift_id))
        updated = replace(row, **changes)
        updated = replace(updated, minutes_used=_minutes_for(updated))
        rows = tuple(updated if r.shift_id == shift_id else r for r in line.shift_rows)
        return self._put_line(replace(line, shift_rows=rows))

    def _adjustments(self, line: PayrollLineDraft, kind: AdjustmentType) -> list[Adjustment]:
        return list(getattr(line, _LIST_FIELDS[kind][0]))

    def _set_adjustments(
        self, line: PayrollLineDraft, kind: AdjustmentType, items: list[Adjustment]
    ) -> PayrollRunDraft:
        return self._put_line(replace(line, **{_LIST_FIELDS[kind][0]: tuple(items)}))

    # ------------------------------------------------------------------
    # Rate and shift rows
    # ------------------------------------------------------------------

    def set_rate(self, staff_key: str, rate: Decimal) -> PayrollRunDraft:
        self._ensure_editable()
        line = self._line(staff_key)
        return self._put_line(replace(line, rate=Decimal(str(rate)), rate_source="manual"))

    def override_shift_times(
        self,
        staff_key: str,
        shift_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> PayrollRunDraft:
        """Replace the start and/or end used for pay (None keeps the current value)."""
        self._ensure_editable()
        line = self._line(staff_key)
        row = line.row(shift_id)
        if row is None:
            raise ShiftRowNotFoundError(staff_key, str(shift_id))
        return self._update_row(
            staff_key,
            shift_id,
            override_start=start if start is not None else row.override_start,
            override_end=end if end is not None else row.override_end,
        )

    def clear_override(self, staff_key: str, shift_id: UUID) -> PayrollRunDraft:
        return self._update_row(staff_key, shift_id, override_start=None, override_end=None)

    def exclude_shift(self, staff_key: str, shift_id: UUID) -> PayrollRunDraft:
        return self._update_row(staff_key, shift_id, excluded=True)

    def include_shift(self, staff_key: str, shift_id: UUID) -> PayrollRunDraft:
        return self._update_row(staff_key, shift_id, excluded=False)

    def set_expense_date(
        self, staff_key: str, shift_id: UUID, when: datetime | None
    ) -> PayrollRunDraft:
        return self._update_row(staff_key, shift_id, expense_date=when)

    # ------------------------------------------------------------------
    # Manual deductions and additions
    # ------------------------------------------------------------------

    def _add(self, kind: AdjustmentType, staff_key: str, label: str, amount) -> PayrollRunDraft:
        self._ensure_editable()
        line = self._line(staff_key)
        items = self._adjustments(line, kind)
        prefix = _LIST_FIELDS[kind][1]
        taken = {a.id for a in items}
        n = len(items)
        while f"{prefix}-{n}" in taken:
            n += 1
        items.append(Adjustment(id=f"{prefix}-{n}", type=kind, label=label, amount=to_money(amount)))
        return self._set_adjustments(line, kind, items)

    def _edit(
        self, kind: AdjustmentType, staff_key: str, index: int, label: str | None, amount
    ) -> PayrollRunDraft:
        self._ensure_editable()
        line = self._line(staff_key)
        items = self._adjustments(line, kind)
        if not 0 <= index < len(items):
            raise AdjustmentNotFoundError(staff_key, kind.value, index)
        current = items[index]
        items[index] = replace(
            current,
            label=label if label is not None else current.label,
            amount=to_money(amount) if amount is not None else current.amount,
        )
        return self._set_adjustments(line, kind, items)

    def _delete(self, kind: AdjustmentType, staff_key: str, index: int) -> PayrollRunDraft:
        self._ensure_editable()
        line = self._line(staff_key)
        items = self._adjustments(line, kind)
        if not 0 <= index < len(items):
            raise AdjustmentNotFoundError(staff_key, kind.value, index)
        del items[index]
        return self._set_adjustments(line, kind, items)

    def add_deduction(self, staff_key: str, label: str, amount) -> PayrollRunDraft:
        return self._add(AdjustmentType.MANUAL_DEDUCTION, staff_key, label, amount)

    def edit_deduction(self, staff_key: str, index: int, label: str | None = None, amount=None) -> PayrollRunDraft:
        return self._edit(AdjustmentType.MANUAL_DEDUCTION, staff_key, index, label, amount)

    def delete_deduction(self, staff_key: str, index: int) -> PayrollRunDraft:
        return self._delete(AdjustmentType.MANUAL_DEDUCTION, staff_key, index)

    def add_addition(self, staff_key: str, label: str, amount) -> PayrollRunDraft:
        return self._add(AdjustmentType.MANUAL_ADDITION, staff_key, label, amount)

    def edit_addition(self, staff_key: str, index: int, label: str | None = None, amount=None) -> PayrollRunDraft:
        return self._edit(AdjustmentType.MANUAL_ADDITION, staff_key, index, label, amount)

    def delete_addition(self, staff_key: str, index: int) -> PayrollRunDraft:
        return self._delete(AdjustmentType.MANUAL_ADDITION, staff_key, index)

    # ------------------------------------------------------------------
    # Run-level settings
    # ------------------------------------------------------------------

    def set_expense_mode(self, mode: ExpenseMode | str) -> PayrollRunDraft:
        """
        Switch the expense mode.

        ``per-staff`` resets every row's expense date to the pay date;
        ``per-shift`` fills in the pay date where a row has none.
        """
        self._ensure_editable()
        target = coerce_expense_mode(mode)
        pay_ts = local_midnight(self._draft.pay_date, self._timezone)

        def _row(r: ShiftRow) -> ShiftRow:
            if target is ExpenseMode.PER_STAFF:
                return replace(r, expense_date=pay_ts)
            return replace(r, expense_date=r.expense_date or pay_ts)

        lines = tuple(
            replace(ln, shift_rows=tuple(_row(r) for r in ln.shift_rows))
            for ln in self._draft.lines
        )
        self._draft = replace(self._draft, expense_mode=target, lines=lines)
        logger.info("payroll_expense_mode_set", extra={"expense_mode": target.value})
        return self._draft

    def set_pay_date(self, pay_date) -> PayrollRunDraft:
        self._ensure_editable()
        self._draft = replace(self._draft, pay_date=pay_date)
        return self._draft


def _minutes_for(row: ShiftRow) -> int:
    if row.excluded:
        return 0
    return minutes_between(row.effective_start, row.effective_end)
