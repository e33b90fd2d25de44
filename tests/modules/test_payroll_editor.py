"""
Tests for the run line editor.

Validates:
- Rate changes and shift overrides recompute the touched line only
- Exclusion zeroes minutes and drops the row's deductions
- Manual deductions / additions addressed by position
- Expense mode switching and expense dates
- Non-draft runs reject every mutation
"""

from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from shop_kernel.exceptions import (
    AdjustmentNotFoundError,
    InvalidExpenseModeError,
    LineNotFoundError,
    RunNotEditableError,
    ShiftRowNotFoundError,
)
from shop_modules.payroll.editor import RunLineEditor
from shop_modules.payroll.helpers import recompute_line
from shop_modules.payroll.models import (
    AdjustmentType,
    ExpenseMode,
    PayrollLineDraft,
    PayrollRunDraft,
    RunStatus,
    ShiftRow,
)
from tests.conftest import manila

ANA = "ana@shop.test"
BEN = "ben@shop.test"
SHIFT_A = uuid4()
SHIFT_B = uuid4()
SHIFT_C = uuid4()


def _row(shift_id, start, hours, shortage="0", advance="0"):
    end = start + timedelta(hours=hours)
    return ShiftRow(
        shift_id=shift_id,
        start=start,
        end=end,
        minutes_original=int(hours * 60),
        minutes_used=int(hours * 60),
        shortage=Decimal(shortage),
        advance=Decimal(advance),
    )


@pytest.fixture
def draft():
    ana = recompute_line(
        PayrollLineDraft(
            staff_key=ANA,
            staff_id="ana",
            staff_email=ANA,
            staff_name="Ana",
            rate=Decimal("50"),
            rate_source="default",
            shift_rows=(
                _row(SHIFT_A, manila(2024, 1, 5, 8), 8, shortage="100", advance="50"),
                _row(SHIFT_B, manila(2024, 1, 6, 8), 4),
            ),
        )
    )
    ben = recompute_line(
        PayrollLineDraft(
            staff_key=BEN,
            staff_id="ben",
            staff_email=BEN,
            staff_name="Ben",
            rate=Decimal("60"),
            rate_source="default",
            shift_rows=(_row(SHIFT_C, manila(2024, 1, 7, 14), 4),),
        )
    )
    return PayrollRunDraft(
        period_start=date(2024, 1, 1),
        period_end=date(2024, 1, 15),
        pay_date=date(2024, 1, 20),
        lines=(ana, ben),
        run_id=uuid4(),
    )


@pytest.fixture
def editor(draft):
    return RunLineEditor(draft, "Asia/Manila")


class TestStartingPoint:

    def test_fixture_totals(self, draft):
        ana = draft.line(ANA)
        assert ana.gross == Decimal("600.00")
        assert ana.totals.total_deductions == Decimal("150.00")
        assert ana.net == Decimal("450.00")
        assert draft.totals.net == Decimal("690.00")


class TestRateAndRows:

    def test_set_rate(self, editor):
        draft = editor.set_rate(ANA, Decimal("60"))
        ana = draft.line(ANA)
        assert ana.rate == Decimal("60")
        assert ana.rate_source == "manual"
        assert ana.gross == Decimal("720.00")
        assert ana.net == Decimal("570.00")

    def test_only_touched_line_recomputed(self, editor, draft):
        before = draft.line(BEN)
        after = editor.set_rate(ANA, Decimal("60")).line(BEN)
        assert after is before

    def test_override_end(self, editor):
        draft = editor.override_shift_times(ANA, SHIFT_A, end=manila(2024, 1, 5, 12))
        row = draft.line(ANA).row(SHIFT_A)
        assert row.minutes_used == 240
        assert row.minutes_original == 480
        assert row.has_override
        assert draft.line(ANA).gross == Decimal("400.00")

    def test_override_keeps_other_bound(self, editor):
        editor.override_shift_times(ANA, SHIFT_A, start=manila(2024, 1, 5, 9))
        draft = editor.override_shift_times(ANA, SHIFT_A, end=manila(2024, 1, 5, 13))
        row = draft.line(ANA).row(SHIFT_A)
        assert row.override_start == manila(2024, 1, 5, 9)
        assert row.minutes_used == 240

    def test_clear_override(self, editor):
        editor.override_shift_times(ANA, SHIFT_A, end=manila(2024, 1, 5, 12))
        draft = editor.clear_override(ANA, SHIFT_A)
        row = draft.line(ANA).row(SHIFT_A)
        assert row.minutes_used == 480
        assert not row.has_override

    def test_exclude_drops_minutes_and_deductions(self, editor):
        draft = editor.exclude_shift(ANA, SHIFT_A)
        ana = draft.line(ANA)
        assert ana.row(SHIFT_A).minutes_used == 0
        assert ana.minutes == 240
        assert ana.totals.advances == Decimal("0.00")
        assert ana.totals.shortages == Decimal("0.00")
        assert ana.net == Decimal("200.00")

    def test_include_restores(self, editor, draft):
        editor.exclude_shift(ANA, SHIFT_A)
        restored = editor.include_shift(ANA, SHIFT_A).line(ANA)
        assert restored.totals == draft.line(ANA).totals

    def test_set_expense_date(self, editor):
        when = manila(2024, 1, 6, 0)
        row = editor.set_expense_date(ANA, SHIFT_A, when).line(ANA).row(SHIFT_A)
        assert row.expense_date == when
        assert row.has_override

    def test_unknown_line(self, editor):
        with pytest.raises(LineNotFoundError):
            editor.set_rate("nobody@shop.test", Decimal("1"))

    def test_unknown_row(self, editor):
        with pytest.raises(ShiftRowNotFoundError):
            editor.exclude_shift(ANA, SHIFT_C)


class TestAdjustments:

    def test_add_deduction(self, editor):
        draft = editor.add_deduction(ANA, "Uniform", "75")
        ana = draft.line(ANA)
        (ded,) = ana.custom_deductions
        assert ded.id == "manual-ded-0"
        assert ded.type is AdjustmentType.MANUAL_DEDUCTION
        assert ded.amount == Decimal("75.00")
        assert ana.totals.other_deductions == Decimal("75.00")
        assert ana.net == Decimal("375.00")

    def test_edit_deduction_by_index(self, editor):
        editor.add_deduction(ANA, "Uniform", "75")
        editor.add_deduction(ANA, "Breakage", "20")
        draft = editor.edit_deduction(ANA, 1, amount="30")
        labels = [(d.label, d.amount) for d in draft.line(ANA).custom_deductions]
        assert labels == [("Uniform", Decimal("75.00")), ("Breakage", Decimal("30.00"))]

    def test_delete_then_add_keeps_ids_unique(self, editor):
        editor.add_deduction(ANA, "Uniform", "75")
        editor.add_deduction(ANA, "Breakage", "20")
        editor.delete_deduction(ANA, 0)
        draft = editor.add_deduction(ANA, "Meal", "10")
        ids = [d.id for d in draft.line(ANA).custom_deductions]
        assert len(ids) == len(set(ids)) == 2

    def test_addition_raises_net(self, editor):
        draft = editor.add_addition(ANA, "Holiday bonus", "100")
        ana = draft.line(ANA)
        assert ana.custom_additions[0].id == "manual-add-0"
        assert ana.totals.additions == Decimal("100.00")
        assert ana.net == Decimal("550.00")

    def test_edit_and_delete_addition(self, editor):
        editor.add_addition(ANA, "Bonus", "100")
        editor.edit_addition(ANA, 0, label="Holiday bonus")
        assert editor.draft.line(ANA).custom_additions[0].label == "Holiday bonus"
        draft = editor.delete_addition(ANA, 0)
        assert draft.line(ANA).custom_additions == ()
        assert draft.line(ANA).net == Decimal("450.00")

    @pytest.mark.parametrize("index", [-1, 1])
    def test_bad_index(self, editor, index):
        editor.add_deduction(ANA, "Uniform", "75")
        with pytest.raises(AdjustmentNotFoundError):
            editor.edit_deduction(ANA, index, amount="1")
        with pytest.raises(AdjustmentNotFoundError):
            editor.delete_deduction(ANA, index)


class TestExpenseMode:

    def test_per_shift_fills_missing_dates(self, editor):
        keep = manila(2024, 1, 6, 0)
        editor.set_expense_date(ANA, SHIFT_B, keep)
        draft = editor.set_expense_mode("per-shift")
        assert draft.expense_mode is ExpenseMode.PER_SHIFT
        ana = draft.line(ANA)
        assert ana.row(SHIFT_A).expense_date == manila(2024, 1, 20)
        assert ana.row(SHIFT_B).expense_date == keep

    def test_per_staff_resets_dates_to_pay_date(self, editor):
        editor.set_expense_date(ANA, SHIFT_B, manila(2024, 1, 6, 0))
        draft = editor.set_expense_mode(ExpenseMode.PER_STAFF)
        dates = {r.expense_date for ln in draft.lines for r in ln.shift_rows}
        assert dates == {manila(2024, 1, 20)}

    def test_unknown_mode(self, editor):
        with pytest.raises(InvalidExpenseModeError):
            editor.set_expense_mode("per-week")

    def test_set_pay_date(self, editor):
        assert editor.set_pay_date(date(2024, 1, 19)).pay_date == date(2024, 1, 19)


class TestNotEditable:

    @pytest.mark.parametrize("status", [RunStatus.POSTING, RunStatus.POSTED, RunStatus.VOIDED])
    def test_every_mutation_rejected(self, draft, status):
        editor = RunLineEditor(replace(draft, status=status))
        mutations = [
            lambda: editor.set_rate(ANA, Decimal("1")),
            lambda: editor.override_shift_times(ANA, SHIFT_A, end=manila(2024, 1, 5, 9)),
            lambda: editor.clear_override(ANA, SHIFT_A),
            lambda: editor.exclude_shift(ANA, SHIFT_A),
            lambda: editor.include_shift(ANA, SHIFT_A),
            lambda: editor.set_expense_date(ANA, SHIFT_A, None),
            lambda: editor.add_deduction(ANA, "x", "1"),
            lambda: editor.edit_deduction(ANA, 0, amount="1"),
            lambda: editor.delete_deduction(ANA, 0),
            lambda: editor.add_addition(ANA, "x", "1"),
            lambda: editor.edit_addition(ANA, 0, amount="1"),
            lambda: editor.delete_addition(ANA, 0),
            lambda: editor.set_expense_mode("per-shift"),
            lambda: editor.set_pay_date(date(2024, 1, 21)),
        ]
        for mutate in mutations:
            with pytest.raises(RunNotEditableError):
                mutate()
        assert editor.draft.status is status
