"""
Tests for shift metrics.

Covers:
- Minutes worked with override times and presumed ends
- Expected cash and shortage floored at zero
- Shift naming and labels in the business timezone
- Splitting advances between owner and beneficiaries
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4
from zoneinfo import ZoneInfo

from shop_engines.shift_metrics import (
    expected_cash,
    format_local_date,
    infer_shift_name,
    is_for_owner,
    minutes_worked,
    shortage_for_shift,
    split_advances,
)
from shop_kernel.domain.dtos import LedgerTransaction, ShiftRecord, TransactionCategory

MANILA = ZoneInfo("Asia/Manila")


def _shift(start=None, hours=8, **kw) -> ShiftRecord:
    start = start or datetime(2024, 1, 5, 8, 0, tzinfo=MANILA)
    end = start + timedelta(hours=hours) if hours is not None else None
    return ShiftRecord(
        id=kw.pop("id", uuid4()),
        staff_id=kw.pop("staff_id", "ana"),
        staff_email=kw.pop("staff_email", "ana@shop.test"),
        staff_name="Ana",
        start=start,
        end=end,
        **kw,
    )


def _advance(shift, amount="100", **kw) -> LedgerTransaction:
    return LedgerTransaction(
        id=uuid4(),
        category=TransactionCategory.CREDIT,
        item="Expenses",
        amount=Decimal(amount),
        timestamp=shift.start,
        shift_id=kw.pop("shift_id", shift.id),
        expense_type="Salary Advance",
        **kw,
    )


class TestMinutesWorked:

    def test_plain(self):
        assert minutes_worked(_shift(hours=8)) == 480

    def test_override_end(self):
        s = _shift(hours=8)
        assert minutes_worked(s, override_end=s.start + timedelta(hours=6)) == 360

    def test_override_start_after_end(self):
        s = _shift(hours=1)
        assert minutes_worked(s, override_start=s.start + timedelta(hours=2)) == 0

    def test_ongoing_uses_presumed_end(self):
        s = _shift(hours=None)
        assert minutes_worked(s) == 0
        assert minutes_worked(s, presumed_end=s.start + timedelta(minutes=90)) == 90


class TestShortage:

    def test_shortage_from_system_total(self):
        s = _shift(system_total=Decimal("1000"), denominations={"b_500": 1, "b_100": 4})
        assert expected_cash(s) == Decimal("1000.00")
        assert shortage_for_shift(s) == Decimal("100.00")

    def test_surplus_is_zero(self):
        s = _shift(system_total=Decimal("100"), denominations={"b_1000": 1})
        assert shortage_for_shift(s) == Decimal("0.00")

    def test_cash_minus_expenses_preferred(self):
        s = _shift(
            system_total=Decimal("9999"),
            total_cash=Decimal("1500"),
            expenses_total=Decimal("200"),
            denominations={"b_1000": 1, "b_200": 1},
        )
        assert expected_cash(s) == Decimal("1300.00")
        assert shortage_for_shift(s) == Decimal("100.00")


class TestShiftNames:

    def test_by_local_hour(self):
        assert infer_shift_name(datetime(2024, 1, 5, 6, tzinfo=MANILA)) == "Morning"
        assert infer_shift_name(datetime(2024, 1, 5, 13, tzinfo=MANILA)) == "Afternoon"
        assert infer_shift_name(datetime(2024, 1, 5, 22, tzinfo=MANILA)) == "Night"
        assert infer_shift_name(datetime(2024, 1, 5, 2, tzinfo=MANILA)) == "Night"

    def test_utc_input_converted(self):
        # 01:00 UTC is 09:00 in Manila
        assert infer_shift_name(datetime(2024, 1, 5, 1, tzinfo=timezone.utc)) == "Morning"

    def test_title_wins(self):
        assert infer_shift_name(None, title="Inventory") == "Inventory"

    def test_no_start(self):
        assert infer_shift_name(None) == "Shift"

    def test_local_date(self):
        # 17:00 UTC is already the next day in Manila
        assert format_local_date(datetime(2024, 1, 4, 17, tzinfo=timezone.utc)) == "1/5/2024"
        assert format_local_date(None) == ""


class TestSplitAdvances:

    def test_no_beneficiary_belongs_to_owner(self):
        s = _shift()
        split = split_advances(s, [_advance(s, "150")])
        assert split.owner_total == Decimal("150.00")
        assert split.foreign == ()

    def test_foreign_by_uid(self):
        s = _shift()
        adv = _advance(s, "200", beneficiary_id="ben", beneficiary_name="Ben")
        split = split_advances(s, [adv])
        assert split.owner_total == Decimal("0.00")
        assert len(split.foreign) == 1
        assert split.foreign[0].transaction_id == adv.id
        assert split.foreign[0].beneficiary_key == "uid:ben"

    def test_email_compared_case_insensitively(self):
        s = _shift(staff_id=None)
        adv = _advance(s, beneficiary_email="ANA@Shop.Test")
        assert is_for_owner(adv, None, "ana@shop.test")
        assert split_advances(s, [adv]).owner_total == Decimal("100.00")

    def test_directory_identity_matches_email_only_advance(self):
        s = _shift(staff_email=None)
        adv = _advance(s, beneficiary_email="ana@shop.test")
        assert split_advances(s, [adv]).foreign != ()
        split = split_advances(s, [adv], "ana", "ana@shop.test")
        assert split.owner_total == Decimal("100.00")
        assert split.foreign == ()

    def test_voided_and_other_shift_ignored(self):
        s = _shift()
        split = split_advances(s, [
            _advance(s, voided=True),
            _advance(s, is_deleted=True),
            _advance(s, shift_id=uuid4()),
        ])
        assert split.owner_total == Decimal("0.00")
        assert split.foreign == ()
