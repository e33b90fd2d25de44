"""
Tests for the reattribution table.

Covers:
- Cross-staff advances keyed to their beneficiary
- Unlinked advances falling back to the recording staff member
- Duplicate transaction ids counted once
- Alias assignment by email or uid
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from shop_engines.reattribution import (
    DeductionKind,
    build_reattribution_table,
    cross_staff_label,
)
from shop_engines.shift_metrics import ForeignAdvance
from shop_kernel.domain.dtos import LedgerTransaction, TransactionCategory

TS = datetime(2024, 1, 5, 2, 0, tzinfo=timezone.utc)  # 10:00 Manila


def _foreign(amount="100", uid="ben", email=None) -> ForeignAdvance:
    return ForeignAdvance(
        transaction_id=uuid4(),
        shift_id=uuid4(),
        amount=Decimal(amount),
        beneficiary_id=uid,
        beneficiary_email=email,
        beneficiary_name="Ben",
        timestamp=TS,
    )


def _unlinked(amount="75", **kw) -> LedgerTransaction:
    return LedgerTransaction(
        id=uuid4(),
        category=TransactionCategory.CREDIT,
        item="Expenses",
        amount=Decimal(amount),
        timestamp=TS,
        expense_type="Salary Advance",
        **kw,
    )


class TestBuildTable:

    def test_cross_staff_record(self):
        adv = _foreign("120")
        label = cross_staff_label("Morning", TS, "Asia/Manila")
        table = build_reattribution_table([(adv, label)])
        (record,) = table.records
        assert record.kind is DeductionKind.CROSS_STAFF
        assert record.amount == Decimal("120")
        assert record.from_shift_id == adv.shift_id
        assert record.label == "Salary Advance (recorded on Morning - 1/5/2024)"

    def test_unlinked_uses_beneficiary_then_recorder(self):
        with_ben = _unlinked(staff_id="ana", beneficiary_id="ben")
        recorder_only = _unlinked(staff_id="ana", staff_name="Ana")
        table = build_reattribution_table([], [with_ben, recorder_only])
        keys = [r.beneficiary_key for r in table.records]
        assert keys == ["uid:ben", "uid:ana"]
        assert all(r.kind is DeductionKind.UNLINKED for r in table.records)
        assert table.records[0].label == "Salary Advance (Admin Manual - 1/5/2024)"

    def test_unlinked_without_staff_skipped(self, captured_logs):
        table = build_reattribution_table([], [_unlinked()])
        assert len(table) == 0
        assert any(r["message"] == "unlinked_advance_without_staff" for r in captured_logs())

    def test_inactive_unlinked_skipped(self):
        table = build_reattribution_table([], [_unlinked(staff_id="ana", voided=True)])
        assert len(table) == 0

    def test_duplicates_counted_once(self):
        adv = _foreign()
        table = build_reattribution_table([(adv, "x"), (adv, "x")])
        assert len(table) == 1
        assert sum(r.amount for r in table.records) == Decimal("100.00")


class TestAssign:

    def test_matches_by_email_alias(self):
        table = build_reattribution_table([(_foreign(uid=None, email="Ben@Shop.Test"), "x")])
        assigned = table.assign({"ben@shop.test": "ben@shop.test"})
        assert list(assigned) == ["ben@shop.test"]

    def test_matches_line_keyed_by_email_through_uid(self):
        table = build_reattribution_table([(_foreign(uid="ben"), "x")])
        assigned = table.assign({"uid:ben": "ben@shop.test", "ben@shop.test": "ben@shop.test"})
        assert list(assigned) == ["ben@shop.test"]

    def test_unmatched_uses_own_key(self):
        table = build_reattribution_table([(_foreign(uid="zed"), "x")])
        assert list(table.assign({})) == ["uid:zed"]
