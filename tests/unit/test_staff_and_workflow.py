"""
Tests for the staff directory and the payroll run workflow.

Validates:
- Staff lookup by uid and by case-insensitive email
- Rate history entries append in sequence; default rate replaceable
- Only the documented run transitions exist; voided is terminal
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from shop_kernel.exceptions import StaffNotFoundError
from shop_kernel.services.staff_directory import StaffDirectory
from shop_modules.payroll.workflows import PAYROLL_RUN_WORKFLOW


class TestStaffDirectory:

    def test_lookup_by_email_ignores_case(self, session, make_staff):
        make_staff("ana", "Ana", "Ana@Shop.Test", default_rate="50")
        directory = StaffDirectory(session)
        assert directory.get_by_email("  ana@shop.test ").uid == "ana"
        assert directory.get_by_email("") is None
        assert directory.get_by_email("nobody@shop.test") is None

    def test_rate_entries_and_default(self, session, make_staff):
        make_staff("ana", "Ana", "ana@shop.test", default_rate="50")
        directory = StaffDirectory(session)
        jan = datetime(2024, 1, 1, tzinfo=timezone.utc)
        directory.append_rate_entry("ana", Decimal("55"), jan, actor="admin")
        member = directory.append_rate_entry("ana", Decimal("60"), None, default_rate=Decimal("60"))

        assert [e.rate for e in member.payroll.rate_history] == [Decimal("55"), Decimal("60")]
        assert member.payroll.default_rate == Decimal("60")
        assert directory.set_default_rate("ana", None).payroll.default_rate is None

    def test_unknown_uid(self, session):
        directory = StaffDirectory(session)
        assert directory.get_by_uid("ghost") is None
        with pytest.raises(StaffNotFoundError):
            directory.append_rate_entry("ghost", Decimal("1"), None)
        with pytest.raises(StaffNotFoundError):
            directory.set_default_rate("ghost", Decimal("1"))


class TestRunWorkflow:

    @pytest.mark.parametrize(
        "from_state,to_state",
        [
            ("draft", "posting"),
            ("posting", "posted"),
            ("posting", "draft"),
            ("posted", "voided"),
        ],
    )
    def test_allowed(self, from_state, to_state):
        assert PAYROLL_RUN_WORKFLOW.find_transition(from_state, to_state) is not None

    @pytest.mark.parametrize(
        "from_state,to_state",
        [
            ("draft", "posted"),
            ("draft", "voided"),
            ("posted", "draft"),
            ("voided", "draft"),
            ("voided", "posted"),
        ],
    )
    def test_rejected(self, from_state, to_state):
        assert PAYROLL_RUN_WORKFLOW.find_transition(from_state, to_state) is None

    def test_voided_is_terminal(self):
        assert PAYROLL_RUN_WORKFLOW.is_terminal("voided")
        assert not PAYROLL_RUN_WORKFLOW.is_terminal("posted")
