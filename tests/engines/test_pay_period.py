"""
Tests for pay period computation.
"""

from datetime import date

import pytest

from shop_engines.pay_period import PayPeriod, pay_period_for, previous_period


class TestPayPeriodFor:

    def test_weekly_starts_monday(self):
        period = pay_period_for(date(2024, 1, 10), "weekly")  # Wednesday
        assert period == PayPeriod(date(2024, 1, 8), date(2024, 1, 14))

    def test_biweekly_from_anchor(self):
        period = pay_period_for(date(2024, 1, 20), "biweekly", anchor=date(2024, 1, 1))
        assert period == PayPeriod(date(2024, 1, 15), date(2024, 1, 28))
        assert period.days == 14

    def test_biweekly_before_anchor(self):
        period = pay_period_for(date(2023, 12, 25), "biweekly", anchor=date(2024, 1, 1))
        assert period == PayPeriod(date(2023, 12, 18), date(2023, 12, 31))

    def test_semi_monthly(self):
        assert pay_period_for(date(2024, 2, 10), "semi-monthly") == PayPeriod(
            date(2024, 2, 1), date(2024, 2, 15)
        )
        assert pay_period_for(date(2024, 2, 20), "semi-monthly") == PayPeriod(
            date(2024, 2, 16), date(2024, 2, 29)
        )

    def test_monthly(self):
        assert pay_period_for(date(2023, 2, 3), "monthly") == PayPeriod(
            date(2023, 2, 1), date(2023, 2, 28)
        )

    def test_unknown_schedule(self):
        with pytest.raises(ValueError):
            pay_period_for(date(2024, 1, 1), "daily")

    def test_previous(self):
        current = PayPeriod(date(2024, 1, 15), date(2024, 1, 28))
        assert previous_period(current, "biweekly") == PayPeriod(date(2024, 1, 1), date(2024, 1, 14))
        assert previous_period(PayPeriod(date(2024, 3, 1), date(2024, 3, 15)), "semi-monthly") == (
            PayPeriod(date(2024, 2, 16), date(2024, 2, 29))
        )

    def test_contains(self):
        period = PayPeriod(date(2024, 1, 1), date(2024, 1, 15))
        assert period.contains(date(2024, 1, 15))
        assert not period.contains(date(2024, 1, 16))

    def test_inverted_rejected(self):
        with pytest.raises(ValueError):
            PayPeriod(date(2024, 1, 2), date(2024, 1, 1))
