"""
Tests for the hourly rate resolver.

Covers:
- Latest effective history entry as of a date
- Fallback to the default rate before any entry
- Missing profile and missing default
- Undated entries and equal effective dates
"""

from datetime import datetime, timezone
from decimal import Decimal

from shop_engines.rates import RateSource, resolve_hourly_rate
from shop_kernel.domain.dtos import RateEntry, StaffPayrollProfile


def _utc(y, m, d):
    return datetime(y, m, d, tzinfo=timezone.utc)


HISTORY = StaffPayrollProfile(
    default_rate=Decimal("45"),
    rate_history=(
        RateEntry(Decimal("50"), _utc(2024, 1, 1)),
        RateEntry(Decimal("60"), _utc(2024, 2, 1)),
    ),
)


class TestResolveHourlyRate:

    def test_january(self):
        result = resolve_hourly_rate(HISTORY, _utc(2024, 1, 15))
        assert result.rate == Decimal("50")
        assert result.source is RateSource.HISTORY
        assert result.effective_from == _utc(2024, 1, 1)

    def test_february(self):
        assert resolve_hourly_rate(HISTORY, _utc(2024, 2, 15)).rate == Decimal("60")

    def test_before_any_entry_uses_default(self):
        result = resolve_hourly_rate(HISTORY, _utc(2023, 12, 31))
        assert result.rate == Decimal("45")
        assert result.source is RateSource.DEFAULT

    def test_entry_order_does_not_matter(self):
        shuffled = StaffPayrollProfile(rate_history=tuple(reversed(HISTORY.rate_history)))
        assert resolve_hourly_rate(shuffled, _utc(2024, 3, 1)).rate == Decimal("60")

    def test_same_day_later_entry_wins(self):
        profile = StaffPayrollProfile(rate_history=(
            RateEntry(Decimal("50"), _utc(2024, 1, 1)),
            RateEntry(Decimal("52"), _utc(2024, 1, 1)),
        ))
        assert resolve_hourly_rate(profile, _utc(2024, 1, 2)).rate == Decimal("52")

    def test_undated_entry_always_effective(self):
        profile = StaffPayrollProfile(rate_history=(RateEntry(Decimal("40"), None),))
        assert resolve_hourly_rate(profile, _utc(2000, 1, 1)).rate == Decimal("40")

    def test_no_profile_is_missing(self):
        result = resolve_hourly_rate(None, _utc(2024, 1, 1))
        assert result.is_missing
        assert result.rate == Decimal("0")

    def test_no_default_is_missing(self):
        profile = StaffPayrollProfile(rate_history=(RateEntry(Decimal("50"), _utc(2024, 6, 1)),))
        assert resolve_hourly_rate(profile, _utc(2024, 1, 1)).is_missing

    def test_negative_rate_ignored(self):
        profile = StaffPayrollProfile(
            default_rate=Decimal("30"),
            rate_history=(RateEntry(Decimal("-5"), _utc(2024, 1, 1)),),
        )
        assert resolve_hourly_rate(profile, _utc(2024, 2, 1)).source is RateSource.DEFAULT
