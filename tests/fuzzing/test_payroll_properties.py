"""
Property-based tests for the payroll engines.

Properties:
- Minutes worked are never negative, whatever the overrides
- Shortages are never negative
- Per-shift postings of a line always sum to its net pay
- A later period end never picks an older rate entry
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from hypothesis import given, settings
from hypothesis import strategies as st

from shop_engines.line_calculator import compute_line_totals
from shop_engines.posting_plan import ShiftPayInput, plan_line_postings
from shop_engines.rates import resolve_hourly_rate
from shop_engines.shift_metrics import minutes_worked, shortage_for_shift
from shop_kernel.domain.dtos import RateEntry, ShiftRecord, StaffPayrollProfile
from shop_kernel.domain.values import round_money
from shop_modules.payroll.models import ShiftRow

BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)

offsets = st.integers(min_value=-3 * 24 * 60, max_value=3 * 24 * 60)
maybe_offset = st.one_of(st.none(), offsets)
money = st.decimals(min_value=0, max_value=100_000, places=2, allow_nan=False, allow_infinity=False)
rates = st.decimals(min_value=0, max_value=2_000, places=2, allow_nan=False, allow_infinity=False)


def _at(minutes):
    return None if minutes is None else BASE + timedelta(minutes=minutes)


def _shift(start, end, **extra) -> ShiftRecord:
    return ShiftRecord(
        id=uuid4(),
        staff_id="ana",
        staff_email="ana@shop.test",
        staff_name="Ana",
        start=start,
        end=end,
        **extra,
    )


# =============================================================================
# Shift metrics
# =============================================================================


@given(start=offsets, end=maybe_offset, o_start=maybe_offset, o_end=maybe_offset, now=maybe_offset)
def test_minutes_never_negative(start, end, o_start, o_end, now):
    shift = _shift(_at(start), _at(end))
    assert minutes_worked(shift, _at(o_start), _at(o_end), _at(now)) >= 0


@given(
    system_total=st.one_of(st.none(), money),
    bills=st.dictionaries(
        st.sampled_from(["b_1000", "b_500", "b_100", "b_50", "b_20", "c_10", "c_5", "c_1"]),
        st.integers(min_value=0, max_value=200),
    ),
)
def test_shortage_never_negative(system_total, bills):
    shift = _shift(BASE, BASE + timedelta(hours=8), denominations=bills, system_total=system_total)
    assert shortage_for_shift(shift) >= 0


# =============================================================================
# Posting plan
# =============================================================================


shift_inputs = st.lists(
    st.tuples(st.integers(min_value=0, max_value=16 * 60), money.filter(lambda m: m < 5_000)),
    min_size=1,
    max_size=10,
)


@settings(max_examples=200, deadline=None)
@given(
    rate=rates,
    shifts=shift_inputs,
    additions=st.lists(money.filter(lambda m: m < 2_000), max_size=3),
    deductions=st.lists(money.filter(lambda m: m < 2_000), max_size=3),
)
def test_per_shift_postings_sum_to_net(rate, shifts, additions, deductions):
    rows = [
        ShiftRow(
            shift_id=uuid4(),
            start=BASE + timedelta(days=i),
            end=BASE + timedelta(days=i, minutes=minutes),
            minutes_used=minutes,
            shortage=Decimal("0"),
            advance=advance,
        )
        for i, (minutes, advance) in enumerate(shifts)
    ]

    class _Amount:
        def __init__(self, amount):
            self.amount = amount

    totals = compute_line_totals(
        rate,
        rows,
        custom_deductions=[_Amount(d) for d in deductions],
        custom_additions=[_Amount(a) for a in additions],
    )
    plans = plan_line_postings(
        mode="per-shift",
        rate=rate,
        gross=totals.gross,
        additions=totals.additions,
        other_deductions=totals.other_deductions,
        net=totals.net,
        shifts=[
            ShiftPayInput(
                shift_id=r.shift_id,
                label=f"shift {i}",
                minutes=r.minutes_used,
                expense_date=r.start,
                deductions=round_money(r.advance + r.shortage),
            )
            for i, r in enumerate(rows)
        ],
        pay_date=BASE + timedelta(days=20),
        period_label="2024-01-01 - 2024-01-15",
    )
    assert round_money(sum((p.amount for p in plans), Decimal("0"))) == totals.net


# =============================================================================
# Rates
# =============================================================================


@given(
    entries=st.lists(
        st.tuples(rates, st.integers(min_value=0, max_value=365)),
        min_size=1,
        max_size=8,
        unique_by=lambda e: e[1],
    ),
    first=st.integers(min_value=0, max_value=400),
    gap=st.integers(min_value=0, max_value=400),
)
def test_later_as_of_never_picks_older_entry(entries, first, gap):
    profile = StaffPayrollProfile(
        default_rate=Decimal("1"),
        rate_history=tuple(RateEntry(rate, BASE + timedelta(days=d)) for rate, d in entries),
    )
    early = resolve_hourly_rate(profile, BASE + timedelta(days=first))
    late = resolve_hourly_rate(profile, BASE + timedelta(days=first + gap))
    if early.effective_from is not None:
        assert late.effective_from is not None
        assert late.effective_from >= early.effective_from
