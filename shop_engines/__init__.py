"""
Pure calculation engines for shop payroll.

Engines take kernel DTOs and plain values, return frozen results, and never
touch the database or the clock.  Each public entry point is wrapped with
``@traced_engine`` so its invocations appear in the structured log.
"""

from shop_engines.line_calculator import LineTotals, compute_line_totals
from shop_engines.pay_period import PayPeriod, pay_period_for, previous_period
from shop_engines.posting_plan import (
    PER_SHIFT,
    PER_STAFF,
    PlannedPosting,
    PostingKind,
    ShiftPayInput,
    plan_line_postings,
    planned_total,
)
from shop_engines.rates import RateResolution, RateSource, resolve_hourly_rate
from shop_engines.reattribution import (
    DeductionKind,
    DeductionRecord,
    ReattributionTable,
    build_reattribution_table,
)
from shop_engines.shift_metrics import (
    AdvanceSplit,
    ForeignAdvance,
    infer_shift_name,
    minutes_worked,
    shortage_for_shift,
    split_advances,
)

__all__ = [
    "AdvanceSplit",
    "DeductionKind",
    "DeductionRecord",
    "ForeignAdvance",
    "LineTotals",
    "PER_SHIFT",
    "PER_STAFF",
    "PayPeriod",
    "PlannedPosting",
    "PostingKind",
    "RateResolution",
    "RateSource",
    "ReattributionTable",
    "ShiftPayInput",
    "build_reattribution_table",
    "compute_line_totals",
    "infer_shift_name",
    "minutes_worked",
    "pay_period_for",
    "plan_line_postings",
    "planned_total",
    "previous_period",
    "resolve_hourly_rate",
    "shortage_for_shift",
    "split_advances",
]
