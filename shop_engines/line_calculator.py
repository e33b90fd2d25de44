"""
Module: shop_engines.line_calculator
Responsibility:
    Recompute the totals of one payroll line from its shift rows and
    adjustment lists.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Excluded rows contribute neither minutes nor deductions.
    - Every total is rounded once with round_money().
    - net == gross + additions - advances - shortages - other_deductions,
      exactly, after rounding each term.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from shop_engines.tracer import traced_engine
from shop_kernel.domain.values import ZERO, calculate_gross, round_money, to_money


class ShiftRowLike(Protocol):
    excluded: bool
    minutes_used: int
    advance: Decimal
    shortage: Decimal


class AmountLike(Protocol):
    amount: Decimal


@dataclass(frozen=True)
class LineTotals:
    minutes: int = 0
    gross: Decimal = ZERO
    advances: Decimal = ZERO
    shortages: Decimal = ZERO
    other_deductions: Decimal = ZERO
    additions: Decimal = ZERO
    net: Decimal = ZERO

    @property
    def total_deductions(self) -> Decimal:
        return round_money(self.advances + self.shortages + self.other_deductions)


def _sum_amounts(items: Iterable[AmountLike]) -> Decimal:
    return round_money(sum((to_money(i.amount) for i in items), Decimal("0")))


@traced_engine("line_calculator", "1.0", fingerprint_fields=("rate",))
def compute_line_totals(
    rate: Decimal,
    rows: Iterable[ShiftRowLike],
    extra_advances: Iterable[AmountLike] = (),
    custom_deductions: Iterable[AmountLike] = (),
    custom_additions: Iterable[AmountLike] = (),
) -> LineTotals:
    """Totals for a line with hourly ``rate``."""
    included = [r for r in rows if not r.excluded]
    minutes = sum(max(0, int(r.minutes_used or 0)) for r in included)
    gross = calculate_gross(minutes, rate if rate is not None else ZERO)
    advances = round_money(sum((to_money(r.advance) for r in included), Decimal("0")))
    shortages = round_money(sum((to_money(r.shortage) for r in included), Decimal("0")))
    other = round_money(_sum_amounts(extra_advances) + _sum_amounts(custom_deductions))
    additions = _sum_amounts(custom_additions)
    net = round_money(gross + additions - advances - shortages - other)
    return LineTotals(
        minutes=minutes,
        gross=gross,
        advances=advances,
        shortages=shortages,
        other_deductions=other,
        additions=additions,
        net=net,
    )
