"""
Module: shop_engines.posting_plan
Responsibility:
    Turn a finalized payroll line into the list of salary expense entries
    to write to the ledger, in either expense mode.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - The planned amounts of a line sum to the line's net pay in both
      modes.  In per-shift mode the cent residual between the line gross
      and the sum of per-shift gross is folded into the last shift entry.
    - A per-shift entry whose gross and own deductions are both zero is
      not planned.
    - Per-staff mode plans exactly one entry (unless the net is zero and
      zero amounts are not posted).

Failure modes:
    - ValueError for an unknown expense mode.

Audit relevance:
    Paystub net pay equals the sum of the run's postings only because every
    planned amount comes from here.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from shop_engines.tracer import traced_engine
from shop_kernel.domain.values import ZERO, calculate_gross, round_money
from shop_kernel.logging_config import get_logger

logger = get_logger("engines.posting_plan")

PER_STAFF = "per-staff"
PER_SHIFT = "per-shift"


class PostingKind(Enum):
    NET = "net"
    SHIFT = "shift"
    ADDITIONS = "additions"
    DEDUCTIONS = "deductions"


@dataclass(frozen=True)
class ShiftPayInput:
    """One included shift of a line, as the posting plan sees it."""

    shift_id: UUID
    label: str
    minutes: int
    expense_date: datetime
    deductions: Decimal = ZERO


@dataclass(frozen=True)
class PlannedPosting:
    kind: PostingKind
    amount: Decimal
    timestamp: datetime
    notes: str
    shift_id: UUID | None = None


def _peso(amount: Decimal, symbol: str) -> str:
    return f"{symbol}{round_money(amount):.2f}"


@traced_engine("posting_plan", "1.0", fingerprint_fields=("mode", "rate", "net"))
def plan_line_postings(
    *,
    mode: str,
    rate: Decimal,
    gross: Decimal,
    additions: Decimal,
    other_deductions: Decimal,
    net: Decimal,
    shifts: Sequence[ShiftPayInput],
    pay_date: datetime,
    period_label: str,
    currency_symbol: str = "₱",
    post_zero_amounts: bool = False,
) -> tuple[PlannedPosting, ...]:
    """
    Plan the ledger entries for one line.

    Args:
        mode: ``per-staff`` or ``per-shift``.
        rate: Hourly rate of the line.
        gross: Line gross (rounded once over total minutes).
        additions: Sum of manual additions.
        other_deductions: Manual plus cross-staff deductions.
        net: Line net pay.
        shifts: Included shifts with their own advances and shortages.
        pay_date: Date for per-staff, addition and deduction entries.
        period_label: Text such as ``2024-01-01 - 2024-01-15``.
    """
    if mode == PER_STAFF:
        if net == 0 and not post_zero_amounts:
            return ()
        return (
            PlannedPosting(
                kind=PostingKind.NET,
                amount=round_money(net),
                timestamp=pay_date,
                notes=(
                    f"Payroll [{period_label}] | Gross: {_peso(gross, currency_symbol)}"
                    f" | Adds: {_peso(additions, currency_symbol)}"
                    f" | Net: {_peso(net, currency_symbol)}"
                ),
            ),
        )
    if mode != PER_SHIFT:
        raise ValueError(f"Unknown expense mode: {mode!r}")

    plans: list[PlannedPosting] = []
    if additions != 0:
        plans.append(
            PlannedPosting(
                kind=PostingKind.ADDITIONS,
                amount=round_money(additions),
                timestamp=pay_date,
                notes=f"Payroll Additions/Bonuses [{period_label}]",
            )
        )

    shift_gross = [calculate_gross(s.minutes, rate) for s in shifts]
    residual = round_money(gross - sum(shift_gross, Decimal("0")))
    if shift_gross and residual:
        shift_gross[-1] = round_money(shift_gross[-1] + residual)
        logger.debug(
            "shift_gross_residual_folded",
            extra={"residual": str(residual), "shift_id": str(shifts[-1].shift_id)},
        )

    for s, s_gross in zip(shifts, shift_gross):
        if s_gross == 0 and s.deductions == 0 and not post_zero_amounts:
            continue
        s_net = round_money(s_gross - s.deductions)
        plans.append(
            PlannedPosting(
                kind=PostingKind.SHIFT,
                amount=s_net,
                timestamp=s.expense_date,
                notes=(
                    f"Payroll [{period_label}] | Shift: {s.label}"
                    f" | Gross: {_peso(s_gross, currency_symbol)}"
                    f" | Net: {_peso(s_net, currency_symbol)}"
                ),
                shift_id=s.shift_id,
            )
        )

    if other_deductions != 0:
        plans.append(
            PlannedPosting(
                kind=PostingKind.DEDUCTIONS,
                amount=round_money(-other_deductions),
                timestamp=pay_date,
                notes=f"Payroll manual / cross-staff deductions [{period_label}]",
            )
        )
    return tuple(plans)


def planned_total(plans: Sequence[PlannedPosting]) -> Decimal:
    return round_money(sum((p.amount for p in plans), Decimal("0")))
