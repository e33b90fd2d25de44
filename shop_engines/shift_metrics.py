"""
Module: shop_engines.shift_metrics
Responsibility:
    Per-shift payroll figures: minutes worked (honoring override times),
    drawer shortage, the display name and label of a shift, and the split of
    a shift's salary advances between its owner and other staff.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import shop_kernel/domain and the engine tracer.

Invariants enforced:
    - minutes_worked() >= 0; zero when start or end is missing or when the
      end is not after the start.
    - shortage_for_shift() >= 0; a surplus is never paid out.
    - Advances that are voided or soft-deleted never count.
    - An advance with no beneficiary belongs to the shift owner.

Failure modes:
    - None.  Missing data degrades to zero contributions.

Audit relevance:
    Each advance is attributed to exactly one staff member: the owner
    (``AdvanceSplit.owner_total``) or a beneficiary (``AdvanceSplit.foreign``).
    Never both.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from zoneinfo import ZoneInfo

from shop_engines.tracer import traced_engine
from shop_kernel.domain.dtos import LedgerTransaction, ShiftRecord, staff_key_for
from shop_kernel.domain.values import (
    ZERO,
    ensure_utc,
    minutes_between,
    round_money,
    sum_denominations,
    to_money,
)
from shop_kernel.logging_config import get_logger

logger = get_logger("engines.shift_metrics")

DEFAULT_TIMEZONE = "Asia/Manila"


def minutes_worked(
    shift: ShiftRecord,
    override_start: datetime | None = None,
    override_end: datetime | None = None,
    presumed_end: datetime | None = None,
) -> int:
    """
    Minutes between the effective start and end of a shift.

    ``presumed_end`` stands in for the end of a shift that is still open.
    """
    start = override_start or shift.start
    end = override_end or shift.end or presumed_end
    return minutes_between(start, end)


def expected_cash(shift: ShiftRecord) -> Decimal:
    """
    Cash the drawer should hold at close.

    Shifts recorded with ``total_cash``/``expenses_total`` expect their
    difference; older shifts carry a single ``system_total``.
    """
    if shift.total_cash is not None or shift.expenses_total is not None:
        return round_money(to_money(shift.total_cash) - to_money(shift.expenses_total))
    return to_money(shift.system_total)


def shortage_for_shift(shift: ShiftRecord) -> Decimal:
    """Expected cash minus counted cash, floored at zero."""
    delta = expected_cash(shift) - sum_denominations(shift.denominations)
    if delta <= 0:
        return ZERO
    return round_money(delta)


def infer_shift_name(
    start: datetime | None,
    title: str | None = None,
    label: str | None = None,
    tz: str = DEFAULT_TIMEZONE,
) -> str:
    """Title, else label, else Morning / Afternoon / Night by local start hour."""
    if title:
        return title
    if label:
        return label
    moment = ensure_utc(start)
    if moment is None:
        return "Shift"
    hour = moment.astimezone(ZoneInfo(tz)).hour
    if 5 <= hour < 12:
        return "Morning"
    if 12 <= hour < 18:
        return "Afternoon"
    return "Night"


def format_local_date(moment: datetime | None, tz: str = DEFAULT_TIMEZONE) -> str:
    """``M/D/YYYY`` in the business timezone; empty when unknown."""
    value = ensure_utc(moment)
    if value is None:
        return ""
    local = value.astimezone(ZoneInfo(tz))
    return f"{local.month}/{local.day}/{local.year}"


def is_for_owner(
    transaction: LedgerTransaction,
    owner_id: str | None,
    owner_email: str | None,
) -> bool:
    """
    True when an advance recorded on a shift belongs to the shift owner.

    Uids are compared when both sides have one; otherwise emails are
    compared case-insensitively.
    """
    if not transaction.has_beneficiary:
        return True
    if transaction.beneficiary_id and owner_id:
        return transaction.beneficiary_id == owner_id
    if transaction.beneficiary_email and owner_email:
        return (
            staff_key_for(transaction.beneficiary_email, None)
            == staff_key_for(owner_email, None)
        )
    return False


@dataclass(frozen=True)
class ForeignAdvance:
    """An advance recorded on one staff member's shift but paid to another."""

    transaction_id: UUID
    shift_id: UUID
    amount: Decimal
    beneficiary_id: str | None
    beneficiary_email: str | None
    beneficiary_name: str | None
    timestamp: datetime | None = None

    @property
    def beneficiary_key(self) -> str:
        return staff_key_for(self.beneficiary_email, self.beneficiary_id)


@dataclass(frozen=True)
class AdvanceSplit:
    """Owner and foreign shares of one shift's salary advances."""

    shift_id: UUID
    owner_total: Decimal = ZERO
    owner_transaction_ids: tuple[UUID, ...] = ()
    foreign: tuple[ForeignAdvance, ...] = field(default_factory=tuple)


@traced_engine("advance_split", "1.0", fingerprint_fields=("shift",))
def split_advances(
    shift: ShiftRecord,
    advances: Iterable[LedgerTransaction],
    owner_id: str | None = None,
    owner_email: str | None = None,
) -> AdvanceSplit:
    """
    Attribute the advances recorded on ``shift``.

    ``owner_id`` / ``owner_email`` default to the identity written on the
    shift; pass the directory identity to match either field.  Transactions
    for other shifts and inactive transactions are ignored.
    """
    owner_id = owner_id or shift.staff_id
    owner_email = owner_email or shift.staff_email
    owner_total = Decimal("0")
    owner_ids: list[UUID] = []
    foreign: list[ForeignAdvance] = []
    for tx in advances:
        if tx.shift_id != shift.id or not tx.is_active:
            continue
        amount = to_money(tx.amount)
        if is_for_owner(tx, owner_id, owner_email):
            owner_total += amount
            owner_ids.append(tx.id)
        else:
            foreign.append(
                ForeignAdvance(
                    transaction_id=tx.id,
                    shift_id=shift.id,
                    amount=amount,
                    beneficiary_id=tx.beneficiary_id,
                    beneficiary_email=tx.beneficiary_email,
                    beneficiary_name=tx.beneficiary_name,
                    timestamp=tx.timestamp,
                )
            )
    return AdvanceSplit(
        shift_id=shift.id,
        owner_total=round_money(owner_total),
        owner_transaction_ids=tuple(owner_ids),
        foreign=tuple(foreign),
    )
