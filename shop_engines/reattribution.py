"""
Module: shop_engines.reattribution
Responsibility:
    Collect the salary advances that must be deducted from someone other
    than the owner of the shift they were recorded on, plus advances entered
    without any shift, into one lookup table keyed by beneficiary.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import shop_kernel/domain, sibling engines and the tracer.

Invariants enforced:
    - A transaction appears in the table at most once.
    - Every record is assigned to exactly one payroll line: the line whose
      email or uid alias matches the beneficiary, else a new line keyed by
      the beneficiary's own staff key.
    - The table is built once per pass and is read-only afterwards.

Audit relevance:
    Each record keeps the source transaction id, and for cross-staff
    records the shift id, so an ``extra-advance`` deduction on a paystub can
    be traced to the ledger entry that caused it.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from shop_engines.shift_metrics import ForeignAdvance, format_local_date
from shop_engines.tracer import traced_engine
from shop_kernel.domain.dtos import LedgerTransaction, staff_key_for
from shop_kernel.domain.values import to_money
from shop_kernel.logging_config import get_logger

logger = get_logger("engines.reattribution")


class DeductionKind(Enum):
    CROSS_STAFF = "cross-staff"
    UNLINKED = "unlinked"


@dataclass(frozen=True)
class DeductionRecord:
    """
    One advance to deduct from a beneficiary's pay.

    Contract:
        ``from_shift_id`` is set for CROSS_STAFF records and None for
        UNLINKED ones.
    """

    transaction_id: UUID
    kind: DeductionKind
    amount: Decimal
    label: str
    beneficiary_id: str | None
    beneficiary_email: str | None
    beneficiary_name: str | None
    from_shift_id: UUID | None = None
    expense_date: datetime | None = None

    @property
    def beneficiary_key(self) -> str:
        return staff_key_for(self.beneficiary_email, self.beneficiary_id)

    @property
    def alias_keys(self) -> tuple[str, ...]:
        keys: list[str] = []
        if self.beneficiary_email:
            keys.append(staff_key_for(self.beneficiary_email, None))
        if self.beneficiary_id:
            keys.append(staff_key_for(None, self.beneficiary_id))
        return tuple(keys) or (self.beneficiary_key,)


class ReattributionTable:
    """
    Beneficiary lookup table for one preview or finalize pass.

    Contract:
        ``add`` ignores a transaction id it has already seen.
        ``assign`` maps each record to a line key using an alias index.
    Non-goals:
        Does not decide which advances are foreign; ``split_advances``
        does that.
    """

    def __init__(self) -> None:
        self._records: list[DeductionRecord] = []
        self._seen: set[UUID] = set()

    def add(self, record: DeductionRecord) -> bool:
        if record.transaction_id in self._seen:
            return False
        self._seen.add(record.transaction_id)
        self._records.append(record)
        return True

    @property
    def records(self) -> tuple[DeductionRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def assign(self, alias_index: Mapping[str, str]) -> dict[str, list[DeductionRecord]]:
        """
        Group records by the line key they should be deducted from.

        Args:
            alias_index: Maps alias keys (``email`` and ``uid:<id>``) of the
                existing lines to their line key.

        Returns:
            Line key -> records, in insertion order.  Records whose
            beneficiary matches no alias are keyed by their own staff key.
        """
        assigned: dict[str, list[DeductionRecord]] = {}
        for record in self._records:
            target = next(
                (alias_index[k] for k in record.alias_keys if k in alias_index),
                record.beneficiary_key,
            )
            assigned.setdefault(target, []).append(record)
        return assigned


def cross_staff_label(shift_name: str, shift_start: datetime | None, tz: str) -> str:
    return f"Salary Advance (recorded on {shift_name} - {format_local_date(shift_start, tz)})"


def unlinked_label(transaction: LedgerTransaction, tz: str) -> str:
    return f"Salary Advance (Admin Manual - {format_local_date(transaction.timestamp, tz)})"


@traced_engine("reattribution_table", "1.0")
def build_reattribution_table(
    foreign_advances: Iterable[tuple[ForeignAdvance, str]],
    unlinked_advances: Iterable[LedgerTransaction] = (),
    tz: str = "Asia/Manila",
) -> ReattributionTable:
    """
    Build the table from foreign advances and shift-less advances.

    Args:
        foreign_advances: ``(advance, label)`` pairs; the label names the
            shift the advance was recorded on.
        unlinked_advances: Active salary advances with no shift in the
            period.  The beneficiary fields identify who received them,
            falling back to the recording staff member.
        tz: Business timezone for labels.
    """
    table = ReattributionTable()
    for advance, label in foreign_advances:
        table.add(
            DeductionRecord(
                transaction_id=advance.transaction_id,
                kind=DeductionKind.CROSS_STAFF,
                amount=advance.amount,
                label=label,
                beneficiary_id=advance.beneficiary_id,
                beneficiary_email=advance.beneficiary_email,
                beneficiary_name=advance.beneficiary_name,
                from_shift_id=advance.shift_id,
                expense_date=advance.timestamp,
            )
        )
    for tx in unlinked_advances:
        if not tx.is_active or tx.shift_id is not None:
            continue
        if tx.has_beneficiary:
            uid, email, name = tx.beneficiary_id, tx.beneficiary_email, tx.beneficiary_name
        else:
            uid, email, name = tx.staff_id, tx.staff_email, tx.staff_name
        if not uid and not email:
            logger.warning(
                "unlinked_advance_without_staff",
                extra={"transaction_id": str(tx.id)},
            )
            continue
        table.add(
            DeductionRecord(
                transaction_id=tx.id,
                kind=DeductionKind.UNLINKED,
                amount=to_money(tx.amount),
                label=unlinked_label(tx, tz),
                beneficiary_id=uid,
                beneficiary_email=email,
                beneficiary_name=name,
                expense_date=tx.timestamp,
            )
        )
    return table
