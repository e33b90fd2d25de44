"""
DTOs -- Pure data transfer objects for shop entities.

Responsibility:
    Immutable views of shifts, ledger transactions and staff records that
    flow from the kernel read paths into the payroll engines.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies.  ORM models convert to these with
    ``to_dto()``; engines accept and return only these.

Invariants enforced:
    - Staff identity is compared through ``staff_key_for``: lowercased email
      when present, else ``uid:<id>``.
    - "Active" ledger transactions are neither voided nor soft-deleted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def staff_key_for(email: str | None, uid: str | None) -> str:
    """Grouping key for a staff member: lowercased email, else ``uid:<id>``."""
    if email:
        return email.strip().lower()
    if uid:
        return f"uid:{uid}"
    return "unknown"


@dataclass(frozen=True)
class ShiftRecord:
    """Read-only view of a shift."""

    id: UUID
    staff_id: str | None
    staff_email: str | None
    staff_name: str | None
    start: datetime | None
    end: datetime | None
    denominations: dict[str, Any] = field(default_factory=dict)
    system_total: Decimal | None = None
    total_cash: Decimal | None = None
    expenses_total: Decimal | None = None
    payroll_run_id: UUID | None = None
    title: str | None = None
    label: str | None = None

    @property
    def staff_key(self) -> str:
        return staff_key_for(self.staff_email, self.staff_id)

    @property
    def is_ongoing(self) -> bool:
        return self.start is not None and self.end is None


class TransactionCategory(Enum):
    DEBIT = "debit"    # sale
    CREDIT = "credit"  # expense


@dataclass(frozen=True)
class LedgerTransaction:
    """Read-only view of a ledger transaction."""

    id: UUID
    category: TransactionCategory
    item: str
    amount: Decimal
    timestamp: datetime
    staff_id: str | None = None
    staff_email: str | None = None
    staff_name: str | None = None
    shift_id: UUID | None = None
    expense_type: str | None = None
    beneficiary_id: str | None = None
    beneficiary_email: str | None = None
    beneficiary_name: str | None = None
    payroll_run_id: UUID | None = None
    payroll_attempt: int | None = None
    source: str | None = None
    notes: str | None = None
    voided: bool = False
    is_deleted: bool = False

    @property
    def is_active(self) -> bool:
        return not self.voided and not self.is_deleted

    @property
    def has_beneficiary(self) -> bool:
        return bool(self.beneficiary_id or self.beneficiary_email)


@dataclass(frozen=True)
class RateEntry:
    """One effective-dated hourly rate.  ``effective_from=None`` means always."""

    rate: Decimal
    effective_from: datetime | None = None


@dataclass(frozen=True)
class StaffPayrollProfile:
    default_rate: Decimal | None = None
    rate_history: tuple[RateEntry, ...] = ()


@dataclass(frozen=True)
class StaffMember:
    id: UUID
    uid: str
    email: str | None
    name: str
    role: str
    is_active: bool = True
    payroll: StaffPayrollProfile | None = None

    @property
    def staff_key(self) -> str:
        return staff_key_for(self.email, self.uid)
