"""
Module: shop_kernel.models.transaction
Responsibility: ORM persistence for the shared transaction ledger (sales,
    expenses, salary advances, payroll postings).  Converts to LedgerTransaction.
Architecture position: Kernel > Models.  Imports from db/ and domain/dtos.py.

Invariants enforced:
    - Amount, category, timestamp, shift and staff/beneficiary fields never
      change after INSERT (db/immutability.py).  Only ``voided`` and
      ``is_deleted`` flip.
    - Hard DELETE is blocked; removal is the ``is_deleted`` soft flag.

Audit relevance:
    Payroll postings carry ``payroll_run_id``, ``payroll_attempt`` and
    ``source`` so every peso paid is traceable to the finalize attempt that
    wrote it.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from shop_kernel.db.base import TrackedBase
from shop_kernel.db.types import UTCDateTime
from shop_kernel.domain.dtos import LedgerTransaction, TransactionCategory


class LedgerTransactionModel(TrackedBase):
    """
    ORM model for a ledger transaction.

    Guarantees:
        - ``amount`` is Decimal (Numeric(14, 2)).
        - ``category`` stores the TransactionCategory value string.
    """

    __tablename__ = "transactions"

    category: Mapped[str] = mapped_column(String(20), nullable=False)
    item: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    staff_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    staff_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    staff_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    shift_id: Mapped[UUID | None] = mapped_column(nullable=True)
    expense_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    beneficiary_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    beneficiary_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    beneficiary_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payroll_run_id: Mapped[UUID | None] = mapped_column(nullable=True)
    payroll_attempt: Mapped[int | None] = mapped_column(nullable=True)
    source: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    voided: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    voided_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    voided_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("idx_txn_expense_type", "expense_type"),
        Index("idx_txn_shift", "shift_id"),
        Index("idx_txn_payroll_run", "payroll_run_id"),
        Index("idx_txn_timestamp", "timestamp"),
    )

    def to_dto(self) -> LedgerTransaction:
        return LedgerTransaction(
            id=self.id,
            category=TransactionCategory(self.category),
            item=self.item,
            amount=self.amount,
            timestamp=self.timestamp,
            staff_id=self.staff_id,
            staff_email=self.staff_email,
            staff_name=self.staff_name,
            shift_id=self.shift_id,
            expense_type=self.expense_type,
            beneficiary_id=self.beneficiary_id,
            beneficiary_email=self.beneficiary_email,
            beneficiary_name=self.beneficiary_name,
            payroll_run_id=self.payroll_run_id,
            payroll_attempt=self.payroll_attempt,
            source=self.source,
            notes=self.notes,
            voided=self.voided,
            is_deleted=self.is_deleted,
        )

    def __repr__(self) -> str:
        return (
            f"<LedgerTransactionModel {self.id} {self.category} "
            f"{self.expense_type} {self.amount}>"
        )
