"""
Module: shop_kernel.selectors.transaction_selector
Responsibility: Read-only queries over the transaction ledger: salary advances
    by shift or period, payroll postings by run, and beneficiary lookups.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.

Invariants enforced:
    - "Active" means not voided and not soft-deleted.  Every advance query
      returns active rows only.
    - Results are ordered by (timestamp, id) so repeated passes over the same
      state produce the same sequence.
"""

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from shop_kernel.domain.dtos import LedgerTransaction
from shop_kernel.models.transaction import LedgerTransactionModel
from shop_kernel.selectors.base import BaseSelector

_ACTIVE = (
    LedgerTransactionModel.voided.is_(False),
    LedgerTransactionModel.is_deleted.is_(False),
)

_ORDER = (LedgerTransactionModel.timestamp, LedgerTransactionModel.id)


class TransactionSelector(BaseSelector[LedgerTransactionModel]):
    """Ledger reads for payroll."""

    def get(self, transaction_id: UUID) -> LedgerTransaction | None:
        model = self.session.get(LedgerTransactionModel, transaction_id)
        return model.to_dto() if model is not None else None

    def advances_for_shifts(
        self,
        shift_ids: Iterable[UUID],
        expense_type: str,
    ) -> list[LedgerTransaction]:
        """Active advances recorded against any of ``shift_ids``."""
        ids = list(shift_ids)
        if not ids:
            return []
        stmt = (
            select(LedgerTransactionModel)
            .where(
                LedgerTransactionModel.expense_type == expense_type,
                LedgerTransactionModel.shift_id.in_(ids),
                *_ACTIVE,
            )
            .order_by(*_ORDER)
        )
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def unlinked_advances(
        self,
        start: datetime,
        end: datetime,
        expense_type: str,
    ) -> list[LedgerTransaction]:
        """Active advances with no shift whose timestamp is in ``[start, end)``."""
        stmt = (
            select(LedgerTransactionModel)
            .where(
                LedgerTransactionModel.expense_type == expense_type,
                LedgerTransactionModel.shift_id.is_(None),
                LedgerTransactionModel.timestamp >= start,
                LedgerTransactionModel.timestamp < end,
                *_ACTIVE,
            )
            .order_by(*_ORDER)
        )
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def for_run(
        self,
        run_id: UUID,
        include_voided: bool = False,
    ) -> list[LedgerTransaction]:
        """Transactions tagged with a payroll run."""
        stmt = select(LedgerTransactionModel).where(
            LedgerTransactionModel.payroll_run_id == run_id,
        )
        if not include_voided:
            stmt = stmt.where(*_ACTIVE)
        return [m.to_dto() for m in self.session.scalars(stmt.order_by(*_ORDER))]

    def active_total_for_run(self, run_id: UUID) -> Decimal:
        """Sum of active postings tagged with a payroll run."""
        stmt = select(func.coalesce(func.sum(LedgerTransactionModel.amount), 0)).where(
            LedgerTransactionModel.payroll_run_id == run_id,
            *_ACTIVE,
        )
        return Decimal(str(self.session.scalar(stmt)))

