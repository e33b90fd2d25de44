"""
LedgerService -- append and void ledger transactions.

Responsibility:
    The only write path into the transaction ledger: create a transaction,
    void one, soft-delete one, and void every posting of a payroll run.

Architecture position:
    Kernel > Services.  Imports from models/, db/ and the clock.

Invariants enforced:
    - No amount mutation.  Corrections are void + create (the ORM
      immutability listeners reject anything else).
    - Voiding is idempotent: an already-voided row is left untouched.

Audit relevance:
    ``voided_at`` / ``voided_by`` record who neutralized a posting and when.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from shop_kernel.db.batch import BatchWriter
from shop_kernel.domain.clock import Clock, SystemClock
from shop_kernel.domain.dtos import LedgerTransaction, TransactionCategory
from shop_kernel.logging_config import get_logger
from shop_kernel.models.transaction import LedgerTransactionModel
from shop_kernel.services.base import BaseService

logger = get_logger("services.ledger")


class LedgerService(BaseService[LedgerTransactionModel]):
    """Append-only writes to the transaction ledger."""

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def record(
        self,
        *,
        category: TransactionCategory,
        item: str,
        amount: Decimal,
        timestamp: datetime,
        staff_id: str | None = None,
        staff_email: str | None = None,
        staff_name: str | None = None,
        shift_id: UUID | None = None,
        expense_type: str | None = None,
        beneficiary_id: str | None = None,
        beneficiary_email: str | None = None,
        beneficiary_name: str | None = None,
        payroll_run_id: UUID | None = None,
        payroll_attempt: int | None = None,
        source: str | None = None,
        notes: str | None = None,
        actor: str = "system",
        writer: BatchWriter | None = None,
    ) -> LedgerTransaction:
        """Create a ledger transaction."""
        model = LedgerTransactionModel(
            category=category.value,
            item=item,
            amount=amount,
            timestamp=timestamp,
            staff_id=staff_id,
            staff_email=staff_email,
            staff_name=staff_name,
            shift_id=shift_id,
            expense_type=expense_type,
            beneficiary_id=beneficiary_id,
            beneficiary_email=beneficiary_email,
            beneficiary_name=beneficiary_name,
            payroll_run_id=payroll_run_id,
            payroll_attempt=payroll_attempt,
            source=source,
            notes=notes,
            voided=False,
            is_deleted=False,
            created_by=actor,
        )
        if writer is not None:
            writer.add(model)
        else:
            self.session.add(model)
        self.session.flush()
        logger.debug(
            "transaction_recorded",
            extra={
                "transaction_id": str(model.id),
                "expense_type": expense_type,
                "amount": str(amount),
                "payroll_run_id": str(payroll_run_id) if payroll_run_id else None,
            },
        )
        return model.to_dto()

    def _void_model(
        self,
        model: LedgerTransactionModel,
        actor: str,
        writer: BatchWriter | None,
    ) -> bool:
        if model.voided:
            return False
        model.voided = True
        model.voided_at = self._clock.now_utc()
        model.voided_by = actor
        model.updated_by = actor
        if writer is not None:
            writer.touch()
        return True

    def void(self, transaction_id: UUID, actor: str = "system") -> bool:
        """Void one transaction.  Returns False if it was already voided."""
        model = self.session.get(LedgerTransactionModel, transaction_id)
        if model is None:
            return False
        changed = self._void_model(model, actor, None)
        self.session.flush()
        return changed

    def soft_delete(self, transaction_id: UUID, actor: str = "system") -> bool:
        """Flag a transaction as deleted.  Rows are never physically removed."""
        model = self.session.get(LedgerTransactionModel, transaction_id)
        if model is None or model.is_deleted:
            return False
        model.is_deleted = True
        model.updated_by = actor
        self.session.flush()
        return True

    def void_run_postings(
        self,
        run_id: UUID,
        actor: str = "system",
        writer: BatchWriter | None = None,
    ) -> int:
        """Void every non-voided transaction tagged with ``run_id``."""
        models = self.session.scalars(
            select(LedgerTransactionModel).where(
                LedgerTransactionModel.payroll_run_id == run_id,
                LedgerTransactionModel.voided.is_(False),
            )
        ).all()
        voided = sum(1 for m in models if self._void_model(m, actor, writer))
        if writer is None:
            self.session.flush()
        logger.info(
            "run_postings_voided",
            extra={"run_id": str(run_id), "voided": voided},
        )
        return voided
