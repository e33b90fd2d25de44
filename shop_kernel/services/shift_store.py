"""
ShiftStore -- shift reads and the payroll run tag.

Responsibility:
    Loads shifts by period or id as ShiftRecord DTOs and tags consumed
    shifts with the payroll run that paid them.

Architecture position:
    Kernel > Services.  Imports from models/ and db/.

Invariants enforced:
    - Payroll never deletes a shift and never changes its times or cash
      totals.  ``tag_with_run`` is its only write.
"""

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select

from shop_kernel.db.batch import BatchWriter
from shop_kernel.domain.dtos import ShiftRecord
from shop_kernel.logging_config import get_logger
from shop_kernel.models.shift import ShiftModel
from shop_kernel.services.base import BaseService

logger = get_logger("services.shift_store")


class ShiftStore(BaseService[ShiftModel]):
    """Shift access for payroll."""

    def shifts_in_period(self, start: datetime, end: datetime) -> list[ShiftRecord]:
        """Shifts whose start falls in ``[start, end)``, oldest first."""
        stmt = (
            select(ShiftModel)
            .where(ShiftModel.start >= start, ShiftModel.start < end)
            .order_by(ShiftModel.start, ShiftModel.id)
        )
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def get(self, shift_id: UUID) -> ShiftRecord | None:
        model = self.session.get(ShiftModel, shift_id)
        return model.to_dto() if model is not None else None

    def get_many(self, shift_ids: Iterable[UUID]) -> dict[UUID, ShiftRecord]:
        ids = list(set(shift_ids))
        if not ids:
            return {}
        stmt = select(ShiftModel).where(ShiftModel.id.in_(ids))
        return {m.id: m.to_dto() for m in self.session.scalars(stmt)}

    def record_shift(
        self,
        *,
        staff_id: str | None,
        staff_email: str | None,
        staff_name: str | None,
        start: datetime | None,
        end: datetime | None = None,
        denominations: dict[str, Any] | None = None,
        system_total: Decimal | None = None,
        total_cash: Decimal | None = None,
        expenses_total: Decimal | None = None,
        title: str | None = None,
        label: str | None = None,
        shift_id: UUID | None = None,
        actor: str = "system",
    ) -> ShiftRecord:
        """Persist a shift (clock-in/out is owned by the point of sale)."""
        model = ShiftModel(
            staff_id=staff_id,
            staff_email=staff_email,
            staff_name=staff_name,
            start=start,
            end=end,
            denominations=denominations,
            system_total=system_total,
            total_cash=total_cash,
            expenses_total=expenses_total,
            title=title,
            label=label,
            created_by=actor,
        )
        if shift_id is not None:
            model.id = shift_id
        self.session.add(model)
        self.session.flush()
        return model.to_dto()

    def tag_with_run(
        self,
        shift_ids: Iterable[UUID],
        run_id: UUID,
        writer: BatchWriter | None = None,
    ) -> int:
        """Stamp ``payroll_run_id`` on each shift.  Returns the count tagged."""
        ids = list(dict.fromkeys(shift_ids))
        if not ids:
            return 0
        models = self.session.scalars(
            select(ShiftModel).where(ShiftModel.id.in_(ids))
        ).all()
        for model in models:
            model.payroll_run_id = run_id
            if writer is not None:
                writer.touch()
        if writer is None:
            self.session.flush()
        missing = len(ids) - len(models)
        if missing:
            logger.warning(
                "shift_tag_missing",
                extra={"run_id": str(run_id), "missing": missing},
            )
        return len(models)

    def untag_run(self, run_id: UUID) -> int:
        """Clear ``payroll_run_id`` on every shift tagged with ``run_id``."""
        models = self.session.scalars(
            select(ShiftModel).where(ShiftModel.payroll_run_id == run_id)
        ).all()
        for model in models:
            model.payroll_run_id = None
        self.session.flush()
        return len(models)
