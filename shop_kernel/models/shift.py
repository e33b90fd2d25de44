"""
Module: shop_kernel.models.shift
Responsibility: ORM persistence for staff shifts (clock-in to clock-out with a
    drawer count).  Converts to ShiftRecord.
Architecture position: Kernel > Models.  Imports from db/ and domain/dtos.py.

Invariants enforced:
    - Shifts are never deleted by payroll.  The only payroll write is the
      ``payroll_run_id`` tag once a run consumes the shift.
    - Cash totals are Decimal.  A shift carries either the legacy
      ``system_total`` or the newer ``(total_cash, expenses_total)`` pair.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from shop_kernel.db.base import TrackedBase
from shop_kernel.db.types import UTCDateTime
from shop_kernel.domain.dtos import ShiftRecord


class ShiftModel(TrackedBase):
    """
    ORM model for a staff shift.

    Guarantees:
        - ``start``/``end`` are timezone-aware UTC (UTCDateTime).
        - ``denominations`` is a JSON map of denomination key -> count.
    """

    __tablename__ = "shifts"

    staff_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    staff_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    staff_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    start: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    end: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    denominations: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    system_total: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_cash: Mapped[Decimal | None] = mapped_column(nullable=True)
    expenses_total: Mapped[Decimal | None] = mapped_column(nullable=True)
    payroll_run_id: Mapped[UUID | None] = mapped_column(nullable=True)
    title: Mapped[str | None] = mapped_column(String(100), nullable=True)
    label: Mapped[str | None] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        Index("idx_shift_start", "start"),
        Index("idx_shift_staff_email", "staff_email"),
        Index("idx_shift_payroll_run", "payroll_run_id"),
    )

    def to_dto(self) -> ShiftRecord:
        return ShiftRecord(
            id=self.id,
            staff_id=self.staff_id,
            staff_email=self.staff_email,
            staff_name=self.staff_name,
            start=self.start,
            end=self.end,
            denominations=dict(self.denominations or {}),
            system_total=self.system_total,
            total_cash=self.total_cash,
            expenses_total=self.expenses_total,
            payroll_run_id=self.payroll_run_id,
            title=self.title,
            label=self.label,
        )

    def __repr__(self) -> str:
        return f"<ShiftModel {self.id} {self.staff_email} {self.start}>"
