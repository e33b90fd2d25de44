"""
Module: shop_kernel.models.staff
Responsibility: ORM persistence for staff members and their append-only hourly
    rate history.  Converts to StaffMember.
Architecture position: Kernel > Models.  Imports from db/ and domain/dtos.py.

Invariants enforced:
    - Rate entries are append-only; ``sequence`` records insertion order so
      the rate resolver can let the last-inserted entry win a tie.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shop_kernel.db.base import TrackedBase
from shop_kernel.db.types import HourlyRate, UTCDateTime
from shop_kernel.domain.dtos import RateEntry, StaffMember, StaffPayrollProfile


class StaffModel(TrackedBase):
    """
    ORM model for a staff member.

    ``uid`` is the authentication identity shifts and transactions carry as
    ``staff_id``.  ``default_rate`` is None until payroll is configured.
    """

    __tablename__ = "staff"

    uid: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="staff")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    default_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)

    rate_entries: Mapped[list["StaffRateEntryModel"]] = relationship(
        back_populates="staff",
        order_by="StaffRateEntryModel.sequence",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("uid", name="uq_staff_uid"),
        Index("idx_staff_email", "email"),
        Index("idx_staff_role", "role"),
    )

    def to_dto(self) -> StaffMember:
        payroll = None
        if self.default_rate is not None or self.rate_entries:
            payroll = StaffPayrollProfile(
                default_rate=self.default_rate,
                rate_history=tuple(e.to_dto() for e in self.rate_entries),
            )
        return StaffMember(
            id=self.id,
            uid=self.uid,
            email=self.email,
            name=self.name,
            role=self.role,
            is_active=self.is_active,
            payroll=payroll,
        )

    def __repr__(self) -> str:
        return f"<StaffModel {self.uid} {self.email} ({self.role})>"


class StaffRateEntryModel(TrackedBase):
    """ORM model for one entry of a staff member's rate history."""

    __tablename__ = "staff_rate_entries"

    staff_id: Mapped[UUID] = mapped_column(ForeignKey("staff.id"), nullable=False)
    sequence: Mapped[int] = mapped_column(nullable=False)
    rate: Mapped[HourlyRate]
    effective_from: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    staff: Mapped[StaffModel] = relationship(back_populates="rate_entries")

    __table_args__ = (
        UniqueConstraint("staff_id", "sequence", name="uq_staff_rate_sequence"),
    )

    def to_dto(self) -> RateEntry:
        return RateEntry(rate=self.rate, effective_from=self.effective_from)
