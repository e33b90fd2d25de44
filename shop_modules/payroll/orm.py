"""
Payroll ORM Persistence Models (``shop_modules.payroll.orm``).

Responsibility:
    SQLAlchemy ORM models for the payroll run document and its children:
    lines, per-shift overrides and paystubs.  Each model converts to the
    frozen DTOs in ``shop_modules.payroll.models``.

Architecture position:
    **Modules layer** -- persistence companions to the pure DTO models.
    Inherits from ``TrackedBase`` (kernel DB base) which provides:
    id (UUID PK), created_at, updated_at, created_by, updated_by.

Invariants enforced:
    - Line, override and paystub ids are deterministic (``uuid5``), so a
      second save of the same state updates rows in place.
    - At most one line per (run, staff_key) and one override per
      (line, shift).
    - Status stores the ``RunStatus`` value string.
    - Adjustments, source shift ids and paystub items are JSON documents.

Audit relevance:
    ``finalize_attempt`` increases by one each time the run lock is taken
    and is stamped on every posting and paystub of that attempt.
    ``posting_started_at`` without ``posted_at`` marks an interrupted
    finalize.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shop_kernel.db.base import TrackedBase
from shop_kernel.db.types import HourlyRate, Money, UTCDateTime
from shop_kernel.domain.values import to_money


# ---------------------------------------------------------------------------
# PayrollRunModel
# ---------------------------------------------------------------------------

class PayrollRunModel(TrackedBase):
    """
    ORM model for a payroll run.

    Contract:
        Status moves only along ``PAYROLL_RUN_WORKFLOW``.  The
        ``draft -> posting`` change is a conditional UPDATE that doubles as
        the run lock.

    Guarantees:
        - ``totals`` is the RunTotals snapshot as a JSON object of strings.
        - ``finalize_attempt`` never decreases.
    """

    __tablename__ = "payroll_runs"

    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    pay_date: Mapped[date] = mapped_column(Date, nullable=False)
    expense_mode: Mapped[str] = mapped_column(String(20), nullable=False, default="per-staff")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    totals: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    finalize_attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    posting_started_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    posted_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    lines: Mapped[list["PayrollLineModel"]] = relationship(
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="PayrollLineModel.staff_name",
    )
    paystubs: Mapped[list["PaystubModel"]] = relationship(
        back_populates="run",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_payroll_run_status", "status"),
        Index("idx_payroll_run_period", "period_start", "period_end"),
    )

    def to_summary(self):
        from shop_modules.payroll.models import ExpenseMode, RunStatus, RunSummary, RunTotals
        return RunSummary(
            run_id=self.id,
            period_start=self.period_start,
            period_end=self.period_end,
            pay_date=self.pay_date,
            status=RunStatus(self.status),
            expense_mode=ExpenseMode(self.expense_mode),
            totals=RunTotals.from_dict(self.totals),
            finalize_attempt=self.finalize_attempt,
            posting_started_at=self.posting_started_at,
            posted_at=self.posted_at,
            voided_at=self.voided_at,
        )

    def __repr__(self) -> str:
        return f"<PayrollRunModel {self.id} {self.period_start}..{self.period_end} ({self.status})>"


# ---------------------------------------------------------------------------
# PayrollLineModel
# ---------------------------------------------------------------------------

class PayrollLineModel(TrackedBase):
    """
    ORM model for one staff member's line in a run.

    Guarantees:
        - ``id == line_id_for(run_id, staff_key)``.
        - ``adjustments`` is a JSON list of ``Adjustment.to_dict()``.
        - ``source_shift_ids`` is a JSON list of shift id strings.
    """

    __tablename__ = "payroll_lines"

    run_id: Mapped[UUID] = mapped_column(ForeignKey("payroll_runs.id"), nullable=False)
    staff_key: Mapped[str] = mapped_column(String(255), nullable=False)
    staff_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    staff_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    staff_name: Mapped[str] = mapped_column(String(255), nullable=False)
    rate: Mapped[HourlyRate]
    rate_source: Mapped[str] = mapped_column(String(20), nullable=False, default="missing")
    minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gross: Mapped[Money]
    adjustments: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    source_shift_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_edited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    run: Mapped[PayrollRunModel] = relationship(back_populates="lines")
    overrides: Mapped[list["ShiftOverrideModel"]] = relationship(
        back_populates="line",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("run_id", "staff_key", name="uq_payroll_line_staff"),
        Index("idx_payroll_line_run", "run_id"),
    )

    def adjustment_dtos(self):
        from shop_modules.payroll.models import Adjustment
        return tuple(Adjustment.from_dict(a) for a in (self.adjustments or []))

    def shift_id_list(self) -> list[UUID]:
        return [UUID(s) for s in (self.source_shift_ids or [])]

    def __repr__(self) -> str:
        return f"<PayrollLineModel {self.staff_key} run={self.run_id} gross={self.gross}>"


# ---------------------------------------------------------------------------
# ShiftOverrideModel
# ---------------------------------------------------------------------------

class ShiftOverrideModel(TrackedBase):
    """
    ORM model for an edited shift on a line.

    Contract:
        Written only for shifts with a non-default state (override times,
        exclusion, explicit expense date, or an ongoing marker).  All
        overrides of a line are deleted and recreated on every save.
    """

    __tablename__ = "payroll_shift_overrides"

    line_id: Mapped[UUID] = mapped_column(ForeignKey("payroll_lines.id"), nullable=False)
    shift_id: Mapped[UUID] = mapped_column(nullable=False)
    original_start: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    original_end: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    override_start: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    override_end: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    excluded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_ongoing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    minutes_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expense_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    line: Mapped[PayrollLineModel] = relationship(back_populates="overrides")

    __table_args__ = (
        UniqueConstraint("line_id", "shift_id", name="uq_payroll_override_shift"),
    )

    def __repr__(self) -> str:
        return f"<ShiftOverrideModel shift={self.shift_id} excluded={self.excluded}>"


# ---------------------------------------------------------------------------
# PaystubModel
# ---------------------------------------------------------------------------

class PaystubModel(TrackedBase):
    """
    ORM model for a paystub.

    Guarantees:
        - ``id == paystub_id_for(run_id, staff_key)``; a finalize retry
          replaces the previous attempt's paystub instead of adding one.
        - Money fields are Decimal (Numeric(14, 2)).
    """

    __tablename__ = "payroll_paystubs"

    run_id: Mapped[UUID] = mapped_column(ForeignKey("payroll_runs.id"), nullable=False)
    staff_key: Mapped[str] = mapped_column(String(255), nullable=False)
    staff_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    staff_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    staff_name: Mapped[str] = mapped_column(String(255), nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    pay_date: Mapped[date] = mapped_column(Date, nullable=False)
    shifts: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    deduction_items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    addition_items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    total_hours: Mapped[Decimal] = mapped_column(nullable=False)
    gross_pay: Mapped[Money]
    total_additions: Mapped[Money]
    total_deductions: Mapped[Money]
    net_pay: Mapped[Money]
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    run: Mapped[PayrollRunModel] = relationship(back_populates="paystubs")

    __table_args__ = (
        UniqueConstraint("run_id", "staff_key", name="uq_payroll_paystub_staff"),
    )

    def to_dto(self):
        from shop_modules.payroll.models import Paystub, PaystubItem, PaystubShift
        return Paystub(
            id=self.id,
            run_id=self.run_id,
            staff_key=self.staff_key,
            staff_id=self.staff_id,
            staff_email=self.staff_email,
            staff_name=self.staff_name,
            period_start=self.period_start,
            period_end=self.period_end,
            pay_date=self.pay_date,
            shifts=tuple(
                PaystubShift(
                    shift_id=UUID(s["shift_id"]),
                    label=s["label"],
                    hours=to_money(s["hours"]),
                )
                for s in (self.shifts or [])
            ),
            deduction_items=tuple(
                PaystubItem(id=i["id"], label=i["label"], amount=to_money(i["amount"]))
                for i in (self.deduction_items or [])
            ),
            addition_items=tuple(
                PaystubItem(id=i["id"], label=i["label"], amount=to_money(i["amount"]))
                for i in (self.addition_items or [])
            ),
            total_hours=to_money(self.total_hours),
            gross_pay=self.gross_pay,
            total_additions=self.total_additions,
            total_deductions=self.total_deductions,
            net_pay=self.net_pay,
            attempt=self.attempt,
        )

    @classmethod
    def from_dto(cls, dto, created_by: str) -> "PaystubModel":
        return cls(
            id=dto.id,
            run_id=dto.run_id,
            staff_key=dto.staff_key,
            staff_id=dto.staff_id,
            staff_email=dto.staff_email,
            staff_name=dto.staff_name,
            period_start=dto.period_start,
            period_end=dto.period_end,
            pay_date=dto.pay_date,
            shifts=[
                {"shift_id": str(s.shift_id), "label": s.label, "hours": str(s.hours)}
                for s in dto.shifts
            ],
            deduction_items=[
                {"id": i.id, "label": i.label, "amount": str(i.amount)}
                for i in dto.deduction_items
            ],
            addition_items=[
                {"id": i.id, "label": i.label, "amount": str(i.amount)}
                for i in dto.addition_items
            ],
            total_hours=dto.total_hours,
            gross_pay=dto.gross_pay,
            total_additions=dto.total_additions,
            total_deductions=dto.total_deductions,
            net_pay=dto.net_pay,
            attempt=dto.attempt,
            created_by=created_by,
        )

    def __repr__(self) -> str:
        return f"<PaystubModel {self.staff_key} run={self.run_id} net={self.net_pay}>"
