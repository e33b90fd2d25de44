"""
Payroll Domain Models (``shop_modules.payroll.models``).

Responsibility
--------------
Frozen dataclass value objects for shop payroll: the editable run draft
and its lines and shift rows, adjustments, run totals, paystubs, data
quality warnings, and the results returned by preview, finalize and void.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Built by the
preview builder and the run store, transformed by ``RunLineEditor`` with
``dataclasses.replace``, and consumed by the finalize engine.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Line and override ids are derived from (run id, staff key) and
  (line id, shift id) with ``uuid5`` so repeated saves address the same rows.

Failure modes
-------------
* Construction with invalid enum values raises ``ValueError``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid5

from shop_engines.line_calculator import LineTotals
from shop_kernel.domain.values import ZERO, round_money, to_money
from shop_kernel.logging_config import get_logger

logger = get_logger("modules.payroll.models")


class RunStatus(Enum):
    """Payroll run lifecycle states."""
    DRAFT = "draft"
    POSTING = "posting"
    POSTED = "posted"
    VOIDED = "voided"


class ExpenseMode(Enum):
    """How a run's salary expense is written to the ledger."""
    PER_STAFF = "per-staff"
    PER_SHIFT = "per-shift"


class AdjustmentType(Enum):
    MANUAL_DEDUCTION = "manual-deduction"
    MANUAL_ADDITION = "manual-addition"
    EXTRA_ADVANCE = "extra-advance"


def line_id_for(run_id: UUID, staff_key: str) -> UUID:
    """Deterministic id of the line for ``staff_key`` in ``run_id``."""
    return uuid5(run_id, f"line:{staff_key}")


def override_id_for(line_id: UUID, shift_id: UUID) -> UUID:
    return uuid5(line_id, f"shift:{shift_id}")


def paystub_id_for(run_id: UUID, staff_key: str) -> UUID:
    return uuid5(run_id, f"paystub:{staff_key}")


@dataclass(frozen=True)
class Adjustment:
    """A manual deduction, manual addition or extra advance on a line."""
    id: str
    type: AdjustmentType
    label: str
    amount: Decimal
    from_shift_id: UUID | None = None
    transaction_id: UUID | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "label": self.label,
            "amount": str(round_money(to_money(self.amount))),
            "from_shift_id": str(self.from_shift_id) if self.from_shift_id else None,
            "transaction_id": str(self.transaction_id) if self.transaction_id else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Adjustment:
        return cls(
            id=str(data["id"]),
            type=AdjustmentType(data["type"]),
            label=data.get("label") or "",
            amount=to_money(data.get("amount")),
            from_shift_id=UUID(data["from_shift_id"]) if data.get("from_shift_id") else None,
            transaction_id=UUID(data["transaction_id"]) if data.get("transaction_id") else None,
        )


@dataclass(frozen=True)
class ShiftRow:
    """
    One shift as it appears on a payroll line.

    ``start``/``end`` are the shift's recorded times; ``override_start`` /
    ``override_end`` replace them for pay purposes.  An ongoing shift that
    was included carries the presumed end in ``override_end``.
    """
    shift_id: UUID
    start: datetime | None
    end: datetime | None
    title: str | None = None
    label: str | None = None
    override_start: datetime | None = None
    override_end: datetime | None = None
    is_ongoing: bool = False
    excluded: bool = False
    minutes_original: int = 0
    minutes_used: int = 0
    shortage: Decimal = ZERO
    advance: Decimal = ZERO
    advance_ids: tuple[UUID, ...] = ()
    expense_date: datetime | None = None

    @property
    def has_override(self) -> bool:
        return bool(
            self.excluded
            or self.override_start
            or self.override_end
            or self.expense_date
            or self.is_ongoing
        )

    @property
    def effective_start(self) -> datetime | None:
        return self.override_start or self.start

    @property
    def effective_end(self) -> datetime | None:
        return self.override_end or self.end


@dataclass(frozen=True)
class PayrollLineDraft:
    """
    One staff member's line in a run.

    Contract:
        ``totals`` is consistent with the rows and adjustments whenever the
        line came out of the preview builder, the run store or the editor.
    """
    staff_key: str
    staff_id: str | None
    staff_email: str | None
    staff_name: str
    rate: Decimal = ZERO
    rate_source: str = "missing"
    shift_rows: tuple[ShiftRow, ...] = ()
    extra_advances: tuple[Adjustment, ...] = ()
    custom_deductions: tuple[Adjustment, ...] = ()
    custom_additions: tuple[Adjustment, ...] = ()
    totals: LineTotals = field(default_factory=LineTotals)

    @property
    def minutes(self) -> int:
        return self.totals.minutes

    @property
    def gross(self) -> Decimal:
        return self.totals.gross

    @property
    def net(self) -> Decimal:
        return self.totals.net

    @property
    def adjustments(self) -> tuple[Adjustment, ...]:
        return self.custom_deductions + self.custom_additions + self.extra_advances

    @property
    def source_shift_ids(self) -> tuple[UUID, ...]:
        return tuple(r.shift_id for r in self.shift_rows)

    def row(self, shift_id: UUID) -> ShiftRow | None:
        return next((r for r in self.shift_rows if r.shift_id == shift_id), None)

    def line_id(self, run_id: UUID) -> UUID:
        return line_id_for(run_id, self.staff_key)


@dataclass(frozen=True)
class RunTotals:
    """Aggregate snapshot of a run, stored on the run document."""
    staff_count: int = 0
    minutes: int = 0
    gross: Decimal = ZERO
    advances: Decimal = ZERO
    shortages: Decimal = ZERO
    other_deductions: Decimal = ZERO
    additions: Decimal = ZERO
    net: Decimal = ZERO

    @classmethod
    def from_line_totals(cls, totals: list[LineTotals] | tuple[LineTotals, ...]) -> RunTotals:
        def _sum(attr: str) -> Decimal:
            return round_money(sum((getattr(t, attr) for t in totals), Decimal("0")))

        return cls(
            staff_count=len(totals),
            minutes=sum(t.minutes for t in totals),
            gross=_sum("gross"),
            advances=_sum("advances"),
            shortages=_sum("shortages"),
            other_deductions=_sum("other_deductions"),
            additions=_sum("additions"),
            net=_sum("net"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "staff_count": self.staff_count,
            "minutes": self.minutes,
            "gross": str(self.gross),
            "advances": str(self.advances),
            "shortages": str(self.shortages),
            "other_deductions": str(self.other_deductions),
            "additions": str(self.additions),
            "net": str(self.net),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> RunTotals:
        if not data:
            return cls()
        return cls(
            staff_count=int(data.get("staff_count") or 0),
            minutes=int(data.get("minutes") or 0),
            gross=to_money(data.get("gross")),
            advances=to_money(data.get("advances")),
            shortages=to_money(data.get("shortages")),
            other_deductions=to_money(data.get("other_deductions")),
            additions=to_money(data.get("additions")),
            net=to_money(data.get("net")),
        )


@dataclass(frozen=True)
class PayrollRunDraft:
    """The in-memory, editable state of a payroll run."""
    period_start: date
    period_end: date
    pay_date: date
    expense_mode: ExpenseMode = ExpenseMode.PER_STAFF
    status: RunStatus = RunStatus.DRAFT
    lines: tuple[PayrollLineDraft, ...] = ()
    run_id: UUID | None = None
    finalize_attempt: int = 0

    @property
    def totals(self) -> RunTotals:
        return RunTotals.from_line_totals(tuple(line.totals for line in self.lines))

    @property
    def is_editable(self) -> bool:
        return self.status is RunStatus.DRAFT

    def line(self, staff_key: str) -> PayrollLineDraft | None:
        return next((ln for ln in self.lines if ln.staff_key == staff_key), None)


@dataclass(frozen=True)
class DataQualityWarning:
    """A non-fatal data problem that zeroed a contribution."""
    code: str
    message: str
    staff_key: str | None = None
    shift_id: UUID | None = None


@dataclass(frozen=True)
class PreviewResult:
    draft: PayrollRunDraft
    warnings: tuple[DataQualityWarning, ...] = ()
    ongoing_excluded: tuple[UUID, ...] = ()
    ongoing_included: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class PaystubShift:
    shift_id: UUID
    label: str
    hours: Decimal


@dataclass(frozen=True)
class PaystubItem:
    id: str
    label: str
    amount: Decimal


@dataclass(frozen=True)
class Paystub:
    """Per-staff pay statement written at finalize."""
    id: UUID
    run_id: UUID
    staff_key: str
    staff_id: str | None
    staff_email: str | None
    staff_name: str
    period_start: date
    period_end: date
    pay_date: date
    shifts: tuple[PaystubShift, ...]
    deduction_items: tuple[PaystubItem, ...]
    addition_items: tuple[PaystubItem, ...]
    total_hours: Decimal
    gross_pay: Decimal
    total_additions: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    attempt: int


@dataclass(frozen=True)
class RunSummary:
    """A stored run as listed by the run store."""
    run_id: UUID
    period_start: date
    period_end: date
    pay_date: date
    status: RunStatus
    expense_mode: ExpenseMode
    totals: RunTotals
    finalize_attempt: int = 0
    posting_started_at: datetime | None = None
    posted_at: datetime | None = None
    voided_at: datetime | None = None

    @property
    def is_interrupted(self) -> bool:
        return self.status is RunStatus.POSTING and self.posted_at is None


@dataclass(frozen=True)
class FinalizeResult:
    run_id: UUID
    attempt: int
    status: RunStatus
    totals: RunTotals
    paystubs: tuple[Paystub, ...] = ()
    postings_created: int = 0
    postings_voided: int = 0
    shifts_tagged: int = 0
    batches_committed: int = 0
    warnings: tuple[DataQualityWarning, ...] = ()

    @property
    def net_total(self) -> Decimal:
        return round_money(sum((p.net_pay for p in self.paystubs), Decimal("0")))


@dataclass(frozen=True)
class VoidResult:
    run_id: UUID
    postings_voided: int
    status: RunStatus = RunStatus.VOIDED


@dataclass(frozen=True)
class StoredOverride:
    """A persisted per-shift override, as read back from the run store."""
    shift_id: UUID
    original_start: datetime | None = None
    original_end: datetime | None = None
    override_start: datetime | None = None
    override_end: datetime | None = None
    excluded: bool = False
    is_ongoing: bool = False
    minutes_used: int = 0
    expense_date: datetime | None = None


@dataclass(frozen=True)
class StoredLine:
    """A persisted line with its overrides keyed by shift id."""
    line_id: UUID
    staff_key: str
    staff_id: str | None
    staff_email: str | None
    staff_name: str
    rate: Decimal
    rate_source: str
    minutes: int
    gross: Decimal
    adjustments: tuple[Adjustment, ...] = ()
    source_shift_ids: tuple[UUID, ...] = ()
    overrides: dict[UUID, StoredOverride] = field(default_factory=dict)

    def adjustments_of(self, kind: AdjustmentType) -> tuple[Adjustment, ...]:
        return tuple(a for a in self.adjustments if a.type is kind)


@dataclass(frozen=True)
class StoredRun:
    summary: RunSummary
    lines: tuple[StoredLine, ...] = ()

    @property
    def run_id(self) -> UUID:
        return self.summary.run_id
