"""
RunStore -- persistence for payroll runs, lines, overrides and paystubs.

Responsibility:
    Create, save, read, list and delete run documents; move run status along
    ``PAYROLL_RUN_WORKFLOW``; take and release the run lock; replace
    paystubs.

Architecture position:
    Modules > payroll.  Imports from kernel db/, exceptions and logging and
    from the payroll ORM and DTOs.

Invariants enforced:
    - Line ids are ``uuid5(run_id, staff_key)`` and override ids are
      ``uuid5(line_id, shift_id)``; saving identical state twice leaves
      identical rows.
    - On every save a line's overrides are deleted and recreated; lines no
      longer in the draft are deleted with their overrides.
    - Status changes are checked against the workflow before they are
      written.  ``draft -> posting`` is a conditional UPDATE; zero matched
      rows means someone else holds the lock.

Failure modes:
    - RunNotFoundError, RunNotEditableError, InvalidRunTransitionError,
      RunLockedError, MissingRunIdError.

Transaction boundary:
    Methods flush and never commit, except ``acquire_lock`` and
    ``release_lock`` which commit so the lock is visible to other sessions.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from shop_kernel.db.batch import BatchWriter
from shop_kernel.exceptions import (
    InvalidRunTransitionError,
    MissingRunIdError,
    RunLockedError,
    RunNotEditableError,
    RunNotFoundError,
)
from shop_kernel.logging_config import get_logger
from shop_modules.payroll.models import (
    Paystub,
    PayrollLineDraft,
    PayrollRunDraft,
    RunStatus,
    RunSummary,
    RunTotals,
    StoredLine,
    StoredOverride,
    StoredRun,
    line_id_for,
    override_id_for,
)
from shop_modules.payroll.orm import (
    PaystubModel,
    PayrollLineModel,
    PayrollRunModel,
    ShiftOverrideModel,
)
from shop_modules.payroll.workflows import PAYROLL_RUN_WORKFLOW

logger = get_logger("modules.payroll.run_store")

_DELETABLE = frozenset({RunStatus.DRAFT.value, RunStatus.VOIDED.value})


def _require_run_id(run_id: UUID | None, operation: str) -> UUID:
    if not run_id:
        raise MissingRunIdError(operation)
    return run_id if isinstance(run_id, UUID) else UUID(str(run_id))


class RunStore:
    """CRUD for payroll run documents."""

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _get_run_model(self, run_id: UUID) -> PayrollRunModel:
        stmt = (
            select(PayrollRunModel)
            .where(PayrollRunModel.id == run_id)
            .options(
                selectinload(PayrollRunModel.lines).selectinload(PayrollLineModel.overrides)
            )
        )
        run = self.session.scalars(stmt).first()
        if run is None:
            raise RunNotFoundError(str(run_id))
        return run

    def get_summary(self, run_id: UUID | None) -> RunSummary:
        run_id = _require_run_id(run_id, "get")
        return self._get_run_model(run_id).to_summary()

    def get_stored_run(self, run_id: UUID | None) -> StoredRun:
        """The run with its lines and overrides as stored."""
        run_id = _require_run_id(run_id, "load")
        run = self._get_run_model(run_id)
        lines = []
        for line in run.lines:
            overrides = {
                ov.shift_id: StoredOverride(
                    shift_id=ov.shift_id,
                    original_start=ov.original_start,
                    original_end=ov.original_end,
                    override_start=ov.override_start,
                    override_end=ov.override_end,
                    excluded=ov.excluded,
                    is_ongoing=ov.is_ongoing,
                    minutes_used=ov.minutes_used,
                    expense_date=ov.expense_date,
                )
                for ov in line.overrides
            }
            lines.append(
                StoredLine(
                    line_id=line.id,
                    staff_key=line.staff_key,
                    staff_id=line.staff_id,
                    staff_email=line.staff_email,
                    staff_name=line.staff_name,
                    rate=line.rate,
                    rate_source=line.rate_source,
                    minutes=line.minutes,
                    gross=line.gross,
                    adjustments=line.adjustment_dtos(),
                    source_shift_ids=tuple(line.shift_id_list()),
                    overrides=overrides,
                )
            )
        return StoredRun(summary=run.to_summary(), lines=tuple(lines))

    def list_runs(self, status: RunStatus | str | None = None) -> list[RunSummary]:
        """Runs newest period first, optionally filtered by status."""
        stmt = select(PayrollRunModel).order_by(
            PayrollRunModel.period_start.desc(), PayrollRunModel.created_at.desc()
        )
        if status is not None:
            value = status.value if isinstance(status, RunStatus) else RunStatus(status).value
            stmt = stmt.where(PayrollRunModel.status == value)
        return [r.to_summary() for r in self.session.scalars(stmt)]

    def find_interrupted_runs(self) -> list[RunSummary]:
        """Runs whose finalize started but never reached ``posted``."""
        stmt = select(PayrollRunModel).where(
            PayrollRunModel.status == RunStatus.POSTING.value,
            PayrollRunModel.posting_started_at.is_not(None),
            PayrollRunModel.posted_at.is_(None),
        )
        return [r.to_summary() for r in self.session.scalars(stmt)]

    def get_paystubs(self, run_id: UUID | None) -> list[Paystub]:
        run_id = _require_run_id(run_id, "paystubs")
        stmt = (
            select(PaystubModel)
            .where(PaystubModel.run_id == run_id)
            .order_by(PaystubModel.staff_name, PaystubModel.staff_key)
        )
        return [p.to_dto() for p in self.session.scalars(stmt)]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_run(self, draft: PayrollRunDraft, actor: str = "system") -> UUID:
        """Insert a new draft run and its lines.  Returns the run id."""
        run_id = draft.run_id or uuid4()
        run = PayrollRunModel(
            id=run_id,
            period_start=draft.period_start,
            period_end=draft.period_end,
            pay_date=draft.pay_date,
            expense_mode=draft.expense_mode.value,
            status=RunStatus.DRAFT.value,
            totals=draft.totals.to_dict(),
            finalize_attempt=0,
            created_by=actor,
        )
        self.session.add(run)
        self.session.flush()
        logger.info(
            "payroll_run_created",
            extra={
                "run_id": str(run_id),
                "period_start": draft.period_start.isoformat(),
                "period_end": draft.period_end.isoformat(),
                "staff_count": len(draft.lines),
            },
        )
        self._write_lines(run, draft.lines, actor, writer=None, edited=False)
        return run_id

    def save_run(
        self,
        draft: PayrollRunDraft,
        actor: str = "system",
        writer: BatchWriter | None = None,
        expected_status: RunStatus = RunStatus.DRAFT,
    ) -> UUID:
        """
        Persist the in-memory state of a run.

        Writes the run's pay date, expense mode and totals, fully replaces
        each line's adjustments and source shifts, and recreates the line's
        overrides.  Lines absent from ``draft`` are deleted.

        Raises:
            MissingRunIdError: If the draft was never created.
            RunNotEditableError: If the stored run is not in ``expected_status``.
        """
        run_id = _require_run_id(draft.run_id, "save")
        run = self._get_run_model(run_id)
        if run.status != expected_status.value:
            raise RunNotEditableError(str(run_id), run.status)

        run.pay_date = draft.pay_date
        run.expense_mode = draft.expense_mode.value
        run.totals = draft.totals.to_dict()
        run.updated_by = actor
        self._touch(writer)
        self._write_lines(run, draft.lines, actor, writer, edited=True)
        logger.info(
            "payroll_run_saved",
            extra={"run_id": str(run_id), "staff_count": len(draft.lines)},
        )
        return run_id

    def _touch(self, writer: BatchWriter | None) -> None:
        if writer is not None:
            writer.touch()

    def _write_lines(
        self,
        run: PayrollRunModel,
        lines: Iterable[PayrollLineDraft],
        actor: str,
        writer: BatchWriter | None,
        edited: bool,
    ) -> None:
        existing = {line.staff_key: line for line in run.lines}
        kept: list[tuple[PayrollLineModel, PayrollLineDraft]] = []

        for line in lines:
            model = existing.pop(line.staff_key, None)
            if model is None:
                model = PayrollLineModel(
                    id=line_id_for(run.id, line.staff_key),
                    run_id=run.id,
                    staff_key=line.staff_key,
                    created_by=actor,
                )
                run.lines.append(model)
            model.staff_id = line.staff_id
            model.staff_email = line.staff_email
            model.staff_name = line.staff_name
            model.rate = line.rate
            model.rate_source = line.rate_source
            model.minutes = line.minutes
            model.gross = line.gross
            model.adjustments = [a.to_dict() for a in line.adjustments]
            model.source_shift_ids = [str(s) for s in line.source_shift_ids]
            model.is_edited = model.is_edited or edited
            model.updated_by = actor
            self._touch(writer)
            for override in list(model.overrides):
                model.overrides.remove(override)
                self._touch(writer)
            kept.append((model, line))

        for stale in existing.values():
            run.lines.remove(stale)
            self._touch(writer)
            logger.info(
                "payroll_line_removed",
                extra={"run_id": str(run.id), "staff_key": stale.staff_key},
            )

        # Old overrides must be gone before rows with the same ids return.
        self.session.flush()

        for model, line in kept:
            for row in line.shift_rows:
                if not row.has_override:
                    continue
                model.overrides.append(
                    ShiftOverrideModel(
                        id=override_id_for(model.id, row.shift_id),
                        shift_id=row.shift_id,
                        original_start=row.start,
                        original_end=row.end,
                        override_start=row.override_start,
                        override_end=row.override_end,
                        excluded=row.excluded,
                        is_ongoing=row.is_ongoing,
                        minutes_used=row.minutes_used,
                        expense_date=row.expense_date,
                        created_by=actor,
                    )
                )
                self._touch(writer)
        self.session.flush()

    def check_deletable(self, run_id: UUID | None) -> PayrollRunModel:
        """Only draft and voided runs may be deleted."""
        run_id = _require_run_id(run_id, "delete")
        run = self._get_run_model(run_id)
        if run.status not in _DELETABLE:
            raise RunNotEditableError(str(run_id), run.status)
        return run

    def delete_run(self, run_id: UUID | None, actor: str = "system") -> None:
        """Remove a draft or voided run with its lines, overrides and paystubs."""
        run = self.check_deletable(run_id)
        run_id = run.id
        self.session.delete(run)
        self.session.flush()
        logger.info("payroll_run_deleted", extra={"run_id": str(run_id), "actor": actor})

    def replace_paystubs(
        self,
        run_id: UUID,
        paystubs: Iterable[Paystub],
        actor: str = "system",
        writer: BatchWriter | None = None,
    ) -> int:
        """Delete the run's paystubs and write ``paystubs`` in their place."""
        old = self.session.scalars(
            select(PaystubModel).where(PaystubModel.run_id == run_id)
        ).all()
        for model in old:
            if writer is not None:
                writer.delete(model)
            else:
                self.session.delete(model)
        self.session.flush()
        count = 0
        for dto in paystubs:
            model = PaystubModel.from_dto(dto, created_by=actor)
            if writer is not None:
                writer.add(model)
            else:
                self.session.add(model)
            count += 1
        self.session.flush()
        logger.info(
            "paystubs_replaced",
            extra={"run_id": str(run_id), "removed": len(old), "written": count},
        )
        return count

    # ------------------------------------------------------------------
    # Status and lock
    # ------------------------------------------------------------------

    def _check_transition(self, run: PayrollRunModel, to_status: RunStatus) -> None:
        if PAYROLL_RUN_WORKFLOW.find_transition(run.status, to_status.value) is None:
            raise InvalidRunTransitionError(str(run.id), run.status, to_status.value)

    def acquire_lock(
        self,
        run_id: UUID | None,
        now: datetime,
        actor: str = "system",
        resume_interrupted: bool = False,
    ) -> int:
        """
        Move the run ``draft -> posting`` and bump ``finalize_attempt``.

        The UPDATE is conditional on the status and attempt just read, so
        two finalizers cannot both win.  A run stuck in ``posting`` is taken
        over only with ``resume_interrupted=True``.

        Returns:
            The new attempt number.

        Raises:
            RunLockedError: If the run is in ``posting`` or the conditional
                update matched nothing.
            InvalidRunTransitionError: If the run is posted or voided.
        """
        run_id = _require_run_id(run_id, "finalize")
        run = self._get_run_model(run_id)
        current, attempt = run.status, run.finalize_attempt
        if current == RunStatus.POSTING.value:
            if not resume_interrupted:
                raise RunLockedError(str(run_id), attempt)
            logger.warning(
                "payroll_run_lock_resumed",
                extra={"run_id": str(run_id), "attempt": attempt},
            )
        else:
            self._check_transition(run, RunStatus.POSTING)

        result = self.session.execute(
            update(PayrollRunModel)
            .where(
                PayrollRunModel.id == run_id,
                PayrollRunModel.status == current,
                PayrollRunModel.finalize_attempt == attempt,
            )
            .values(
                status=RunStatus.POSTING.value,
                finalize_attempt=attempt + 1,
                posting_started_at=now,
                posted_at=None,
                updated_by=actor,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.session.rollback()
            raise RunLockedError(str(run_id), attempt)
        self.session.commit()
        self.session.expire(run)
        logger.info(
            "payroll_run_locked",
            extra={"run_id": str(run_id), "attempt": attempt + 1},
        )
        return attempt + 1

    def release_lock(self, run_id: UUID, attempt: int, actor: str = "system") -> bool:
        """``posting -> draft`` after a failed attempt.  Returns False if not held."""
        result = self.session.execute(
            update(PayrollRunModel)
            .where(
                PayrollRunModel.id == run_id,
                PayrollRunModel.status == RunStatus.POSTING.value,
                PayrollRunModel.finalize_attempt == attempt,
            )
            .values(status=RunStatus.DRAFT.value, updated_by=actor)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        self.session.expire_all()
        released = result.rowcount == 1
        logger.info(
            "payroll_run_lock_released",
            extra={"run_id": str(run_id), "attempt": attempt, "released": released},
        )
        return released

    def mark_posted(
        self,
        run_id: UUID,
        totals: RunTotals,
        now: datetime,
        actor: str = "system",
        writer: BatchWriter | None = None,
    ) -> None:
        run = self._get_run_model(run_id)
        self._check_transition(run, RunStatus.POSTED)
        run.status = RunStatus.POSTED.value
        run.totals = totals.to_dict()
        run.posted_at = now
        run.updated_by = actor
        self._touch(writer)
        self.session.flush()

    def mark_voided(self, run_id: UUID | None, now: datetime, actor: str = "system") -> RunSummary:
        run_id = _require_run_id(run_id, "void")
        run = self._get_run_model(run_id)
        self._check_transition(run, RunStatus.VOIDED)
        run.status = RunStatus.VOIDED.value
        run.voided_at = now
        run.updated_by = actor
        self.session.flush()
        return run.to_summary()
