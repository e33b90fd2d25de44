"""
Payroll Module Service (``shop_modules.payroll.service``).

Responsibility
--------------
Public entry point for shop payroll: preview a period, create / save / load
runs, hand out a line editor, finalize, void and delete runs, list runs,
suggest the next pay period, and maintain staff hourly rates.

Architecture position
---------------------
**Modules layer** -- thin glue.  ``PayrollService`` composes the preview
builder, the run store, the stored run loader and the finalizer, plus the
kernel ``StaffDirectory``.

Invariants enforced
-------------------
* Each public write method owns the transaction boundary: ``commit`` on
  success, ``rollback`` and re-raise on any exception.  ``finalize_run`` is
  the exception; its batches commit themselves.
* Read methods never write.

Failure modes
-------------
* Input errors (``PayrollValidationError`` subclasses) are raised before
  any read or write.
* Run state errors propagate unchanged after rollback.

Audit relevance
---------------
Run ids and actors are carried on the structured log events of the run
store and the finalizer.

Usage::

    service = PayrollService(session, config=get_active_config(), clock=clock)
    preview = service.preview(date(2024, 1, 1), date(2024, 1, 15))
    run_id = service.create_run(preview.draft, actor="admin@shop")
    result = service.finalize_run(run_id, actor="admin@shop")
"""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from shop_engines.pay_period import PayPeriod, pay_period_for
from shop_engines.rates import resolve_hourly_rate
from shop_kernel.domain.clock import Clock, SystemClock
from shop_kernel.domain.dtos import StaffMember
from shop_kernel.exceptions import StaffNotFoundError
from shop_kernel.logging_config import get_logger
from shop_kernel.services.staff_directory import StaffDirectory
from shop_modules.payroll.config import PayrollConfig
from shop_modules.payroll.editor import RunLineEditor
from shop_modules.payroll.finalize import PayrollFinalizer
from shop_modules.payroll.loader import StoredRunLoader
from shop_modules.payroll.models import (
    DataQualityWarning,
    ExpenseMode,
    FinalizeResult,
    PayrollRunDraft,
    Paystub,
    PreviewResult,
    RunStatus,
    RunSummary,
    VoidResult,
)
from shop_modules.payroll.preview import OngoingShiftDecision, PayrollPreviewBuilder
from shop_modules.payroll.run_store import RunStore

logger = get_logger("modules.payroll.service")


class PayrollService:
    """
    Orchestrates payroll runs.

    Contract
    --------
    * Drafts returned by ``preview``, ``load_run`` and the editor are plain
      values; nothing is stored until ``create_run`` / ``save_run`` /
      ``finalize_run``.

    Guarantees
    ----------
    * Clock and config are injectable for deterministic testing.

    Non-goals
    ---------
    * Does NOT authenticate actors; ``actor`` is recorded as given.
    """

    def __init__(
        self,
        session: Session,
        config: PayrollConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._config = config or PayrollConfig()
        self._clock = clock or SystemClock()
        self._preview = PayrollPreviewBuilder(session, self._config, self._clock)
        self._runs = RunStore(session)
        self._loader = StoredRunLoader(session, self._config, self._clock)
        self._finalizer = PayrollFinalizer(session, self._config, self._clock)
        self._directory = StaffDirectory(session)

    @property
    def config(self) -> PayrollConfig:
        return self._config

    # =========================================================================
    # Drafts
    # =========================================================================

    def preview(
        self,
        period_start: date | None,
        period_end: date | None,
        pay_date: date | None = None,
        expense_mode: ExpenseMode | str | None = None,
        confirm_ongoing: OngoingShiftDecision | None = None,
    ) -> PreviewResult:
        return self._preview.build(
            period_start, period_end, pay_date, expense_mode, confirm_ongoing
        )

    def editor(self, draft: PayrollRunDraft) -> RunLineEditor:
        return RunLineEditor(draft, self._config.timezone)

    def load_run(
        self, run_id: UUID | None
    ) -> tuple[PayrollRunDraft, tuple[DataQualityWarning, ...]]:
        """Stored run rebuilt from current shifts and advances, for editing."""
        stored = self._runs.get_stored_run(run_id)
        return self._loader.rebuild(stored)

    def create_run(self, draft: PayrollRunDraft, actor: str = "system") -> UUID:
        try:
            run_id = self._runs.create_run(draft, actor)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return run_id

    def save_run(self, draft: PayrollRunDraft, actor: str = "system") -> UUID:
        try:
            run_id = self._runs.save_run(draft, actor)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return run_id

    def delete_run(self, run_id: UUID | None, actor: str = "system") -> None:
        try:
            self._finalizer.discard_run(run_id, actor)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Posting
    # =========================================================================

    def finalize_run(
        self,
        run_id: UUID | None,
        draft: PayrollRunDraft | None = None,
        actor: str = "system",
        resume_interrupted: bool = False,
    ) -> FinalizeResult:
        """
        Finalize a run.  On failure the run is back in ``draft`` and calling
        this again is safe.
        """
        return self._finalizer.finalize(run_id, draft, actor, resume_interrupted)

    def void_run(self, run_id: UUID | None, actor: str = "system") -> VoidResult:
        try:
            result = self._finalizer.void_run(run_id, actor)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return result

    # =========================================================================
    # Queries
    # =========================================================================

    def get_run(self, run_id: UUID | None) -> RunSummary:
        return self._runs.get_summary(run_id)

    def list_runs(self, status: RunStatus | str | None = None) -> list[RunSummary]:
        return self._runs.list_runs(status)

    def find_interrupted_runs(self) -> list[RunSummary]:
        return self._runs.find_interrupted_runs()

    def get_paystubs(self, run_id: UUID | None) -> list[Paystub]:
        return self._runs.get_paystubs(run_id)

    def suggest_period(self, day: date | None = None) -> PayPeriod:
        """Pay period containing ``day`` (default today) under the configured schedule."""
        schedule = self._config.pay_schedule
        return pay_period_for(
            day or self._clock.today(self._config.timezone),
            schedule.type,
            schedule.anchor_date,
        )

    # =========================================================================
    # Staff rates
    # =========================================================================

    def set_staff_rate(
        self,
        uid: str,
        rate: Decimal,
        effective_from: date | None = None,
        actor: str = "system",
    ) -> StaffMember:
        """
        Append a rate history entry effective from the start of
        ``effective_from`` (business timezone), then set the default rate to
        whichever rate is active today.
        """
        try:
            member = self._directory.get_by_uid(uid)
            if member is None:
                raise StaffNotFoundError(uid)
            effective = None
            if effective_from is not None:
                effective = datetime.combine(
                    effective_from, time.min, tzinfo=ZoneInfo(self._config.timezone)
                )
            member = self._directory.append_rate_entry(
                uid, Decimal(str(rate)), effective, actor=actor
            )
            active = resolve_hourly_rate(member.payroll, self._clock.now_utc())
            if not active.is_missing:
                member = self._directory.set_default_rate(uid, active.rate, actor=actor)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info(
            "staff_rate_set",
            extra={"uid": uid, "rate": str(rate), "actor": actor},
        )
        return member

