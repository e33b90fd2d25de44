"""
Payroll Finalize Engine (``shop_modules.payroll.finalize``).

Responsibility
--------------
Commit a draft run: lock it, neutralize any postings of an earlier attempt,
recompute every line from source data, write paystubs and salary expense
postings, tag the consumed shifts and mark the run ``posted``.  Also voids
posted runs and discards draft or voided ones.

Architecture position
---------------------
**Modules layer** -- orchestrates ``RunStore``, ``LedgerService`` and
``ShiftStore`` through one ``BatchWriter``; figures come from
``shop_engines``.

Invariants enforced
-------------------
* ``draft -> posting`` is taken by a conditional update; only one finalizer
  runs per run.
* Re-running finalize after a partial failure leaves exactly one set of
  active postings: every active posting tagged with the run is voided
  before new ones are written.
* Every posting carries the run id, the attempt number and
  ``source = payroll_run:<id>``.
* The postings of a line sum to its paystub net pay.

Failure modes
-------------
* ``RunLockedError`` / ``InvalidRunTransitionError`` before any write.
* ``BatchCommitError`` (or any other error) after the lock: the open batch
  is rolled back, the run is released to ``draft`` and the error is
  re-raised.  Batches already committed stay; the next attempt voids them.

Audit relevance
---------------
``finalize_attempt`` is bumped on every lock and stamped on the postings
of that attempt, so each ledger row can be traced to the attempt that
wrote it.
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID

from sqlalchemy.orm import Session

from shop_engines.posting_plan import ShiftPayInput, plan_line_postings
from shop_kernel.db.batch import BatchWriter
from shop_kernel.domain.clock import Clock, SystemClock
from shop_kernel.domain.dtos import TransactionCategory
from shop_kernel.domain.values import round_money, to_hours
from shop_kernel.exceptions import MissingRunIdError
from shop_kernel.logging_config import LogContext, get_logger
from shop_kernel.services.ledger_service import LedgerService
from shop_kernel.services.shift_store import ShiftStore
from shop_modules.payroll.config import PayrollConfig
from shop_modules.payroll.helpers import local_midnight, period_label, row_label
from shop_modules.payroll.loader import StoredRunLoader
from shop_modules.payroll.models import (
    FinalizeResult,
    PayrollLineDraft,
    PayrollRunDraft,
    Paystub,
    PaystubItem,
    PaystubShift,
    RunStatus,
    VoidResult,
    paystub_id_for,
)
from shop_modules.payroll.run_store import RunStore

logger = get_logger("modules.payroll.finalize")


def build_paystub(
    draft: PayrollRunDraft,
    line: PayrollLineDraft,
    attempt: int,
    tz: str,
) -> Paystub:
    """
    Paystub for one line.

    Deduction items are listed per shift (advance, then shortage), then
    manual deductions, then advances recorded on other staff's shifts.
    """
    shifts: list[PaystubShift] = []
    deductions: list[PaystubItem] = []
    for row in line.shift_rows:
        if row.excluded:
            continue
        label = row_label(row, tz)
        shifts.append(
            PaystubShift(shift_id=row.shift_id, label=label, hours=to_hours(row.minutes_used))
        )
        if row.advance > 0:
            deductions.append(
                PaystubItem(id=str(row.shift_id), label=f"Salary Advance on {label}", amount=row.advance)
            )
        if row.shortage > 0:
            deductions.append(
                PaystubItem(id=str(row.shift_id), label=f"Shortage on {label}", amount=row.shortage)
            )
    for adj in line.custom_deductions + line.extra_advances:
        deductions.append(PaystubItem(id=adj.id, label=adj.label, amount=adj.amount))
    additions = tuple(
        PaystubItem(id=adj.id, label=adj.label, amount=adj.amount)
        for adj in line.custom_additions
    )
    totals = line.totals
    return Paystub(
        id=paystub_id_for(draft.run_id, line.staff_key),
        run_id=draft.run_id,
        staff_key=line.staff_key,
        staff_id=line.staff_id,
        staff_email=line.staff_email,
        staff_name=line.staff_name,
        period_start=draft.period_start,
        period_end=draft.period_end,
        pay_date=draft.pay_date,
        shifts=tuple(shifts),
        deduction_items=tuple(deductions),
        addition_items=additions,
        total_hours=to_hours(totals.minutes),
        gross_pay=totals.gross,
        total_additions=totals.additions,
        total_deductions=totals.total_deductions,
        net_pay=totals.net,
        attempt=attempt,
    )


class PayrollFinalizer:
    """
    Finalizes and voids payroll runs.

    Contract
    --------
    * ``finalize`` commits (batch by batch) and leaves the run ``posted``,
      or releases it to ``draft`` and re-raises.
    * ``void_run`` and ``discard_run`` flush; the caller commits.

    Non-goals
    ---------
    * Does NOT pay anyone; postings are expense records in the shop ledger.
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
        self._runs = RunStore(session)
        self._ledger = LedgerService(session, self._clock)
        self._shifts = ShiftStore(session)
        self._loader = StoredRunLoader(session, self._config, self._clock)

    def finalize(
        self,
        run_id: UUID | None,
        draft: PayrollRunDraft | None = None,
        actor: str = "system",
        resume_interrupted: bool = False,
    ) -> FinalizeResult:
        """
        Post a draft run.

        Args:
            run_id: The run to finalize.
            draft: In-memory edits to save first, if any.
            actor: Recorded as creator of postings and paystubs.
            resume_interrupted: Take over a run left in ``posting``.
        """
        if not run_id:
            raise MissingRunIdError("finalize")
        if draft is not None and draft.run_id != run_id:
            raise ValueError(f"Draft belongs to run {draft.run_id}, not {run_id}")

        attempt = self._runs.acquire_lock(
            run_id, self._clock.now_utc(), actor, resume_interrupted
        )
        with LogContext.bind(run_id=run_id, attempt=attempt, actor_id=actor):
            logger.info("payroll_finalize_started")
            writer = BatchWriter(
                self._session, str(run_id), self._config.max_batch_operations
            )
            try:
                result = self._post(run_id, attempt, draft, actor, writer)
            except Exception:
                self._session.rollback()
                logger.error(
                    "payroll_finalize_failed",
                    extra={"batches_committed": writer.batches_committed},
                    exc_info=True,
                )
                self._runs.release_lock(run_id, attempt, actor)
                raise
            logger.info(
                "payroll_finalize_completed",
                extra={
                    "postings_created": result.postings_created,
                    "postings_voided": result.postings_voided,
                    "shifts_tagged": result.shifts_tagged,
                    "batches_committed": result.batches_committed,
                    "net": str(result.net_total),
                },
            )
            return result

    def _post(
        self,
        run_id: UUID,
        attempt: int,
        edits: PayrollRunDraft | None,
        actor: str,
        writer: BatchWriter,
    ) -> FinalizeResult:
        tz = self._config.timezone
        if edits is not None:
            self._runs.save_run(edits, actor, writer, expected_status=RunStatus.POSTING)

        stored = self._runs.get_stored_run(run_id)
        voided = self._ledger.void_run_postings(run_id, actor, writer)

        draft, warnings = self._loader.rebuild(stored, presume_ongoing_end=False)
        draft = replace(draft, status=RunStatus.DRAFT)
        self._runs.save_run(draft, actor, writer, expected_status=RunStatus.POSTING)

        paystubs = tuple(build_paystub(draft, line, attempt, tz) for line in draft.lines)
        self._runs.replace_paystubs(run_id, paystubs, actor, writer)

        pay_ts = local_midnight(draft.pay_date, tz)
        label = period_label(draft.period_start, draft.period_end)
        created = 0
        consumed = []
        for line in draft.lines:
            included = [r for r in line.shift_rows if not r.excluded]
            consumed.extend(r.shift_id for r in included)
            plans = plan_line_postings(
                mode=draft.expense_mode.value,
                rate=line.rate,
                gross=line.totals.gross,
                additions=line.totals.additions,
                other_deductions=line.totals.other_deductions,
                net=line.totals.net,
                shifts=[
                    ShiftPayInput(
                        shift_id=r.shift_id,
                        label=row_label(r, tz),
                        minutes=r.minutes_used,
                        expense_date=r.expense_date or r.start or pay_ts,
                        deductions=round_money(r.advance + r.shortage),
                    )
                    for r in included
                ],
                pay_date=pay_ts,
                period_label=label,
                currency_symbol=self._config.currency_symbol,
                post_zero_amounts=self._config.post_zero_amounts,
            )
            for plan in plans:
                self._ledger.record(
                    category=TransactionCategory.CREDIT,
                    item=self._config.expense_item,
                    amount=plan.amount,
                    timestamp=plan.timestamp,
                    staff_id=actor,
                    expense_type=self._config.salary_expense_type,
                    beneficiary_id=line.staff_id,
                    beneficiary_email=line.staff_email,
                    beneficiary_name=line.staff_name,
                    payroll_run_id=run_id,
                    payroll_attempt=attempt,
                    source=f"payroll_run:{run_id}",
                    notes=plan.notes,
                    actor=actor,
                    writer=writer,
                )
                created += 1

        tagged = self._shifts.tag_with_run(consumed, run_id, writer)
        totals = draft.totals
        self._runs.mark_posted(run_id, totals, self._clock.now_utc(), actor, writer)
        writer.commit()

        return FinalizeResult(
            run_id=run_id,
            attempt=attempt,
            status=RunStatus.POSTED,
            totals=totals,
            paystubs=paystubs,
            postings_created=created,
            postings_voided=voided,
            shifts_tagged=tagged,
            batches_committed=writer.batches_committed,
            warnings=warnings,
        )

    def void_run(self, run_id: UUID | None, actor: str = "system") -> VoidResult:
        """``posted -> voided``; voids every active posting of the run."""
        summary = self._runs.mark_voided(run_id, self._clock.now_utc(), actor)
        with LogContext.bind(run_id=summary.run_id, actor_id=actor):
            voided = self._ledger.void_run_postings(summary.run_id, actor)
            logger.info("payroll_run_voided", extra={"postings_voided": voided})
        return VoidResult(run_id=summary.run_id, postings_voided=voided)

    def discard_run(self, run_id: UUID | None, actor: str = "system") -> int:
        """
        Delete a draft or voided run.

        Postings left active by a failed attempt are voided and shift tags
        are cleared before the run rows go.  Flushes; the caller commits.
        Returns the number of postings voided.
        """
        summary = self._runs.get_summary(run_id)
        self._runs.check_deletable(summary.run_id)
        with LogContext.bind(run_id=summary.run_id, actor_id=actor):
            voided = self._ledger.void_run_postings(summary.run_id, actor)
            untagged = self._shifts.untag_run(summary.run_id)
            self._runs.delete_run(summary.run_id, actor)
            logger.info(
                "payroll_run_discarded",
                extra={"postings_voided": voided, "shifts_untagged": untagged},
            )
        return voided
