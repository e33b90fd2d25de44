"""
Tests for the payroll run store.

Validates:
- create / save / load of runs, lines and overrides
- Saving the same draft twice leaves identical rows
- Lines dropped from the draft are deleted with their overrides
- The draft -> posting lock and interrupted-run detection
- Status guards on save, delete and transitions
"""

from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from shop_kernel.exceptions import (
    InvalidRunTransitionError,
    MissingRunIdError,
    RunLockedError,
    RunNotEditableError,
    RunNotFoundError,
)
from shop_modules.payroll.editor import RunLineEditor
from shop_modules.payroll.models import AdjustmentType, RunStatus, override_id_for
from shop_modules.payroll.orm import PayrollLineModel, ShiftOverrideModel
from shop_modules.payroll.run_store import RunStore
from tests.conftest import TEST_ACTOR, manila

NOW = datetime(2024, 1, 20, 4, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(session):
    return RunStore(session)


@pytest.fixture
def seeded(make_staff, make_shift):
    ana = make_staff("ana", "Ana", "ana@shop.test", default_rate="50")
    ben = make_staff("ben", "Ben", "ben@shop.test", default_rate="60")
    shifts = {
        "ana1": make_shift(ana, manila(2024, 1, 5, 8), 8),
        "ana2": make_shift(ana, manila(2024, 1, 6, 8), 4),
        "ben1": make_shift(ben, manila(2024, 1, 7, 14), 4),
    }
    return shifts


@pytest.fixture
def created(payroll_service, seeded, jan_period):
    draft = payroll_service.preview(*jan_period).draft
    run_id = payroll_service.create_run(draft, actor=TEST_ACTOR)
    return replace(draft, run_id=run_id)


def _override_ids(session):
    return sorted(str(i) for i in session.scalars(select(ShiftOverrideModel.id)))


class TestCreateAndLoad:

    def test_create_stores_lines(self, store, created):
        stored = store.get_stored_run(created.run_id)
        assert stored.summary.status is RunStatus.DRAFT
        assert stored.summary.finalize_attempt == 0
        assert stored.summary.totals == created.totals
        assert {ln.staff_key for ln in stored.lines} == {"ana@shop.test", "ben@shop.test"}
        ana = next(ln for ln in stored.lines if ln.staff_key == "ana@shop.test")
        assert ana.rate == Decimal("50")
        assert ana.minutes == 720
        assert ana.overrides == {}

    def test_lines_not_edited_after_create(self, session, created):
        flags = session.scalars(select(PayrollLineModel.is_edited)).all()
        assert flags and not any(flags)

    def test_unknown_run(self, store):
        from uuid import uuid4

        with pytest.raises(RunNotFoundError):
            store.get_summary(uuid4())

    @pytest.mark.parametrize("method", ["get_summary", "get_stored_run", "get_paystubs"])
    def test_missing_run_id(self, store, method):
        with pytest.raises(MissingRunIdError):
            getattr(store, method)(None)


class TestSave:

    def test_save_persists_edits(self, payroll_service, store, created, seeded):
        editor = RunLineEditor(created)
        editor.exclude_shift("ana@shop.test", seeded["ana2"].id)
        editor.add_deduction("ana@shop.test", "Uniform", "75")
        payroll_service.save_run(editor.draft, actor=TEST_ACTOR)

        stored = store.get_stored_run(created.run_id)
        ana = next(ln for ln in stored.lines if ln.staff_key == "ana@shop.test")
        assert ana.overrides[seeded["ana2"].id].excluded
        (ded,) = ana.adjustments_of(AdjustmentType.MANUAL_DEDUCTION)
        assert ded.amount == Decimal("75.00")
        assert stored.summary.totals.net == editor.draft.totals.net

    def test_save_twice_is_identical(self, payroll_service, store, session, created, seeded):
        editor = RunLineEditor(created)
        editor.override_shift_times(
            "ana@shop.test", seeded["ana1"].id, end=manila(2024, 1, 5, 12)
        )
        payroll_service.save_run(editor.draft, actor=TEST_ACTOR)
        first = store.get_stored_run(created.run_id)
        first_ids = _override_ids(session)

        payroll_service.save_run(editor.draft, actor=TEST_ACTOR)
        second = store.get_stored_run(created.run_id)

        assert second == first
        assert _override_ids(session) == first_ids
        line_id = next(ln.line_id for ln in second.lines if ln.staff_key == "ana@shop.test")
        assert first_ids == [str(override_id_for(line_id, seeded["ana1"].id))]

    def test_cleared_override_removed(self, payroll_service, session, created, seeded):
        editor = RunLineEditor(created)
        editor.exclude_shift("ana@shop.test", seeded["ana1"].id)
        payroll_service.save_run(editor.draft, actor=TEST_ACTOR)
        assert len(_override_ids(session)) == 1

        editor.include_shift("ana@shop.test", seeded["ana1"].id)
        payroll_service.save_run(editor.draft, actor=TEST_ACTOR)
        assert _override_ids(session) == []

    def test_dropped_line_deleted(self, payroll_service, store, session, created, seeded):
        editor = RunLineEditor(created)
        editor.exclude_shift("ben@shop.test", seeded["ben1"].id)
        payroll_service.save_run(editor.draft, actor=TEST_ACTOR)

        without_ben = replace(
            editor.draft,
            lines=tuple(ln for ln in editor.draft.lines if ln.staff_key != "ben@shop.test"),
        )
        payroll_service.save_run(without_ben, actor=TEST_ACTOR)

        stored = store.get_stored_run(created.run_id)
        assert [ln.staff_key for ln in stored.lines] == ["ana@shop.test"]
        assert session.scalar(select(func.count()).select_from(ShiftOverrideModel)) == 0

    def test_save_marks_lines_edited(self, payroll_service, session, created):
        payroll_service.save_run(created, actor=TEST_ACTOR)
        assert all(session.scalars(select(PayrollLineModel.is_edited)))

    def test_save_without_run_id(self, payroll_service, created):
        with pytest.raises(MissingRunIdError):
            payroll_service.save_run(replace(created, run_id=None))

    def test_save_on_locked_run(self, payroll_service, store, created):
        store.acquire_lock(created.run_id, NOW, TEST_ACTOR)
        with pytest.raises(RunNotEditableError):
            payroll_service.save_run(created)


class TestLock:

    def test_acquire_bumps_attempt(self, store, created):
        assert store.acquire_lock(created.run_id, NOW, TEST_ACTOR) == 1
        summary = store.get_summary(created.run_id)
        assert summary.status is RunStatus.POSTING
        assert summary.finalize_attempt == 1
        assert summary.posting_started_at == NOW

    def test_second_lock_refused(self, store, created):
        store.acquire_lock(created.run_id, NOW, TEST_ACTOR)
        with pytest.raises(RunLockedError):
            store.acquire_lock(created.run_id, NOW, TEST_ACTOR)

    def test_interrupted_run_resumed(self, store, created):
        store.acquire_lock(created.run_id, NOW, TEST_ACTOR)
        interrupted = store.find_interrupted_runs()
        assert [r.run_id for r in interrupted] == [created.run_id]
        assert interrupted[0].is_interrupted

        assert store.acquire_lock(created.run_id, NOW, TEST_ACTOR, resume_interrupted=True) == 2

    def test_release_returns_to_draft(self, store, created):
        attempt = store.acquire_lock(created.run_id, NOW, TEST_ACTOR)
        assert store.release_lock(created.run_id, attempt, TEST_ACTOR)
        summary = store.get_summary(created.run_id)
        assert summary.status is RunStatus.DRAFT
        assert summary.finalize_attempt == 1
        assert store.find_interrupted_runs() == []

    def test_release_with_stale_attempt(self, store, created):
        store.acquire_lock(created.run_id, NOW, TEST_ACTOR)
        assert not store.release_lock(created.run_id, 7, TEST_ACTOR)
        assert store.get_summary(created.run_id).status is RunStatus.POSTING

    def test_draft_cannot_be_voided(self, store, created):
        with pytest.raises(InvalidRunTransitionError):
            store.mark_voided(created.run_id, NOW, TEST_ACTOR)


class TestListAndDelete:

    def test_list_newest_period_first(self, payroll_service, seeded, created):
        later = payroll_service.preview(date(2024, 1, 16), date(2024, 1, 31)).draft
        later_id = payroll_service.create_run(later)

        runs = payroll_service.list_runs()
        assert [r.run_id for r in runs] == [later_id, created.run_id]

    def test_list_by_status(self, payroll_service, store, created):
        store.acquire_lock(created.run_id, NOW, TEST_ACTOR)
        assert payroll_service.list_runs("draft") == []
        assert [r.run_id for r in payroll_service.list_runs(RunStatus.POSTING)] == [created.run_id]

    def test_delete_draft(self, payroll_service, session, created):
        payroll_service.delete_run(created.run_id, actor=TEST_ACTOR)
        with pytest.raises(RunNotFoundError):
            payroll_service.get_run(created.run_id)
        assert session.scalar(select(func.count()).select_from(PayrollLineModel)) == 0

    def test_delete_locked_run_refused(self, payroll_service, store, created):
        store.acquire_lock(created.run_id, NOW, TEST_ACTOR)
        with pytest.raises(RunNotEditableError):
            payroll_service.delete_run(created.run_id)
