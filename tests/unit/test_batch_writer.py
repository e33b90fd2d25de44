"""
Tests for BatchWriter.

Validates:
- Automatic commit every max_operations writes
- Counting of attribute-change writes
- BatchCommitError carries run id, batch index and committed count
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from shop_kernel.db.batch import BatchWriter
from shop_kernel.exceptions import BatchCommitError
from shop_kernel.models.staff import StaffModel


def _staff(n: int) -> StaffModel:
    return StaffModel(uid=f"u{n}", name=f"Staff {n}", role="staff", is_active=True, created_by="test")


class TestBatchWriter:

    def test_commits_every_max_operations(self, session):
        writer = BatchWriter(session, "run-1", max_operations=2)
        for n in range(5):
            writer.add(_staff(n))
        assert writer.batches_committed == 2
        writer.commit()
        assert writer.batches_committed == 3
        assert writer.operations_total == 5

    def test_commit_without_pending_is_noop(self, session):
        writer = BatchWriter(session, "run-1", max_operations=10)
        writer.commit()
        assert writer.batches_committed == 0

    def test_touch_counts(self, session):
        writer = BatchWriter(session, "run-1", max_operations=3)
        writer.touch()
        writer.touch()
        writer.touch()
        assert writer.batches_committed == 1

    def test_rejects_non_positive_limit(self, session):
        with pytest.raises(ValueError):
            BatchWriter(session, "run-1", max_operations=0)

    def test_failure_raises_batch_commit_error(self, session, monkeypatch):
        writer = BatchWriter(session, "run-9", max_operations=2)
        writer.add(_staff(1))
        writer.add(_staff(2))
        assert writer.batches_committed == 1

        def _boom():
            raise OperationalError("COMMIT", {}, Exception("disk full"))

        monkeypatch.setattr(session, "commit", _boom)
        writer.add(_staff(3))
        with pytest.raises(BatchCommitError) as exc_info:
            writer.add(_staff(4))

        err = exc_info.value
        assert err.run_id == "run-9"
        assert err.batch_index == 1
        assert err.batches_committed == 1
