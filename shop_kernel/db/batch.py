"""
BatchWriter -- Chunked, independently committed writes.

Contract:
    Groups ORM writes into batches of at most ``max_operations`` and commits
    each batch on its own.  A failed commit rolls back only the open batch;
    earlier batches stay committed.

Architecture: shop_kernel/db.  Imports from kernel exceptions and logging.

Invariants enforced:
    - A batch never holds more than ``max_operations`` writes.
    - Batch indexes are 0-based and increase monotonically per writer.
    - A commit failure is surfaced as BatchCommitError carrying the run id,
      failing batch index and number of batches already committed.

Failure modes:
    - BatchCommitError wrapping the underlying database error.  The writer is
      unusable afterwards; callers start a new attempt.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shop_kernel.exceptions import BatchCommitError
from shop_kernel.logging_config import LogContext, get_logger

logger = get_logger("db.batch")


class BatchWriter:
    """Counts writes and commits the session every ``max_operations``.

    Non-goals:
        - Does NOT provide atomicity across batches.  A crash between
          batches leaves earlier batches committed.
    """

    def __init__(
        self,
        session: Session,
        run_id: str,
        max_operations: int = 450,
    ):
        if max_operations < 1:
            raise ValueError("max_operations must be positive")
        self._session = session
        self._run_id = run_id
        self._max_operations = max_operations
        self._pending = 0
        self._batch_index = 0
        self._batches_committed = 0
        self._operations_total = 0

    @property
    def batches_committed(self) -> int:
        return self._batches_committed

    @property
    def operations_total(self) -> int:
        return self._operations_total

    def add(self, obj: Any) -> None:
        """Stage an INSERT or UPDATE of an ORM object."""
        self._session.add(obj)
        self._count()

    def delete(self, obj: Any) -> None:
        """Stage a DELETE of an ORM object."""
        self._session.delete(obj)
        self._count()

    def execute(self, statement: Any) -> Any:
        """Run a bulk statement as one counted operation."""
        result = self._session.execute(statement)
        self._count()
        return result

    def touch(self) -> None:
        """Count a write made through an attribute change on a loaded object."""
        self._count()

    def _count(self) -> None:
        self._pending += 1
        self._operations_total += 1
        if self._pending >= self._max_operations:
            self.commit()

    def commit(self) -> None:
        """Commit the open batch (no-op when nothing is pending)."""
        if self._pending == 0:
            return
        with LogContext.bind(batch_index=self._batch_index):
            try:
                self._session.commit()
            except SQLAlchemyError as exc:
                self._session.rollback()
                logger.error(
                    "batch_commit_failed",
                    extra={
                        "run_id": self._run_id,
                        "batch_index": self._batch_index,
                        "batches_committed": self._batches_committed,
                        "operations": self._pending,
                    },
                    exc_info=True,
                )
                raise BatchCommitError(
                    run_id=self._run_id,
                    batch_index=self._batch_index,
                    batches_committed=self._batches_committed,
                    cause=str(exc),
                ) from exc
            logger.debug(
                "batch_committed",
                extra={"operations": self._pending},
            )
        self._batches_committed += 1
        self._batch_index += 1
        self._pending = 0
