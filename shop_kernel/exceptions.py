"""
Typed Exception Hierarchy for the Shop Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Payroll mistakes are paid out in cash. Callers (the admin CLI, the service
facade, tests) must react to errors by TYPE and read their context from
ATTRIBUTES, never by parsing message strings:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - RIGHT way:
    try:
        service.finalize_run(run_id)
    except BatchCommitError as e:
        log.error("finalize_partial", extra={"batch": e.batch_index})
        retry_later(e.run_id)   # the next attempt voids earlier postings

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ShopKernelError:

    ShopKernelError (base)
    |
    +-- PayrollValidationError          (raised before any write)
    |   +-- MissingPeriodError
    |   +-- InvalidPeriodError
    |   +-- MissingRunIdError
    |   +-- InvalidExpenseModeError
    |
    +-- PayrollRunError
    |   +-- RunNotFoundError
    |   +-- RunNotEditableError
    |   +-- InvalidRunTransitionError
    |   +-- RunLockedError
    |   +-- LineNotFoundError
    |   +-- ShiftRowNotFoundError
    |   +-- AdjustmentNotFoundError
    |
    +-- StaffError
    |   +-- StaffNotFoundError
    |
    +-- BatchError
    |   +-- BatchCommitError            (partial failure, re-runnable)
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | MISSING_PERIOD              | Preview/create without start or end
                | INVALID_PERIOD              | Period end before period start
                | MISSING_RUN_ID              | Finalize/void/load with empty run id
                | INVALID_EXPENSE_MODE        | Mode not per-staff / per-shift
----------------|-----------------------------|-----------------------------------------
Run             | RUN_NOT_FOUND               | Run id doesn't exist
                | RUN_NOT_EDITABLE            | Mutating a posting/posted/voided run
                | INVALID_RUN_TRANSITION      | Status change not in the workflow
                | RUN_LOCKED                  | Another finalize holds the run
                | LINE_NOT_FOUND              | Staff key not on the run
                | SHIFT_ROW_NOT_FOUND         | Shift id not on the line
                | ADJUSTMENT_NOT_FOUND        | Manual adjustment index out of range
----------------|-----------------------------|-----------------------------------------
Staff           | STAFF_NOT_FOUND             | Rate change for an unknown staff uid
----------------|-----------------------------|-----------------------------------------
Batch           | BATCH_COMMIT_FAILED        | A write batch failed mid-finalize
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Amount/identity change on a ledger row

Data-quality problems (shift without timestamps, staff without a rate
profile) are NOT exceptions. They degrade to zero-valued contributions and
are reported as DataQualityWarning records on results.

===============================================================================
"""


class ShopKernelError(Exception):
    """
    Base exception for all shop kernel errors.

    All subclasses must have a `code` class attribute
    for machine-readable error identification.
    """

    code: str = "SHOP_KERNEL_ERROR"


# Validation exceptions


class PayrollValidationError(ShopKernelError):
    """Base exception for input that is rejected before any write."""

    code: str = "PAYROLL_VALIDATION_ERROR"


class MissingPeriodError(PayrollValidationError):
    """Period start or end was not supplied."""

    code: str = "MISSING_PERIOD"

    def __init__(self, missing: str):
        self.missing = missing
        super().__init__(f"Pay period {missing} is required")


class InvalidPeriodError(PayrollValidationError):
    """Period end falls before period start."""

    code: str = "INVALID_PERIOD"

    def __init__(self, period_start: str, period_end: str):
        self.period_start = period_start
        self.period_end = period_end
        super().__init__(
            f"Pay period end {period_end} is before start {period_start}"
        )


class MissingRunIdError(PayrollValidationError):
    """Run id was empty."""

    code: str = "MISSING_RUN_ID"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"A payroll run id is required for {operation}")


class InvalidExpenseModeError(PayrollValidationError):
    """Expense mode is not one of the supported posting modes."""

    code: str = "INVALID_EXPENSE_MODE"

    def __init__(self, mode: str):
        self.mode = mode
        super().__init__(f"Unsupported expense mode: {mode!r}")


# Run-state exceptions


class PayrollRunError(ShopKernelError):
    """Base exception for payroll run state errors."""

    code: str = "PAYROLL_RUN_ERROR"


class RunNotFoundError(PayrollRunError):
    """Payroll run with given id was not found."""

    code: str = "RUN_NOT_FOUND"

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Payroll run not found: {run_id}")


class RunNotEditableError(PayrollRunError):
    """Run is no longer a draft and cannot be changed."""

    code: str = "RUN_NOT_EDITABLE"

    def __init__(self, run_id: str, status: str):
        self.run_id = run_id
        self.status = status
        super().__init__(
            f"Payroll run {run_id} is {status} and can no longer be edited"
        )


class InvalidRunTransitionError(PayrollRunError):
    """Requested status change is not part of the run workflow."""

    code: str = "INVALID_RUN_TRANSITION"

    def __init__(self, run_id: str, from_status: str, to_status: str):
        self.run_id = run_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Payroll run {run_id} cannot move from {from_status} to {to_status}"
        )


class RunLockedError(PayrollRunError):
    """Another finalize attempt currently holds the run."""

    code: str = "RUN_LOCKED"

    def __init__(self, run_id: str, attempt: int):
        self.run_id = run_id
        self.attempt = attempt
        super().__init__(
            f"Payroll run {run_id} is being posted (attempt {attempt})"
        )


class LineNotFoundError(PayrollRunError):
    """No line for the given staff key on the run."""

    code: str = "LINE_NOT_FOUND"

    def __init__(self, staff_key: str):
        self.staff_key = staff_key
        super().__init__(f"No payroll line for staff {staff_key}")


class ShiftRowNotFoundError(PayrollRunError):
    """Shift id is not part of the line."""

    code: str = "SHIFT_ROW_NOT_FOUND"

    def __init__(self, staff_key: str, shift_id: str):
        self.staff_key = staff_key
        self.shift_id = shift_id
        super().__init__(f"Shift {shift_id} is not on the line for {staff_key}")


class AdjustmentNotFoundError(PayrollRunError):
    """Manual adjustment index is out of range."""

    code: str = "ADJUSTMENT_NOT_FOUND"

    def __init__(self, staff_key: str, kind: str, index: int):
        self.staff_key = staff_key
        self.kind = kind
        self.index = index
        super().__init__(f"No {kind} #{index} on the line for {staff_key}")


# Staff exceptions


class StaffError(ShopKernelError):
    """Base exception for staff directory errors."""

    code: str = "STAFF_ERROR"


class StaffNotFoundError(StaffError):
    """Staff member with given uid was not found."""

    code: str = "STAFF_NOT_FOUND"

    def __init__(self, uid: str):
        self.uid = uid
        super().__init__(f"Staff member not found: {uid}")


# Batch exceptions


class BatchError(ShopKernelError):
    """Base exception for batched write errors."""

    code: str = "BATCH_ERROR"


class BatchCommitError(BatchError):
    """
    A write batch failed after earlier batches were committed.

    The run is left recoverable: the next finalize attempt voids every
    posting tagged with the run before writing new ones.
    """

    code: str = "BATCH_COMMIT_FAILED"

    def __init__(
        self,
        run_id: str,
        batch_index: int,
        batches_committed: int,
        cause: str = "",
    ):
        self.run_id = run_id
        self.batch_index = batch_index
        self.batches_committed = batches_committed
        self.cause = cause
        super().__init__(
            f"Batch {batch_index} of payroll run {run_id} failed after "
            f"{batches_committed} committed batch(es): {cause}"
        )


# Immutability-related exceptions


class ImmutabilityError(ShopKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify an immutable record.

    Ledger transactions are corrected by voiding and re-creating,
    never by changing their amount or identity fields.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
