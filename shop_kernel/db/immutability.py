"""
ORM-Level Immutability Enforcement for ledger transactions.

===============================================================================
WHY THIS EXISTS
===============================================================================

The transaction ledger is shared by the point of sale, shift cash handling
and payroll.  A posted amount is never rewritten: corrections void the old
row and create a new one, so every peso that ever left the drawer stays
visible.  This module turns that rule into a hard failure at flush time.

    session.flush()
         |
         v
    [before_update event] --> _check_transaction_immutability()
         |                         --> ImmutabilityViolationError
         v
    [before_delete event] --> _check_transaction_delete()
         |                         --> ImmutabilityViolationError
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                  | What is frozen                     | What may change
------------------------|------------------------------------|-------------------------
LedgerTransactionModel  | amount, category, timestamp,       | voided, is_deleted,
                        | shift_id, expense_type, staff and  | voided_at, voided_by,
                        | beneficiary fields, payroll run    | notes, audit metadata
                        | id and attempt, source             |
                        | Hard DELETE is never allowed       |

===============================================================================
USAGE
===============================================================================

Called from create_tables(), or once at application startup:

    from shop_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from shop_kernel.exceptions import ImmutabilityViolationError
from shop_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

IMMUTABLE_TRANSACTION_FIELDS = (
    "category",
    "item",
    "amount",
    "timestamp",
    "staff_id",
    "staff_email",
    "staff_name",
    "shift_id",
    "expense_type",
    "beneficiary_id",
    "beneficiary_email",
    "beneficiary_name",
    "payroll_run_id",
    "payroll_attempt",
    "source",
)


def _check_transaction_immutability(mapper, connection, target):
    """Block changes to the amount or identity of a ledger transaction."""
    changed = [
        field
        for field in IMMUTABLE_TRANSACTION_FIELDS
        if get_history(target, field).has_changes()
    ]
    if not changed:
        return

    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "LedgerTransaction",
            "entity_id": str(target.id),
            "operation": "UPDATE",
            "fields": changed,
        },
    )
    raise ImmutabilityViolationError(
        entity_type="LedgerTransaction",
        entity_id=str(target.id),
        reason=f"Fields {', '.join(changed)} cannot change; void and re-create instead",
    )


def _check_transaction_delete(mapper, connection, target):
    """Block hard deletes; the ledger only soft-deletes."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "LedgerTransaction",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="LedgerTransaction",
        entity_id=str(target.id),
        reason="Ledger transactions are soft-deleted, never removed",
    )


_LISTENERS = (
    ("before_update", _check_transaction_immutability),
    ("before_delete", _check_transaction_delete),
)


def register_immutability_listeners() -> None:
    """
    Register the ledger immutability listeners (idempotent).

    Call after the models are imported and before any writes.
    """
    from shop_kernel.models.transaction import LedgerTransactionModel

    for event_name, listener_fn in _LISTENERS:
        if not event.contains(LedgerTransactionModel, event_name, listener_fn):
            event.listen(LedgerTransactionModel, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove the ledger immutability listeners.

    TESTS ONLY: used to seed fixtures that deliberately bypass the rule.
    """
    from shop_kernel.models.transaction import LedgerTransactionModel

    for event_name, listener_fn in _LISTENERS:
        if event.contains(LedgerTransactionModel, event_name, listener_fn):
            event.remove(LedgerTransactionModel, event_name, listener_fn)
