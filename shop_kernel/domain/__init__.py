"""
Pure domain layer.

Value objects, time and money primitives and workflow definitions with
NO dependencies on the ORM, the database or I/O (SystemClock aside).
"""

from shop_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from shop_kernel.domain.dtos import (
    LedgerTransaction,
    RateEntry,
    ShiftRecord,
    StaffMember,
    StaffPayrollProfile,
    TransactionCategory,
    staff_key_for,
)
from shop_kernel.domain.values import (
    calculate_gross,
    ensure_utc,
    minutes_between,
    parse_decimal,
    round_money,
    to_money,
    sum_denominations,
    to_hours,
)
from shop_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "LedgerTransaction",
    "RateEntry",
    "ShiftRecord",
    "StaffMember",
    "StaffPayrollProfile",
    "TransactionCategory",
    "staff_key_for",
    "calculate_gross",
    "ensure_utc",
    "minutes_between",
    "parse_decimal",
    "round_money",
    "to_money",
    "sum_denominations",
    "to_hours",
    "Guard",
    "Transition",
    "Workflow",
]
