"""ORM models for shop entities read and written by payroll."""

from shop_kernel.models.shift import ShiftModel
from shop_kernel.models.staff import StaffModel, StaffRateEntryModel
from shop_kernel.models.transaction import LedgerTransactionModel

__all__ = [
    "ShiftModel",
    "StaffModel",
    "StaffRateEntryModel",
    "LedgerTransactionModel",
]
