"""Kernel write services (flush only; callers own commits)."""

from shop_kernel.services.ledger_service import LedgerService
from shop_kernel.services.shift_store import ShiftStore
from shop_kernel.services.staff_directory import StaffDirectory

__all__ = ["LedgerService", "ShiftStore", "StaffDirectory"]
