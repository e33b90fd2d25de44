"""
Payroll Configuration Schema.

Defines the structure and sensible defaults for shop payroll settings.
Actual values are loaded from YAML at runtime (``shop_config.loader``).
"""

from dataclasses import dataclass, fields
from datetime import date
from typing import Any, Self
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from shop_kernel.logging_config import get_logger

logger = get_logger("modules.payroll.config")

VALID_EXPENSE_MODES = {"per-staff", "per-shift"}
VALID_SCHEDULE_TYPES = {"weekly", "biweekly", "semi-monthly", "monthly"}

# Document stores cap a write batch at 500 operations.
MAX_BATCH_OPERATIONS_LIMIT = 500


@dataclass
class PayScheduleConfig:
    """Pay schedule used to suggest the next period."""
    type: str = "biweekly"
    anchor_date: date | None = None

    def __post_init__(self):
        if self.type not in VALID_SCHEDULE_TYPES:
            raise ValueError(
                f"pay schedule type must be one of {VALID_SCHEDULE_TYPES}, got '{self.type}'"
            )


@dataclass
class PayrollConfig:
    """
    Configuration schema for the payroll module.

    Field defaults match a single-branch shop in the Philippines.
    Override at instantiation or through YAML:

        config = PayrollConfig(default_expense_mode="per-shift")
    """

    # Locale
    timezone: str = "Asia/Manila"
    currency_symbol: str = "₱"

    # Who is paid
    staff_role: str = "staff"

    # Ledger vocabulary
    salary_advance_expense_type: str = "Salary Advance"
    salary_expense_type: str = "Salary"
    expense_item: str = "Expenses"

    # Posting
    default_expense_mode: str = "per-staff"
    max_batch_operations: int = 450
    post_zero_amounts: bool = False

    # Preview
    include_unlinked_advances: bool = True

    # Schedule
    pay_schedule: PayScheduleConfig | None = None

    def __post_init__(self):
        if self.default_expense_mode not in VALID_EXPENSE_MODES:
            raise ValueError(
                f"default_expense_mode must be one of {VALID_EXPENSE_MODES}, "
                f"got '{self.default_expense_mode}'"
            )
        if not 0 < self.max_batch_operations < MAX_BATCH_OPERATIONS_LIMIT:
            raise ValueError(
                f"max_batch_operations must be between 1 and "
                f"{MAX_BATCH_OPERATIONS_LIMIT - 1}, got {self.max_batch_operations}"
            )
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone '{self.timezone}'") from exc
        if not self.salary_advance_expense_type:
            raise ValueError("salary_advance_expense_type cannot be empty")
        if self.pay_schedule is None:
            self.pay_schedule = PayScheduleConfig()
        logger.debug(
            "payroll_config_initialized",
            extra={
                "timezone": self.timezone,
                "default_expense_mode": self.default_expense_mode,
                "max_batch_operations": self.max_batch_operations,
            },
        )

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with shop defaults."""
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Build from a plain mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("payroll_config_unknown_keys", extra={"keys": unknown})
        schedule = kwargs.get("pay_schedule")
        if isinstance(schedule, dict):
            anchor = schedule.get("anchor_date")
            if isinstance(anchor, str):
                anchor = date.fromisoformat(anchor)
            kwargs["pay_schedule"] = PayScheduleConfig(
                type=schedule.get("type", "biweekly"),
                anchor_date=anchor,
            )
        return cls(**kwargs)
