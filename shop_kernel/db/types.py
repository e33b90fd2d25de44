"""
Module: shop_kernel.db.types
Responsibility: Annotated type aliases and column type decorators used by
    every model.  Centralizes column precision so stored amounts match the
    2-place rounding applied by shop_kernel.domain.values.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Money columns are Numeric(14, 2).  No floats.
    - Timestamps round-trip as timezone-aware UTC on every backend
      (UTCDateTime).
"""

from datetime import timezone
from decimal import Decimal
from typing import Annotated

from sqlalchemy import DateTime, Numeric
from sqlalchemy.orm import mapped_column
from sqlalchemy.types import TypeDecorator


# Monetary amount: pesos and centavos
Money = Annotated[Decimal, mapped_column(Numeric(14, 2))]

# Hourly rate (kept at 4 places so rate * hours is rounded once, at the end)
HourlyRate = Annotated[Decimal, mapped_column(Numeric(12, 4))]


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored as UTC.

    Contract:
        Bind values are normalized to UTC (naive values are taken as UTC).
        Result values always carry tzinfo=UTC, including on SQLite which
        drops offsets.

    Guarantees:
        - process_bind_param: aware datetime -> UTC datetime.
        - process_result_value: stored value -> aware UTC datetime.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
