"""Database layer - engine, base classes, types, and batched writes."""

from shop_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from shop_kernel.db.batch import BatchWriter
from shop_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)
from shop_kernel.db.types import HourlyRate, Money, UTCDateTime

__all__ = [
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "BatchWriter",
    "Money",
    "HourlyRate",
    "UTCDateTime",
]
