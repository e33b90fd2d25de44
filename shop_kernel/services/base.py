"""
BaseService -- abstract base for kernel write services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service in the kernel layer.  Services receive a SQLAlchemy
    ``Session`` and persist with ``session.flush()`` -- never
    ``session.commit()``.  Batched callers pass a BatchWriter instead,
    which owns the commits.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from shop_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()`` itself.

    Non-goals:
        - Does NOT provide query-only (read) methods -- those belong
          in ``shop_kernel/selectors/`` where a selector exists.
    """

    def __init__(self, session: Session):
        self.session = session
