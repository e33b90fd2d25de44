"""
StaffDirectory -- staff lookups and rate history maintenance.

Responsibility:
    Reads staff by role, uid or email (returning StaffMember DTOs with their
    payroll profile) and appends entries to a staff member's rate history.

Architecture position:
    Kernel > Services.  Imports from models/ and db/.

Invariants enforced:
    - Rate history is append-only.  Each entry gets the next ``sequence``.
    - Email lookups are case-insensitive.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from shop_kernel.domain.dtos import StaffMember
from shop_kernel.exceptions import StaffNotFoundError
from shop_kernel.logging_config import get_logger
from shop_kernel.models.staff import StaffModel, StaffRateEntryModel
from shop_kernel.services.base import BaseService

logger = get_logger("services.staff_directory")


class StaffDirectory(BaseService[StaffModel]):
    """Staff reads and rate history writes."""

    def _query(self):
        return select(StaffModel).options(selectinload(StaffModel.rate_entries))

    def list_by_role(self, role: str, active_only: bool = True) -> list[StaffMember]:
        stmt = self._query().where(StaffModel.role == role)
        if active_only:
            stmt = stmt.where(StaffModel.is_active.is_(True))
        return [m.to_dto() for m in self.session.scalars(stmt.order_by(StaffModel.name))]

    def get_by_uid(self, uid: str) -> StaffMember | None:
        model = self._get_model(uid)
        return model.to_dto() if model is not None else None

    def get_by_email(self, email: str) -> StaffMember | None:
        if not email:
            return None
        stmt = self._query().where(
            func.lower(StaffModel.email) == email.strip().lower()
        )
        model = self.session.scalars(stmt).first()
        return model.to_dto() if model is not None else None

    def add_staff(
        self,
        *,
        uid: str,
        name: str,
        email: str | None = None,
        role: str = "staff",
        default_rate: Decimal | None = None,
        actor: str = "system",
    ) -> StaffMember:
        model = StaffModel(
            uid=uid,
            name=name,
            email=email,
            role=role,
            default_rate=default_rate,
            is_active=True,
            created_by=actor,
        )
        self.session.add(model)
        self.session.flush()
        return model.to_dto()

    def _get_model(self, uid: str) -> StaffModel | None:
        stmt = self._query().where(StaffModel.uid == uid)
        return self.session.scalars(stmt).first()

    def append_rate_entry(
        self,
        uid: str,
        rate: Decimal,
        effective_from: datetime | None,
        *,
        default_rate: Decimal | None = None,
        actor: str = "system",
    ) -> StaffMember:
        """
        Append a rate entry; optionally replace the default rate.

        Raises:
            StaffNotFoundError: If no staff member has ``uid``.
        """
        model = self._get_model(uid)
        if model is None:
            raise StaffNotFoundError(uid)
        next_sequence = max((e.sequence for e in model.rate_entries), default=0) + 1
        model.rate_entries.append(
            StaffRateEntryModel(
                sequence=next_sequence,
                rate=rate,
                effective_from=effective_from,
                created_by=actor,
            )
        )
        if default_rate is not None:
            model.default_rate = default_rate
        model.updated_by = actor
        self.session.flush()
        logger.info(
            "rate_entry_appended",
            extra={
                "uid": uid,
                "rate": str(rate),
                "effective_from": effective_from.isoformat() if effective_from else None,
                "sequence": next_sequence,
            },
        )
        return model.to_dto()

    def set_default_rate(
        self,
        uid: str,
        rate: Decimal | None,
        *,
        actor: str = "system",
    ) -> StaffMember:
        model = self._get_model(uid)
        if model is None:
            raise StaffNotFoundError(uid)
        model.default_rate = rate
        model.updated_by = actor
        self.session.flush()
        return model.to_dto()
