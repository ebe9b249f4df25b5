"""
SQLAlchemy mentor payable service.

Payables are unique per reference id; the session id stands in when the
event carries none, so a redelivered completion never bills twice.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import select

from mentorship.application.interfaces import IMentorPayableService
from mentorship.domain.entities import MentorPrice, PayableEntry
from mentorship.domain.exceptions import DomainValidationError, MentorPriceNotFoundError
from mentorship.infrastructure.database.models import MentorPayableModel, MentorPriceModel
from mentorship.infrastructure.database.repositories.base import SQLAlchemyRepository


logger = logging.getLogger(__name__)

ACTIVE = "active"


class SQLAlchemyMentorPayableService(SQLAlchemyRepository, IMentorPayableService):

    async def set_mentor_price(
        self, mentor_id: str, session_type_code: str, price: Decimal, currency: str = "USD"
    ) -> MentorPrice:
        """Add an active rate (used by the financial admin side and tests)."""
        async with self._scope() as session:
            session.add(
                MentorPriceModel(
                    mentor_user_id=mentor_id,
                    session_type_code=session_type_code,
                    price=price,
                    currency=currency,
                    status=ACTIVE,
                )
            )
        return MentorPrice(mentor_id, session_type_code, price, currency)

    async def get_mentor_price(
        self, mentor_id: str, session_type_code: str
    ) -> Optional[MentorPrice]:
        async with self._scope() as session:
            result = await session.execute(
                select(MentorPriceModel)
                .where(
                    MentorPriceModel.mentor_user_id == mentor_id,
                    MentorPriceModel.session_type_code == session_type_code,
                    MentorPriceModel.status == ACTIVE,
                )
                .order_by(MentorPriceModel.created_at.desc())
                .limit(1)
            )
            model = result.scalars().first()
        if model is None:
            return None
        return MentorPrice(
            mentor_id=model.mentor_user_id,
            session_type_code=model.session_type_code,
            price=Decimal(model.price),
            currency=model.currency,
        )

    async def is_duplicate(self, reference_id: str) -> bool:
        return await self._find_by_reference(reference_id) is not None

    async def create_per_session_billing(self, payload: Dict[str, Any]) -> PayableEntry:
        session_id = payload.get("session_id")
        mentor_id = payload.get("mentor_id")
        session_type_code = payload.get("session_type_code")
        if not session_id or not mentor_id or not session_type_code:
            raise DomainValidationError(
                f"Billing requires session_id, mentor_id and session_type_code: {payload}"
            )

        reference_id = payload.get("reference_id") or session_id
        existing = await self._find_by_reference(reference_id)
        if existing is not None:
            logger.warning(f"Payable already exists for reference {reference_id}, returning it")
            return existing

        price = await self.get_mentor_price(mentor_id, session_type_code)
        if price is None:
            raise MentorPriceNotFoundError(mentor_id, session_type_code)

        model = MentorPayableModel(
            reference_id=reference_id,
            session_id=session_id,
            mentor_user_id=mentor_id,
            student_user_id=payload.get("student_id"),
            session_type_code=session_type_code,
            service_type_code=payload.get("service_type_code"),
            duration_minutes=payload.get("actual_duration_minutes") or payload.get("duration_minutes"),
            price=price.price,
            currency=price.currency,
        )
        async with self._scope() as session:
            session.add(model)
            await session.flush()

        logger.info(
            f"Created payable {model.id} for session {session_id}: {price.price} {price.currency}"
        )
        return self._to_entity(model)

    async def list_for_session(self, session_id: str) -> list[PayableEntry]:
        async with self._scope() as session:
            result = await session.execute(
                select(MentorPayableModel).where(MentorPayableModel.session_id == session_id)
            )
            return [self._to_entity(m) for m in result.scalars().all()]

    async def _find_by_reference(self, reference_id: str) -> Optional[PayableEntry]:
        async with self._scope() as session:
            result = await session.execute(
                select(MentorPayableModel).where(MentorPayableModel.reference_id == reference_id)
            )
            model = result.scalars().first()
            return self._to_entity(model) if model else None

    def _to_entity(self, model: MentorPayableModel) -> PayableEntry:
        return PayableEntry(
            id=model.id,
            reference_id=model.reference_id,
            session_id=model.session_id,
            mentor_id=model.mentor_user_id,
            student_id=model.student_user_id,
            session_type_code=model.session_type_code,
            service_type_code=model.service_type_code,
            duration_minutes=model.duration_minutes,
            price=Decimal(model.price),
            currency=model.currency,
            created_at=model.created_at,
        )
