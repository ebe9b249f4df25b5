"""
SQLAlchemy contract services: entitlement holds and the service ledger.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select

from orchestration.models import SagaExecutionContext

from mentorship.application.interfaces import IServiceHoldService, IServiceLedgerService
from mentorship.domain.entities import ConsumptionRecord, LedgerEntry, ServiceHold
from mentorship.domain.enums import HoldReleaseReason, HoldStatus, LedgerEntryType
from mentorship.domain.exceptions import HoldNotFoundError
from mentorship.infrastructure.database.models import ServiceHoldModel, ServiceLedgerModel
from mentorship.infrastructure.database.repositories.base import SQLAlchemyRepository


logger = logging.getLogger(__name__)


class SQLAlchemyServiceHoldService(SQLAlchemyRepository, IServiceHoldService):

    async def create_hold(
        self,
        student_id: str,
        service_type: str,
        related_booking_id: Optional[str],
        quantity: int = 1,
        tx: Optional[SagaExecutionContext] = None,
    ) -> ServiceHold:
        """Reserve entitlement for a booking (used by the booking side and tests)."""
        model = ServiceHoldModel(
            student_id=student_id,
            service_type=service_type,
            related_booking_id=related_booking_id,
            quantity=quantity,
            status=HoldStatus.ACTIVE.value,
        )
        async with self._scope(tx) as session:
            session.add(model)
            await session.flush()
        return self._to_entity(model)

    async def find_active_holds(
        self,
        student_id: str,
        service_type: str,
        related_booking_id: str,
        tx: Optional[SagaExecutionContext] = None,
        for_update: bool = False,
    ) -> list[ServiceHold]:
        stmt = select(ServiceHoldModel).where(
            ServiceHoldModel.student_id == student_id,
            ServiceHoldModel.service_type == service_type,
            ServiceHoldModel.related_booking_id == related_booking_id,
            ServiceHoldModel.status == HoldStatus.ACTIVE.value,
        )
        if for_update:
            stmt = stmt.with_for_update()
        async with self._scope(tx) as session:
            result = await session.execute(stmt)
            return [self._to_entity(m) for m in result.scalars().all()]

    async def get_hold(self, hold_id: str) -> Optional[ServiceHold]:
        async with self._scope() as session:
            model = await session.get(ServiceHoldModel, hold_id)
            return self._to_entity(model) if model else None

    async def release_hold(
        self,
        hold_id: str,
        reason: HoldReleaseReason,
        tx: Optional[SagaExecutionContext] = None,
    ) -> ServiceHold:
        async with self._scope(tx) as session:
            model = await session.get(ServiceHoldModel, hold_id)
            if model is None:
                raise HoldNotFoundError(hold_id)
            if model.status == HoldStatus.RELEASED.value:
                logger.debug(f"Hold {hold_id} already released ({model.release_reason})")
                return self._to_entity(model)
            model.status = HoldStatus.RELEASED.value
            model.release_reason = reason.value
            model.released_at = datetime.now(timezone.utc)
            await session.flush()
        logger.info(f"Released hold {hold_id}: reason={reason.value}")
        return self._to_entity(model)

    def _to_entity(self, model: ServiceHoldModel) -> ServiceHold:
        return ServiceHold(
            id=model.id,
            student_id=model.student_id,
            service_type=model.service_type,
            related_booking_id=model.related_booking_id,
            quantity=model.quantity,
            status=HoldStatus(model.status),
            release_reason=model.release_reason,
            released_at=model.released_at,
        )


class SQLAlchemyServiceLedgerService(SQLAlchemyRepository, IServiceLedgerService):

    async def find_consumption(
        self,
        student_id: str,
        service_type: str,
        related_booking_id: str,
        tx: Optional[SagaExecutionContext] = None,
    ) -> Optional[LedgerEntry]:
        async with self._scope(tx) as session:
            result = await session.execute(
                select(ServiceLedgerModel)
                .where(
                    ServiceLedgerModel.student_id == student_id,
                    ServiceLedgerModel.service_type == service_type,
                    ServiceLedgerModel.related_booking_id == related_booking_id,
                    ServiceLedgerModel.type == LedgerEntryType.CONSUMPTION.value,
                )
                .limit(1)
            )
            model = result.scalars().first()
            return self._to_entity(model) if model else None

    async def record_consumption(
        self, record: ConsumptionRecord, tx: Optional[SagaExecutionContext] = None
    ) -> LedgerEntry:
        model = ServiceLedgerModel(
            student_id=record.student_id,
            service_type=record.service_type,
            type=LedgerEntryType.CONSUMPTION.value,
            quantity=record.quantity,
            related_booking_id=record.related_booking_id,
            booking_source=record.booking_source,
            created_by=record.created_by,
        )
        async with self._scope(tx) as session:
            session.add(model)
            await session.flush()
        logger.info(
            f"Recorded consumption: student={record.student_id} service={record.service_type} "
            f"quantity={record.quantity} booking={record.related_booking_id}"
        )
        return self._to_entity(model)

    async def list_entries(self, student_id: str) -> list[LedgerEntry]:
        async with self._scope() as session:
            result = await session.execute(
                select(ServiceLedgerModel).where(ServiceLedgerModel.student_id == student_id)
            )
            return [self._to_entity(m) for m in result.scalars().all()]

    def _to_entity(self, model: ServiceLedgerModel) -> LedgerEntry:
        return LedgerEntry(
            id=model.id,
            student_id=model.student_id,
            service_type=model.service_type,
            entry_type=LedgerEntryType(model.type),
            quantity=model.quantity,
            related_booking_id=model.related_booking_id,
            booking_source=model.booking_source,
            created_by=model.created_by,
            created_at=model.created_at,
        )
