"""
SQLAlchemy calendar service.

Slot conflicts are detected by the partial unique index on
``(user_id, start_time) WHERE status = 'booked'``.
"""
import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from orchestration.models import SagaExecutionContext

from mentorship.application.interfaces import ICalendarService
from mentorship.domain.entities import CalendarSlot, SlotRequest
from mentorship.domain.enums import SlotStatus
from mentorship.domain.exceptions import (
    SlotAlreadyCancelledError,
    SlotConflictError,
    SlotNotFoundError,
)
from mentorship.infrastructure.database.models import CalendarSlotModel
from mentorship.infrastructure.database.repositories.base import SQLAlchemyRepository


logger = logging.getLogger(__name__)


class SQLAlchemyCalendarService(SQLAlchemyRepository, ICalendarService):

    async def create_slot_direct(
        self, request: SlotRequest, tx: Optional[SagaExecutionContext] = None
    ) -> Optional[CalendarSlot]:
        model = CalendarSlotModel(
            user_id=request.user_id,
            user_type=request.user_type,
            start_time=request.start_time,
            duration_minutes=request.duration_minutes,
            status=SlotStatus.BOOKED.value,
            title=request.title,
            session_type=request.session_type,
        )
        try:
            if tx is not None:
                # Savepoint keeps the caller's transaction usable after a conflict
                async with tx.session.begin_nested():
                    tx.session.add(model)
                    await tx.session.flush()
            else:
                async with self._scope() as session:
                    session.add(model)
                    await session.flush()
        except IntegrityError:
            logger.warning(
                f"Slot conflict for user {request.user_id} at {request.start_time.isoformat()}"
            )
            return None
        return self._to_entity(model)

    async def reserve_slot(
        self, request: SlotRequest, tx: Optional[SagaExecutionContext] = None
    ) -> CalendarSlot:
        """Like ``create_slot_direct`` but a conflict raises SlotConflictError."""
        slot = await self.create_slot_direct(request, tx)
        if slot is None:
            raise SlotConflictError(
                f"User {request.user_id} already has a booking at {request.start_time.isoformat()}"
            )
        return slot

    async def update_slot_with_session_and_meeting(
        self,
        session_id: str,
        meeting_id: str,
        meeting_url: str,
        mentor_slot_id: str,
        student_slot_id: str,
        mentor_name: str,
        student_name: str,
        tx: Optional[SagaExecutionContext] = None,
    ) -> None:
        async with self._scope(tx) as session:
            await self._link(session, mentor_slot_id, session_id, meeting_id, meeting_url,
                             f"Session with {student_name}")
            await self._link(session, student_slot_id, session_id, meeting_id, meeting_url,
                             f"Session with {mentor_name}")

    async def update_single_slot_with_session_and_meeting(
        self,
        session_id: str,
        meeting_id: str,
        meeting_url: str,
        slot_id: str,
        title: str,
        tx: Optional[SagaExecutionContext] = None,
    ) -> None:
        async with self._scope(tx) as session:
            await self._link(session, slot_id, session_id, meeting_id, meeting_url, title)

    async def cancel_slot(self, slot_id: str) -> None:
        async with self._scope() as session:
            model = await session.get(CalendarSlotModel, slot_id)
            if model is None:
                raise SlotNotFoundError(slot_id)
            if model.status == SlotStatus.CANCELLED.value:
                raise SlotAlreadyCancelledError(slot_id)
            model.status = SlotStatus.CANCELLED.value
        logger.info(f"Cancelled calendar slot {slot_id}")

    async def update_status_by_meeting_id(self, meeting_id: str, status: SlotStatus) -> int:
        async with self._scope() as session:
            result = await session.execute(
                update(CalendarSlotModel)
                .where(CalendarSlotModel.meeting_id == meeting_id)
                .values(status=status.value)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    async def get_slot(self, slot_id: str) -> Optional[CalendarSlot]:
        async with self._scope() as session:
            model = await session.get(CalendarSlotModel, slot_id)
            return self._to_entity(model) if model else None

    async def find_by_meeting_id(self, meeting_id: str) -> list[CalendarSlot]:
        async with self._scope() as session:
            result = await session.execute(
                select(CalendarSlotModel).where(CalendarSlotModel.meeting_id == meeting_id)
            )
            return [self._to_entity(m) for m in result.scalars().all()]

    async def _link(self, session, slot_id, session_id, meeting_id, meeting_url, title) -> None:
        result = await session.execute(
            update(CalendarSlotModel)
            .where(CalendarSlotModel.id == slot_id)
            .values(session_id=session_id, meeting_id=meeting_id, meeting_url=meeting_url, title=title)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise SlotNotFoundError(slot_id)

    def _to_entity(self, model: CalendarSlotModel) -> CalendarSlot:
        return CalendarSlot(
            id=model.id,
            user_id=model.user_id,
            user_type=model.user_type,
            start_time=model.start_time,
            duration_minutes=model.duration_minutes,
            status=SlotStatus(model.status),
            session_id=model.session_id,
            meeting_id=model.meeting_id,
            meeting_url=model.meeting_url,
            title=model.title,
        )
