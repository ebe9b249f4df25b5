"""
SQLAlchemy session domain service.

One instance per session kind over the shared ``service_sessions`` table.
Status transitions are conditional updates, so two concurrent deliveries
of the same event cannot both advance a session.
"""
import logging
from typing import Any, Optional

from sqlalchemy import select, update

from orchestration.models import SagaExecutionContext

from mentorship.application.interfaces import ISessionDomainService
from mentorship.domain.entities import ServiceSession
from mentorship.domain.enums import SessionKind, SessionStatus
from mentorship.domain.exceptions import SessionNotFoundError, StaleSessionStateError
from mentorship.infrastructure.database.models import ServiceSessionModel
from mentorship.infrastructure.database.repositories.base import SQLAlchemyRepository


logger = logging.getLogger(__name__)


class SQLAlchemySessionDomainService(SQLAlchemyRepository, ISessionDomainService):
    """Session store for one ``SessionKind``."""

    def __init__(self, session_factory, kind: SessionKind):
        super().__init__(session_factory)
        self.kind = kind

    async def get_session_by_id(self, session_id: str) -> Optional[ServiceSession]:
        async with self._scope() as session:
            model = await self._load(session, ServiceSessionModel.id == session_id)
            return self._to_entity(model) if model else None

    async def find_by_meeting_id(self, meeting_id: str) -> Optional[ServiceSession]:
        async with self._scope() as session:
            model = await self._load(session, ServiceSessionModel.meeting_id == meeting_id)
            return self._to_entity(model) if model else None

    async def get_meeting_id(self, session_id: str) -> Optional[str]:
        async with self._scope() as session:
            result = await session.execute(
                select(ServiceSessionModel.meeting_id).where(
                    ServiceSessionModel.id == session_id,
                    ServiceSessionModel.kind == self.kind.value,
                )
            )
            return result.scalar_one_or_none()

    async def create_session(self, entity: ServiceSession, tx: Optional[SagaExecutionContext] = None) -> None:
        """Persist a new session (used by the booking side and tests)."""
        async with self._scope(tx) as session:
            session.add(
                ServiceSessionModel(
                    id=entity.id,
                    kind=self.kind.value,
                    status=entity.status.value,
                    student_user_id=entity.student_id,
                    mentor_user_id=entity.mentor_id,
                    counselor_user_id=entity.counselor_id,
                    class_id=entity.class_id,
                    title=entity.title,
                    service_type=entity.service_type,
                    meeting_id=entity.meeting_id,
                    service_hold_id=entity.service_hold_id,
                    scheduled_start_time=entity.scheduled_start_time,
                    duration_minutes=entity.duration_minutes,
                )
            )
            await session.flush()

    async def schedule_meeting(
        self, session_id: str, meeting_id: str, tx: Optional[SagaExecutionContext] = None
    ) -> None:
        await self._transition(
            session_id,
            SessionStatus.PENDING_MEETING,
            SessionStatus.SCHEDULED,
            tx,
            meeting_id=meeting_id,
        )
        logger.info(f"Session {session_id} scheduled with meeting {meeting_id}")

    async def mark_meeting_failed(
        self, session_id: str, tx: Optional[SagaExecutionContext] = None
    ) -> None:
        try:
            await self._transition(
                session_id, SessionStatus.PENDING_MEETING, SessionStatus.MEETING_FAILED, tx
            )
        except StaleSessionStateError as e:
            if e.actual == SessionStatus.MEETING_FAILED.value:
                return
            raise
        logger.info(f"Session {session_id} marked meeting_failed")

    async def complete_session(
        self, session_id: str, tx: Optional[SagaExecutionContext] = None
    ) -> None:
        await self._transition(session_id, SessionStatus.SCHEDULED, SessionStatus.COMPLETED, tx)
        logger.info(f"Session {session_id} completed")

    async def _transition(
        self,
        session_id: str,
        expected: SessionStatus,
        target: SessionStatus,
        tx: Optional[SagaExecutionContext],
        **values: Any,
    ) -> None:
        async with self._scope(tx) as session:
            result = await session.execute(
                update(ServiceSessionModel)
                .where(
                    ServiceSessionModel.id == session_id,
                    ServiceSessionModel.kind == self.kind.value,
                    ServiceSessionModel.status == expected.value,
                )
                .values(status=target.value, **values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                return

            current = await session.execute(
                select(ServiceSessionModel.status).where(
                    ServiceSessionModel.id == session_id,
                    ServiceSessionModel.kind == self.kind.value,
                )
            )
            actual = current.scalar_one_or_none()
        if actual is None:
            raise SessionNotFoundError(session_id)
        raise StaleSessionStateError(session_id, expected.value, actual)

    async def _load(self, session, condition) -> Optional[ServiceSessionModel]:
        result = await session.execute(
            select(ServiceSessionModel).where(condition, ServiceSessionModel.kind == self.kind.value)
        )
        return result.scalars().first()

    def _to_entity(self, model: ServiceSessionModel) -> ServiceSession:
        return ServiceSession(
            id=model.id,
            kind=SessionKind(model.kind),
            status=SessionStatus(model.status),
            student_id=model.student_user_id,
            mentor_id=model.mentor_user_id,
            counselor_id=model.counselor_user_id,
            class_id=model.class_id,
            title=model.title,
            service_type=model.service_type,
            meeting_id=model.meeting_id,
            service_hold_id=model.service_hold_id,
            scheduled_start_time=model.scheduled_start_time,
            duration_minutes=model.duration_minutes,
        )
