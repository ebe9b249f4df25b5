"""
Meeting completion handler.

Turns ``meeting.lifecycle.completed`` into ``services.session.completed``
for whichever session kind owns the meeting.
"""
from collections.abc import Awaitable, Callable, Mapping
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from orchestration.bus import EventPublisher
from orchestration.events import IntegrationEvent
from orchestration.saga import SagaBase

from mentorship.application.interfaces import ISessionDomainService
from mentorship.domain.entities import ServiceSession
from mentorship.domain.enums import SessionKind, SessionStatus
from mentorship.domain.events import (
    MEETING_LIFECYCLE_COMPLETED,
    SERVICE_SESSION_COMPLETED,
    MeetingLifecycleCompletedPayload,
    ServiceSessionCompletedPayload,
)

EXTERNAL_SERVICE_TYPE = "External"


def seconds_to_minutes(seconds: int) -> int:
    """Whole minutes, halves rounded up."""
    return (seconds + 30) // 60


class SessionCompletionHandler(SagaBase):
    """
    Completes the session linked to an ended meeting and announces it for
    settlement. Errors propagate so the transport can redeliver.

    A session already COMPLETED is announced again; settlement is
    idempotent and this recovers a lost publish.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        event_publisher: EventPublisher,
        session_services: Mapping[SessionKind, ISessionDomainService],
    ) -> None:
        super().__init__(session_factory, event_publisher)
        self._session_services = dict(session_services)

    def handlers(self) -> dict[str, Callable[[IntegrationEvent], Awaitable[None]]]:
        return {MEETING_LIFECYCLE_COMPLETED.event_type: self.handle_meeting_completed}

    async def handle_meeting_completed(self, event: IntegrationEvent) -> None:
        payload: MeetingLifecycleCompletedPayload = event.payload
        self.logger.info(f"[{self.name}] Received meeting.lifecycle.completed for meeting {payload.meeting_id}")

        try:
            found = await self._find_session(payload.meeting_id)
            if found is None:
                self.logger.debug(f"[{self.name}] No session found for meeting {payload.meeting_id}, skipping")
                return
            service, session = found

            if session.status == SessionStatus.SCHEDULED:
                async with self.transaction() as tx:
                    await service.complete_session(session.id, tx)
            elif session.status != SessionStatus.COMPLETED:
                self.logger.warning(
                    f"[{self.name}] Session {session.id} is {session.status.value}; "
                    f"not completing it for meeting {payload.meeting_id}"
                )
                return

            await self.publish(
                SERVICE_SESSION_COMPLETED.create(
                    ServiceSessionCompletedPayload(
                        session_id=session.id,
                        student_id=session.student_id,
                        mentor_id=session.mentor_id,
                        service_type_code=session.service_type or EXTERNAL_SERVICE_TYPE,
                        session_type_code=session.kind.value,
                        actual_duration_minutes=seconds_to_minutes(payload.actual_duration_seconds),
                        duration_minutes=payload.schedule_duration_minutes or session.duration_minutes,
                        allow_billing=True,
                    )
                )
            )

            self.logger.info(
                f"[{self.name}] Completed {session.kind.value} session {session.id} and published "
                f"{SERVICE_SESSION_COMPLETED.event_type}"
            )
        except Exception as exc:
            self.logger.error(
                f"[{self.name}] Error handling meeting completion for meeting "
                f"{payload.meeting_id}: {self.stringify_error(exc)}",
                exc_info=True,
            )
            raise

    async def _find_session(
        self, meeting_id: str
    ) -> Optional[tuple[ISessionDomainService, ServiceSession]]:
        for service in self._session_services.values():
            session = await service.find_by_meeting_id(meeting_id)
            if session is not None:
                return service, session
        return None
