"""
Meeting update / cancel handlers.

Reacts to ``<kind>.session.updated`` and ``<kind>.session.cancelled`` by
rescheduling or cancelling the provider meeting, then publishes a
``meeting_operation_result``. These handlers never raise; the outcome is
always reported through the result event.
"""
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Optional

from orchestration.bus import EventPublisher
from orchestration.events import IntegrationEvent
from orchestration.retry import RetryPolicy

from mentorship.application.interfaces import IMeetingProvider, ISessionDomainService
from mentorship.domain.enums import (
    ALL_ROLES,
    COUNSELOR_ONLY,
    MeetingOperation,
    OperationStatus,
    SessionKind,
)
from mentorship.domain.events import (
    SESSION_EVENTS,
    MeetingOperationResultPayload,
    SessionCancelledPayload,
    SessionUpdatedPayload,
)

logger = logging.getLogger(__name__)

NOT_UPDATABLE_MESSAGE = "Meeting is in a non-updatable state (cancelled/ended). Update skipped."
NO_MEETING_MESSAGE = "No meeting ID found, session was in PENDING_MEETING state"


class SessionMeetingLifecycleHandler:
    """Keeps the provider meeting in sync with session reschedules and cancellations."""

    def __init__(
        self,
        event_publisher: EventPublisher,
        meeting_provider: IMeetingProvider,
        session_services: Mapping[SessionKind, ISessionDomainService],
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.event_publisher = event_publisher
        self.meeting_provider = meeting_provider
        self.session_services = dict(session_services)
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=3, initial_delay_ms=1000)

    @property
    def name(self) -> str:
        return type(self).__name__

    def handlers(self) -> dict[str, Callable[[IntegrationEvent], Awaitable[None]]]:
        """Dispatch entries for every session kind."""
        table: dict[str, Callable[[IntegrationEvent], Awaitable[None]]] = {}
        for kind, events in SESSION_EVENTS.items():
            table[events.updated.event_type] = self._for_kind(kind, self.handle_session_updated)
            table[events.cancelled.event_type] = self._for_kind(kind, self.handle_session_cancelled)
        return table

    @staticmethod
    def _for_kind(kind: SessionKind, handler):
        async def handle(event: IntegrationEvent) -> None:
            await handler(kind, event)

        handle.__qualname__ = f"{handler.__qualname__}[{kind.value}]"
        return handle

    async def handle_session_updated(self, kind: SessionKind, event: IntegrationEvent) -> None:
        payload: SessionUpdatedPayload = event.payload
        logger.info(f"Handling {kind.value}.session.updated: session_id={payload.session_id}")

        success = False
        error_message: Optional[str] = None
        meeting_id = payload.meeting_id

        try:
            session = await self.session_services[kind].get_session_by_id(payload.session_id)
            if session is not None and not meeting_id:
                meeting_id = session.meeting_id

            if session is None or not session.is_meeting_updatable:
                error_message = NOT_UPDATABLE_MESSAGE
                logger.warning(f"{error_message} session_id={payload.session_id} meeting_id={meeting_id}")
            else:
                await self.retry_policy.run(
                    lambda: self.meeting_provider.update_meeting(
                        meeting_id,
                        topic=payload.new_title,
                        start_time=payload.new_scheduled_at,
                        duration_minutes=payload.new_duration,
                    ),
                    description=f"update meeting {meeting_id}",
                )
                success = True
                logger.debug(f"Meeting {meeting_id} updated")
        except Exception as e:
            error_message = str(e) or type(e).__name__
            logger.error(f"Failed to update meeting {meeting_id}: {error_message}", exc_info=True)

        await self._publish_result(
            kind,
            MeetingOperationResultPayload(
                operation=MeetingOperation.UPDATE,
                status=OperationStatus.SUCCESS if success else OperationStatus.FAILED,
                session_id=payload.session_id,
                meeting_id=meeting_id,
                student_id=payload.student_id,
                mentor_id=payload.mentor_id,
                counselor_id=payload.counselor_id,
                class_id=payload.class_id,
                new_scheduled_at=payload.new_scheduled_at,
                new_duration=payload.new_duration,
                meeting_provider=payload.meeting_provider,
                error_message=None if success else error_message,
                notify_roles=ALL_ROLES if success else COUNSELOR_ONLY,
                require_manual_intervention=not success,
            ),
        )

    async def handle_session_cancelled(self, kind: SessionKind, event: IntegrationEvent) -> None:
        payload: SessionCancelledPayload = event.payload
        logger.info(f"Handling {kind.value}.session.cancelled: session_id={payload.session_id}")

        success = False
        error_message: Optional[str] = None
        meeting_id = payload.meeting_id

        try:
            if not meeting_id:
                session = await self.session_services[kind].get_session_by_id(payload.session_id)
                meeting_id = session.meeting_id if session is not None else None

            if not meeting_id:
                error_message = NO_MEETING_MESSAGE
                logger.warning(f"{error_message} session_id={payload.session_id}")
            else:
                await self.retry_policy.run(
                    lambda: self.meeting_provider.cancel_meeting(meeting_id),
                    description=f"cancel meeting {meeting_id}",
                )
                success = True
                logger.debug(f"Meeting {meeting_id} cancelled")
        except Exception as e:
            error_message = str(e) or type(e).__name__
            logger.error(f"Failed to cancel meeting {meeting_id}: {error_message}", exc_info=True)

        await self._publish_result(
            kind,
            MeetingOperationResultPayload(
                operation=MeetingOperation.CANCEL,
                status=OperationStatus.SUCCESS if success else OperationStatus.FAILED,
                session_id=payload.session_id,
                meeting_id=meeting_id,
                student_id=payload.student_id,
                mentor_id=payload.mentor_id,
                counselor_id=payload.counselor_id,
                class_id=payload.class_id,
                scheduled_at=payload.scheduled_at,
                cancelled_at=payload.cancelled_at,
                cancel_reason=payload.cancel_reason,
                meeting_provider=payload.meeting_provider,
                error_message=None if success else error_message,
                notify_roles=ALL_ROLES if success else COUNSELOR_ONLY,
                require_manual_intervention=not success,
            ),
        )

    async def _publish_result(self, kind: SessionKind, payload: MeetingOperationResultPayload) -> None:
        event = SESSION_EVENTS[kind].meeting_operation_result.create(payload)
        try:
            await self.event_publisher.publish(event, self.name)
        except Exception as e:
            logger.error(
                f"Failed to publish {event.event_type} for session {payload.session_id}: {e}",
                exc_info=True,
            )
            return
        logger.info(
            f"Published {event.event_type}: operation={payload.operation.value}, "
            f"status={payload.status.value}, session_id={payload.session_id}"
        )
