"""
Session provisioning saga.

Reacts to ``<kind>.session.created`` for every session kind:

    PENDING_MEETING --create meeting, link slots--> SCHEDULED
    PENDING_MEETING --failure, compensation-------> MEETING_FAILED

Failures are absorbed: the saga compensates and publishes a failed
``meeting_operation_result`` instead of raising.
"""
import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from orchestration.bus import EventPublisher
from orchestration.events import IntegrationEvent
from orchestration.models import CompensationResult, SagaExecutionContext
from orchestration.retry import RetryPolicy
from orchestration.saga import SagaBase

from mentorship.application.interfaces import (
    ICalendarService,
    IClassMembershipService,
    IMeetingProvider,
    IServiceHoldService,
    ISessionDomainService,
    IUserService,
)
from mentorship.domain.entities import Meeting, ServiceSession
from mentorship.domain.enums import (
    ALL_ROLES,
    COUNSELOR_ONLY,
    HoldReleaseReason,
    MeetingOperation,
    OperationStatus,
    SessionKind,
    SessionStatus,
)
from mentorship.domain.events import (
    SESSION_EVENTS,
    ClassSessionCreatedPayload,
    CommSessionCreatedPayload,
    MeetingOperationResultPayload,
    OneOnOneSessionCreatedPayload,
)
from mentorship.domain.exceptions import SlotAlreadyCancelledError, StaleSessionStateError

FEISHU_PROVIDER = "feishu"
CLASS_SLOT_TITLE = "Class Session"
COUNSELOR_FALLBACK_NAME = "Counselor"

NameResolver = Callable[[], Awaitable[dict[str, str]]]
SlotLinker = Callable[[Meeting, dict[str, str], SagaExecutionContext], Awaitable[None]]
RosterLoader = Callable[[], Awaitable[dict[str, Any]]]


async def _no_names() -> dict[str, str]:
    return {}


@dataclass
class ProvisioningPlan:
    """What one creation event needs done, independent of its kind."""

    kind: SessionKind
    session_id: str
    topic: str
    start_time: datetime
    duration: int
    provider: str
    auto_record: bool
    slot_ids: list[Optional[str]]
    link_slots: SlotLinker
    resolve_names: NameResolver = _no_names
    load_roster: Optional[RosterLoader] = None
    release_hold: bool = True
    result_fields: dict[str, Any] = field(default_factory=dict)


class SessionProvisioningSaga(SagaBase):
    """
    Creates the external meeting for a new session and links it to the
    reserved calendar slots, compensating when any step fails.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        event_publisher: EventPublisher,
        meeting_provider: IMeetingProvider,
        calendar_service: ICalendarService,
        session_services: Mapping[SessionKind, ISessionDomainService],
        hold_service: IServiceHoldService,
        user_service: IUserService,
        class_membership: IClassMembershipService,
        retry_policy: Optional[RetryPolicy] = None,
        feishu_host_user_id: Optional[str] = None,
    ) -> None:
        super().__init__(session_factory, event_publisher)
        self._meeting_provider = meeting_provider
        self._calendar = calendar_service
        self._session_services = dict(session_services)
        self._hold_service = hold_service
        self._user_service = user_service
        self._class_membership = class_membership
        self._retry_policy = retry_policy or RetryPolicy(max_attempts=3, initial_delay_ms=1000)
        self._feishu_host_user_id = feishu_host_user_id

    # =========================================================================
    # EVENT HANDLERS
    # =========================================================================

    async def handle_regular_mentoring_created(self, event: IntegrationEvent) -> None:
        await self.provision(self._one_on_one_plan(SessionKind.REGULAR_MENTORING, event.payload))

    async def handle_gap_analysis_created(self, event: IntegrationEvent) -> None:
        await self.provision(self._one_on_one_plan(SessionKind.GAP_ANALYSIS, event.payload))

    async def handle_ai_career_created(self, event: IntegrationEvent) -> None:
        await self.provision(self._one_on_one_plan(SessionKind.AI_CAREER, event.payload))

    async def handle_comm_session_created(self, event: IntegrationEvent) -> None:
        await self.provision(self._comm_session_plan(event.payload))

    async def handle_class_session_created(self, event: IntegrationEvent) -> None:
        await self.provision(self._class_session_plan(event.payload))

    def handlers(self) -> dict[str, Callable[[IntegrationEvent], Awaitable[None]]]:
        """Dispatch entries: created event type -> handler."""
        return {
            SESSION_EVENTS[SessionKind.REGULAR_MENTORING].created.event_type: self.handle_regular_mentoring_created,
            SESSION_EVENTS[SessionKind.GAP_ANALYSIS].created.event_type: self.handle_gap_analysis_created,
            SESSION_EVENTS[SessionKind.AI_CAREER].created.event_type: self.handle_ai_career_created,
            SESSION_EVENTS[SessionKind.COMM_SESSION].created.event_type: self.handle_comm_session_created,
            SESSION_EVENTS[SessionKind.CLASS_SESSION].created.event_type: self.handle_class_session_created,
        }

    # =========================================================================
    # PLANS
    # =========================================================================

    def _one_on_one_plan(
        self, kind: SessionKind, payload: OneOnOneSessionCreatedPayload
    ) -> ProvisioningPlan:
        async def resolve_names() -> dict[str, str]:
            return {
                "mentor": await self._user_service.get_display_name(payload.mentor_id),
                "student": await self._user_service.get_display_name(payload.student_id),
            }

        async def link_slots(meeting: Meeting, names: dict[str, str], tx: SagaExecutionContext) -> None:
            await self._calendar.update_slot_with_session_and_meeting(
                payload.session_id,
                meeting.id,
                meeting.meeting_url,
                payload.mentor_calendar_slot_id,
                payload.student_calendar_slot_id,
                names["mentor"],
                names["student"],
                tx,
            )

        return ProvisioningPlan(
            kind=kind,
            session_id=payload.session_id,
            topic=payload.topic,
            start_time=payload.scheduled_start_time,
            duration=payload.duration,
            provider=payload.meeting_provider,
            auto_record=True,
            slot_ids=[payload.mentor_calendar_slot_id, payload.student_calendar_slot_id],
            resolve_names=resolve_names,
            link_slots=link_slots,
            result_fields={
                "student_id": payload.student_id,
                "mentor_id": payload.mentor_id,
                "counselor_id": payload.counselor_id,
            },
        )

    def _comm_session_plan(self, payload: CommSessionCreatedPayload) -> ProvisioningPlan:
        has_mentor_slot = bool(payload.mentor_id and payload.mentor_calendar_slot_id)

        async def resolve_names() -> dict[str, str]:
            names = {"student": await self._user_service.get_display_name(payload.student_id)}
            if has_mentor_slot:
                names["mentor"] = await self._user_service.get_display_name(payload.mentor_id)
            elif payload.counselor_id:
                names["counselor"] = await self._user_service.get_display_name(payload.counselor_id)
            else:
                names["counselor"] = COUNSELOR_FALLBACK_NAME
            return names

        async def link_slots(meeting: Meeting, names: dict[str, str], tx: SagaExecutionContext) -> None:
            if has_mentor_slot:
                await self._calendar.update_slot_with_session_and_meeting(
                    payload.session_id,
                    meeting.id,
                    meeting.meeting_url,
                    payload.mentor_calendar_slot_id,
                    payload.student_calendar_slot_id,
                    names["mentor"],
                    names["student"],
                    tx,
                )
            else:
                await self._calendar.update_single_slot_with_session_and_meeting(
                    payload.session_id,
                    meeting.id,
                    meeting.meeting_url,
                    payload.student_calendar_slot_id,
                    names["counselor"],
                    tx,
                )

        return ProvisioningPlan(
            kind=SessionKind.COMM_SESSION,
            session_id=payload.session_id,
            topic=payload.topic,
            start_time=payload.scheduled_start_time,
            duration=payload.duration,
            provider=payload.meeting_provider,
            auto_record=False,
            slot_ids=[payload.student_calendar_slot_id, payload.mentor_calendar_slot_id],
            resolve_names=resolve_names,
            link_slots=link_slots,
            release_hold=False,
            result_fields={
                "student_id": payload.student_id,
                "mentor_id": payload.mentor_id,
                "counselor_id": payload.counselor_id,
                "created_by_counselor_id": payload.created_by_counselor_id,
            },
        )

    def _class_session_plan(self, payload: ClassSessionCreatedPayload) -> ProvisioningPlan:
        async def load_roster() -> dict[str, Any]:
            return {
                "student_ids": await self._class_membership.get_student_ids(payload.class_id),
                "counselor_ids": await self._class_membership.get_counselor_ids(payload.class_id),
            }

        async def link_slots(meeting: Meeting, names: dict[str, str], tx: SagaExecutionContext) -> None:
            await self._calendar.update_single_slot_with_session_and_meeting(
                payload.session_id,
                meeting.id,
                meeting.meeting_url,
                payload.mentor_calendar_slot_id,
                CLASS_SLOT_TITLE,
                tx,
            )

        return ProvisioningPlan(
            kind=SessionKind.CLASS_SESSION,
            session_id=payload.session_id,
            topic=payload.topic,
            start_time=payload.scheduled_start_time,
            duration=payload.duration,
            provider=payload.meeting_provider,
            auto_record=True,
            slot_ids=[payload.mentor_calendar_slot_id],
            link_slots=link_slots,
            load_roster=load_roster,
            release_hold=False,
            result_fields={"class_id": payload.class_id, "mentor_id": payload.mentor_id},
        )

    # =========================================================================
    # PROVISIONING
    # =========================================================================

    async def provision(self, plan: ProvisioningPlan) -> None:
        """Run the provisioning steps for one creation event."""
        label = f"{plan.kind.value}.session.created"
        self.logger.info(f"[{self.name}] Handling {label}: session_id={plan.session_id}")

        service = self._session_services[plan.kind]
        session = await self._load_pending_session(service, plan)
        if session is None:
            return

        meeting_id: Optional[str] = None
        roster: dict[str, Any] = {}
        try:
            if plan.load_roster is not None:
                roster = await plan.load_roster()

            meeting = await self._create_meeting_with_retry(plan)
            meeting_id = meeting.id

            names = await plan.resolve_names()

            async with self.transaction() as tx:
                await service.schedule_meeting(plan.session_id, meeting.id, tx)
                await plan.link_slots(meeting, names, tx)
        except StaleSessionStateError as exc:
            self.logger.warning(
                f"[{self.name}] Session {plan.session_id} left PENDING_MEETING while provisioning "
                f"({exc}); discarding meeting {meeting_id}"
            )
            await self._discard_meeting(meeting_id)
            return
        except Exception as exc:
            self.logger.error(
                f"[{self.name}] Failed to provision {plan.kind.value} session "
                f"{plan.session_id}: {self.stringify_error(exc)}",
                exc_info=True,
            )
            compensation = await self.compensate_create_failure(
                service=service,
                session_id=plan.session_id,
                meeting_id=meeting_id,
                hold_id=session.service_hold_id if plan.release_hold else None,
                slot_ids=plan.slot_ids,
            )
            if compensation is None:
                return
            await self._publish_result(
                plan,
                status=OperationStatus.FAILED,
                error_message=self.format_error_message(exc, compensation.compensation_errors),
                notify_roles=COUNSELOR_ONLY,
                require_manual_intervention=compensation.require_manual_intervention,
            )
            return

        self.logger.info(
            f"[{self.name}] Session {plan.session_id} scheduled with meeting {meeting.id}"
        )
        await self._publish_result(
            plan,
            status=OperationStatus.SUCCESS,
            meeting_id=meeting.id,
            meeting_url=meeting.meeting_url,
            duration=plan.duration,
            meeting_provider=plan.provider,
            notify_roles=ALL_ROLES,
            **roster,
        )

    async def _load_pending_session(
        self, service: ISessionDomainService, plan: ProvisioningPlan
    ) -> Optional[ServiceSession]:
        session = await service.get_session_by_id(plan.session_id)
        if session is None:
            self.logger.error(
                f"[{self.name}] {plan.kind.value} session not found: session_id={plan.session_id}"
            )
            return None
        if session.status != SessionStatus.PENDING_MEETING:
            self.logger.warning(
                f"[{self.name}] Skip {plan.kind.value}.session.created: "
                f"session_id={plan.session_id}, status={session.status.value}"
            )
            return None
        return session

    async def _create_meeting_with_retry(self, plan: ProvisioningPlan) -> Meeting:
        host_user_id = self._feishu_host_user_id if plan.provider == FEISHU_PROVIDER else None
        return await self._retry_policy.run(
            lambda: self._meeting_provider.create_meeting(
                topic=plan.topic,
                start_time=plan.start_time,
                duration_minutes=plan.duration,
                provider=plan.provider,
                host_user_id=host_user_id,
                auto_record=plan.auto_record,
                allow_early_join=True,
            ),
            description=f"create meeting for session {plan.session_id}",
        )

    async def _discard_meeting(self, meeting_id: Optional[str]) -> None:
        if not meeting_id:
            return
        try:
            await self._retry_policy.run(
                lambda: self._meeting_provider.cancel_meeting(meeting_id),
                description=f"cancel duplicate meeting {meeting_id}",
            )
        except Exception as exc:
            self.logger.error(
                f"[{self.name}] Could not cancel duplicate meeting {meeting_id}: "
                f"{self.stringify_error(exc)}"
            )

    # =========================================================================
    # COMPENSATION
    # =========================================================================

    async def compensate_create_failure(
        self,
        service: ISessionDomainService,
        session_id: str,
        meeting_id: Optional[str],
        hold_id: Optional[str],
        slot_ids: list[Optional[str]],
    ) -> Optional[CompensationResult]:
        """
        Undo a failed meeting creation, best effort.

        Returns None when the session was moved out of PENDING_MEETING by
        someone else; hold and slots then belong to that writer.
        """
        result = CompensationResult()
        errors = result.compensation_errors

        if meeting_id:
            try:
                await self._retry_policy.run(
                    lambda: self._meeting_provider.cancel_meeting(meeting_id),
                    description=f"cancel meeting {meeting_id}",
                )
            except Exception as exc:
                errors.append(f"cancel_meeting failed: {self.stringify_error(exc)}")

        try:
            await service.mark_meeting_failed(session_id)
        except StaleSessionStateError as exc:
            self.logger.warning(f"[{self.name}] Compensation superseded: {exc}")
            return None
        except Exception as exc:
            errors.append(f"mark_meeting_failed failed: {self.stringify_error(exc)}")

        if hold_id:
            try:
                await self._hold_service.release_hold(hold_id, HoldReleaseReason.MEETING_CREATE_FAILED)
            except Exception as exc:
                errors.append(f"release_hold failed: {self.stringify_error(exc)}")

        targets = [slot_id for slot_id in slot_ids if slot_id]
        outcomes = await asyncio.gather(
            *(self._calendar.cancel_slot(slot_id) for slot_id in targets),
            return_exceptions=True,
        )
        for slot_id, outcome in zip(targets, outcomes):
            if not isinstance(outcome, BaseException):
                continue
            if not isinstance(outcome, Exception):
                raise outcome
            if _is_already_cancelled(outcome):
                self.logger.debug(f"[{self.name}] Slot {slot_id} already cancelled")
                continue
            errors.append(f"cancel_slot failed: slot_id={slot_id} {self.stringify_error(outcome)}")

        if errors:
            self.logger.error(
                f"[{self.name}] Compensation incomplete for session {session_id}: "
                f"{' | '.join(errors)}"
            )
        return result

    @classmethod
    def format_error_message(cls, error: BaseException, compensation_errors: list[str]) -> str:
        base = cls.stringify_error(error)
        if not compensation_errors:
            return base
        return f"{base}; compensation: {' | '.join(compensation_errors)}"

    # =========================================================================
    # RESULT EVENTS
    # =========================================================================

    async def _publish_result(self, plan: ProvisioningPlan, **fields: Any) -> None:
        payload = MeetingOperationResultPayload(
            operation=MeetingOperation.CREATE,
            session_id=plan.session_id,
            scheduled_at=plan.start_time,
            **plan.result_fields,
            **fields,
        )
        event = SESSION_EVENTS[plan.kind].meeting_operation_result.create(payload)
        try:
            await self.publish(event)
        except Exception as exc:
            # The status change has committed; a redelivery would be skipped
            self.logger.error(
                f"[{self.name}] Failed to publish {event.event_type} for session "
                f"{plan.session_id} (status={payload.status.value}, "
                f"require_manual_intervention={payload.require_manual_intervention}): "
                f"{self.stringify_error(exc)}",
                exc_info=True,
            )


def _is_already_cancelled(error: Exception) -> bool:
    return isinstance(error, SlotAlreadyCancelledError) or "already cancelled" in str(error)
