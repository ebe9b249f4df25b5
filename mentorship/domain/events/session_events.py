"""
Session integration events.

Every session kind publishes four event types:

    <kind>.session.created                   -> triggers meeting provisioning
    <kind>.session.updated                   -> triggers meeting reschedule
    <kind>.session.cancelled                 -> triggers meeting cancellation
    <kind>.session.meeting_operation_result  -> outcome of any of the above
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import Field, PositiveInt

from orchestration.events import EventDefinition, EventPayload

from ..enums import MeetingOperation, NotifyRole, OperationStatus, SessionKind


# =============================================================================
# PAYLOADS
# =============================================================================

class OneOnOneSessionCreatedPayload(EventPayload):
    """Created payload for regular mentoring, gap analysis and AI career sessions."""

    session_id: str = Field(min_length=1)
    student_id: str = Field(min_length=1)
    mentor_id: str = Field(min_length=1)
    counselor_id: str = Field(min_length=1)
    scheduled_start_time: datetime
    duration: PositiveInt
    meeting_provider: str = Field(min_length=1)
    topic: str = Field(min_length=1)
    mentor_calendar_slot_id: str = Field(min_length=1)
    student_calendar_slot_id: str = Field(min_length=1)


class CommSessionCreatedPayload(EventPayload):
    """Communication sessions may be held by a counselor without a mentor."""

    session_id: str = Field(min_length=1)
    student_id: str = Field(min_length=1)
    mentor_id: Optional[str] = None
    counselor_id: Optional[str] = None
    created_by_counselor_id: Optional[str] = None
    scheduled_start_time: datetime
    duration: PositiveInt
    meeting_provider: str = Field(min_length=1)
    topic: str = Field(min_length=1)
    student_calendar_slot_id: str = Field(min_length=1)
    mentor_calendar_slot_id: Optional[str] = None


class ClassSessionCreatedPayload(EventPayload):
    """Class sessions reserve only the mentor's slot; the roster is looked up."""

    session_id: str = Field(min_length=1)
    class_id: str = Field(min_length=1)
    mentor_id: str = Field(min_length=1)
    scheduled_start_time: datetime
    duration: PositiveInt
    meeting_provider: str = Field(min_length=1)
    topic: str = Field(min_length=1)
    mentor_calendar_slot_id: str = Field(min_length=1)


class SessionUpdatedPayload(EventPayload):
    session_id: str = Field(min_length=1)
    meeting_id: Optional[str] = None
    old_scheduled_at: Optional[datetime] = None
    new_scheduled_at: datetime
    old_duration: Optional[PositiveInt] = None
    new_duration: PositiveInt
    new_title: str = Field(min_length=1)
    student_id: Optional[str] = None
    mentor_id: Optional[str] = None
    counselor_id: Optional[str] = None
    class_id: Optional[str] = None
    meeting_provider: Optional[str] = None


class SessionCancelledPayload(EventPayload):
    session_id: str = Field(min_length=1)
    meeting_id: Optional[str] = None
    student_id: Optional[str] = None
    mentor_id: Optional[str] = None
    counselor_id: Optional[str] = None
    class_id: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    meeting_provider: Optional[str] = None


class MeetingOperationResultPayload(EventPayload):
    """Unified result of a create / update / cancel meeting operation."""

    operation: MeetingOperation
    status: OperationStatus
    session_id: str = Field(min_length=1)
    meeting_id: Optional[str] = None
    student_id: Optional[str] = None
    mentor_id: Optional[str] = None
    counselor_id: Optional[str] = None
    created_by_counselor_id: Optional[str] = None
    class_id: Optional[str] = None
    student_ids: list[str] = Field(default_factory=list)
    counselor_ids: list[str] = Field(default_factory=list)
    scheduled_at: Optional[datetime] = None
    duration: Optional[int] = None
    meeting_url: Optional[str] = None
    meeting_provider: Optional[str] = None
    new_scheduled_at: Optional[datetime] = None
    new_duration: Optional[int] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    error_message: Optional[str] = None
    notify_roles: list[NotifyRole] = Field(default_factory=list)
    require_manual_intervention: bool = False


# =============================================================================
# DEFINITIONS
# =============================================================================

@dataclass(frozen=True)
class SessionEventSet:
    """The four event definitions published for one session kind."""
    kind: SessionKind
    created: EventDefinition
    updated: EventDefinition
    cancelled: EventDefinition
    meeting_operation_result: EventDefinition

    def all(self) -> tuple[EventDefinition, ...]:
        return (self.created, self.updated, self.cancelled, self.meeting_operation_result)


def _event_set(
    kind: SessionKind,
    created_payload: type[EventPayload],
    label: str,
    version: str = "2.0",
) -> SessionEventSet:
    prefix = f"{kind.value}.session"
    producer = f"{label.replace(' ', '')}DomainService"
    tags = ("session", kind.value)
    return SessionEventSet(
        kind=kind,
        created=EventDefinition(
            event_type=f"{prefix}.created",
            payload_model=created_payload,
            version=version,
            description=f"{label} session persisted in PENDING_MEETING; triggers meeting provisioning",
            producers=(producer,),
            tags=tags + ("meeting-creation",),
        ),
        updated=EventDefinition(
            event_type=f"{prefix}.updated",
            payload_model=SessionUpdatedPayload,
            version=version,
            description=f"{label} session rescheduled; triggers meeting update",
            producers=(producer,),
            tags=tags + ("update",),
        ),
        cancelled=EventDefinition(
            event_type=f"{prefix}.cancelled",
            payload_model=SessionCancelledPayload,
            version=version,
            description=f"{label} session cancelled; triggers meeting cancellation",
            producers=(producer,),
            tags=tags + ("cancellation",),
        ),
        meeting_operation_result=EventDefinition(
            event_type=f"{prefix}.meeting_operation_result",
            payload_model=MeetingOperationResultPayload,
            version=version,
            description=f"Outcome of a {label} meeting create/update/cancel",
            producers=("SessionProvisioningSaga", "SessionMeetingLifecycleHandler"),
            tags=tags + ("result", "notification"),
        ),
    )


REGULAR_MENTORING_EVENTS = _event_set(
    SessionKind.REGULAR_MENTORING, OneOnOneSessionCreatedPayload, "Regular Mentoring"
)
GAP_ANALYSIS_EVENTS = _event_set(
    SessionKind.GAP_ANALYSIS, OneOnOneSessionCreatedPayload, "Gap Analysis"
)
AI_CAREER_EVENTS = _event_set(
    SessionKind.AI_CAREER, OneOnOneSessionCreatedPayload, "AI Career"
)
COMM_SESSION_EVENTS = _event_set(
    SessionKind.COMM_SESSION, CommSessionCreatedPayload, "Comm Session"
)
CLASS_SESSION_EVENTS = _event_set(
    SessionKind.CLASS_SESSION, ClassSessionCreatedPayload, "Class Session", version="1.0"
)

SESSION_EVENTS: dict[SessionKind, SessionEventSet] = {
    events.kind: events
    for events in (
        REGULAR_MENTORING_EVENTS,
        GAP_ANALYSIS_EVENTS,
        AI_CAREER_EVENTS,
        COMM_SESSION_EVENTS,
        CLASS_SESSION_EVENTS,
    )
}
