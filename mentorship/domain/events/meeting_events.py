"""
Meeting lifecycle and service completion events.

meeting.lifecycle.completed -> services.session.completed -> settlement
"""
from datetime import datetime
from typing import Optional

from pydantic import Field, NonNegativeInt

from orchestration.events import EventDefinition, EventPayload


class MeetingLifecycleCompletedPayload(EventPayload):
    """Signal from the conferencing side that a meeting has ended."""

    meeting_id: str = Field(min_length=1)
    actual_duration_seconds: NonNegativeInt
    schedule_duration_minutes: Optional[int] = None
    ended_at: datetime


class ServiceSessionCompletedPayload(EventPayload):
    """
    A session has completed and is ready for settlement.

    Required-field checks are deliberately left to the consumer so that a
    malformed event surfaces as a domain validation error in the saga log.
    """

    session_id: Optional[str] = None
    student_id: Optional[str] = None
    mentor_id: Optional[str] = None
    service_type_code: Optional[str] = None
    session_type_code: Optional[str] = None
    actual_duration_minutes: Optional[NonNegativeInt] = None
    duration_minutes: Optional[NonNegativeInt] = None
    allow_billing: bool = False
    reference_id: Optional[str] = None


MEETING_LIFECYCLE_COMPLETED = EventDefinition(
    event_type="meeting.lifecycle.completed",
    payload_model=MeetingLifecycleCompletedPayload,
    description="Meeting ended on the provider side",
    producers=("MeetingLifecycleService",),
    tags=("meeting", "completion"),
)

SERVICE_SESSION_COMPLETED = EventDefinition(
    event_type="services.session.completed",
    payload_model=ServiceSessionCompletedPayload,
    description="Service session completed; triggers calendar, entitlement and billing settlement",
    producers=("SessionCompletionHandler",),
    tags=("session", "completion", "billing", "ledger"),
)
