"""Integration events published and consumed by the session sagas."""

from orchestration.catalog import EventCatalog
from orchestration.events import EventDefinition

from .meeting_events import (
    MEETING_LIFECYCLE_COMPLETED,
    SERVICE_SESSION_COMPLETED,
    MeetingLifecycleCompletedPayload,
    ServiceSessionCompletedPayload,
)
from .session_events import (
    AI_CAREER_EVENTS,
    CLASS_SESSION_EVENTS,
    COMM_SESSION_EVENTS,
    GAP_ANALYSIS_EVENTS,
    REGULAR_MENTORING_EVENTS,
    SESSION_EVENTS,
    ClassSessionCreatedPayload,
    CommSessionCreatedPayload,
    MeetingOperationResultPayload,
    OneOnOneSessionCreatedPayload,
    SessionCancelledPayload,
    SessionEventSet,
    SessionUpdatedPayload,
)


def all_event_definitions() -> list[EventDefinition]:
    definitions: list[EventDefinition] = []
    for events in SESSION_EVENTS.values():
        definitions.extend(events.all())
    definitions.append(MEETING_LIFECYCLE_COMPLETED)
    definitions.append(SERVICE_SESSION_COMPLETED)
    return definitions


def register_session_events(catalog: EventCatalog) -> None:
    """Declare every session event type in ``catalog``. Called once at startup."""
    for definition in all_event_definitions():
        catalog.register(definition)


__all__ = [
    "AI_CAREER_EVENTS",
    "CLASS_SESSION_EVENTS",
    "COMM_SESSION_EVENTS",
    "GAP_ANALYSIS_EVENTS",
    "MEETING_LIFECYCLE_COMPLETED",
    "REGULAR_MENTORING_EVENTS",
    "SERVICE_SESSION_COMPLETED",
    "SESSION_EVENTS",
    "ClassSessionCreatedPayload",
    "CommSessionCreatedPayload",
    "MeetingLifecycleCompletedPayload",
    "MeetingOperationResultPayload",
    "OneOnOneSessionCreatedPayload",
    "ServiceSessionCompletedPayload",
    "SessionCancelledPayload",
    "SessionEventSet",
    "SessionUpdatedPayload",
    "all_event_definitions",
    "register_session_events",
]
