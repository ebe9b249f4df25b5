"""Tests for SessionMeetingLifecycleHandler (reschedule and cancel)."""

from datetime import datetime, timezone

import pytest

from mentorship.application.handlers import SessionMeetingLifecycleHandler
from mentorship.application.handlers.meeting_lifecycle import NO_MEETING_MESSAGE, NOT_UPDATABLE_MESSAGE
from mentorship.domain.enums import (
    ALL_ROLES,
    COUNSELOR_ONLY,
    MeetingOperation,
    OperationStatus,
    SessionKind,
    SessionStatus,
)
from mentorship.domain.events import AI_CAREER_EVENTS, CLASS_SESSION_EVENTS, SESSION_EVENTS
from mentorship.domain.exceptions import MeetingProviderError

NEW_START = datetime(2026, 3, 3, 14, 0, tzinfo=timezone.utc)


@pytest.fixture
def handler(publisher, meeting_provider, session_services, no_delay_retry):
    return SessionMeetingLifecycleHandler(
        publisher,
        meeting_provider=meeting_provider,
        session_services=session_services,
        retry_policy=no_delay_retry,
    )


def updated_event(events=AI_CAREER_EVENTS, **overrides):
    payload = {
        "session_id": "s-1",
        "new_scheduled_at": NEW_START,
        "new_duration": 45,
        "new_title": "Career plan, part 2",
        "student_id": "student-1",
        "mentor_id": "mentor-1",
    }
    payload.update(overrides)
    return events.updated.create(payload)


def cancelled_event(events=AI_CAREER_EVENTS, **overrides):
    payload = {"session_id": "s-1", "cancel_reason": "student request"}
    payload.update(overrides)
    return events.cancelled.create(payload)


# =============================================================================
# UPDATE
# =============================================================================

@pytest.mark.asyncio
async def test_update_reschedules_meeting(handler, session_services, meeting_provider, publisher):
    session_services[SessionKind.AI_CAREER].add("s-1", status=SessionStatus.SCHEDULED, meeting_id="mtg-1")

    await handler.handle_session_updated(SessionKind.AI_CAREER, updated_event())

    assert meeting_provider.update_calls == [{
        "meeting_id": "mtg-1",
        "topic": "Career plan, part 2",
        "start_time": NEW_START,
        "duration_minutes": 45,
    }]
    [(event, producer)] = publisher.published
    assert producer == "SessionMeetingLifecycleHandler"
    assert event.event_type == "ai_career.session.meeting_operation_result"
    assert event.payload.operation == MeetingOperation.UPDATE
    assert event.payload.status == OperationStatus.SUCCESS
    assert event.payload.new_duration == 45
    assert event.payload.notify_roles == ALL_ROLES
    assert event.payload.require_manual_intervention is False


@pytest.mark.asyncio
async def test_update_retries_transient_provider_errors(handler, session_services, meeting_provider, publisher):
    session_services[SessionKind.AI_CAREER].add("s-1", status=SessionStatus.SCHEDULED, meeting_id="mtg-1")
    meeting_provider.update_errors = [MeetingProviderError("busy")]

    await handler.handle_session_updated(SessionKind.AI_CAREER, updated_event())

    assert len(meeting_provider.update_calls) == 2
    assert publisher.events[0].payload.status == OperationStatus.SUCCESS


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, meeting_id",
    [
        (SessionStatus.CANCELLED, "mtg-1"),
        (SessionStatus.COMPLETED, "mtg-1"),
        (SessionStatus.PENDING_MEETING, None),
    ],
)
async def test_update_skipped_when_meeting_not_updatable(
    handler, session_services, meeting_provider, publisher, status, meeting_id
):
    session_services[SessionKind.AI_CAREER].add("s-1", status=status, meeting_id=meeting_id)

    await handler.handle_session_updated(SessionKind.AI_CAREER, updated_event())

    assert meeting_provider.update_calls == []
    [event] = publisher.events
    assert event.payload.status == OperationStatus.FAILED
    assert event.payload.error_message == NOT_UPDATABLE_MESSAGE
    assert event.payload.notify_roles == COUNSELOR_ONLY
    assert event.payload.require_manual_intervention is True


@pytest.mark.asyncio
async def test_update_failure_is_reported_not_raised(handler, session_services, meeting_provider, publisher):
    session_services[SessionKind.AI_CAREER].add("s-1", status=SessionStatus.SCHEDULED, meeting_id="mtg-1")
    meeting_provider.update_errors = [MeetingProviderError("gone")] * 3

    await handler.handle_session_updated(SessionKind.AI_CAREER, updated_event())

    [event] = publisher.events
    assert event.payload.status == OperationStatus.FAILED
    assert event.payload.error_message == "gone"


# =============================================================================
# CANCEL
# =============================================================================

@pytest.mark.asyncio
async def test_cancel_uses_meeting_id_from_session(handler, session_services, meeting_provider, publisher):
    session_services[SessionKind.AI_CAREER].add("s-1", status=SessionStatus.CANCELLED, meeting_id="mtg-1")

    await handler.handle_session_cancelled(SessionKind.AI_CAREER, cancelled_event())

    assert meeting_provider.cancel_calls == ["mtg-1"]
    [event] = publisher.events
    assert event.payload.operation == MeetingOperation.CANCEL
    assert event.payload.status == OperationStatus.SUCCESS
    assert event.payload.meeting_id == "mtg-1"
    assert event.payload.cancel_reason == "student request"


@pytest.mark.asyncio
async def test_cancel_prefers_meeting_id_on_event(handler, meeting_provider):
    await handler.handle_session_cancelled(SessionKind.AI_CAREER, cancelled_event(meeting_id="mtg-7"))

    assert meeting_provider.cancel_calls == ["mtg-7"]


@pytest.mark.asyncio
async def test_cancel_without_meeting_reports_failure(handler, session_services, meeting_provider, publisher):
    session_services[SessionKind.AI_CAREER].add("s-1", status=SessionStatus.CANCELLED)

    await handler.handle_session_cancelled(SessionKind.AI_CAREER, cancelled_event())

    assert meeting_provider.cancel_calls == []
    [event] = publisher.events
    assert event.payload.status == OperationStatus.FAILED
    assert event.payload.error_message == NO_MEETING_MESSAGE
    assert event.payload.notify_roles == COUNSELOR_ONLY


@pytest.mark.asyncio
async def test_publish_failure_is_swallowed(handler, meeting_provider, publisher):
    publisher.error = ConnectionError("stream down")

    await handler.handle_session_cancelled(SessionKind.AI_CAREER, cancelled_event(meeting_id="mtg-1"))

    assert meeting_provider.cancel_calls == ["mtg-1"]


# =============================================================================
# WIRING
# =============================================================================

def test_handlers_cover_updated_and_cancelled_for_every_kind(handler):
    table = handler.handlers()

    expected = set()
    for events in SESSION_EVENTS.values():
        expected.update({events.updated.event_type, events.cancelled.event_type})
    assert set(table) == expected


@pytest.mark.asyncio
async def test_dispatch_entry_binds_kind(handler, session_services, meeting_provider, publisher):
    session_services[SessionKind.CLASS_SESSION].add("s-1", status=SessionStatus.SCHEDULED, meeting_id="mtg-3")
    event = updated_event(events=CLASS_SESSION_EVENTS, class_id="class-1")

    await handler.handlers()[event.event_type](event)

    assert meeting_provider.update_calls[0]["meeting_id"] == "mtg-3"
    assert publisher.events[0].event_type == "class_session.session.meeting_operation_result"
