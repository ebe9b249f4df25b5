"""Tests for SessionCompletionHandler."""

from datetime import datetime, timezone

import pytest

from mentorship.application.handlers import SessionCompletionHandler
from mentorship.application.handlers.session_completion import seconds_to_minutes
from mentorship.domain.enums import SessionKind, SessionStatus
from mentorship.domain.events import MEETING_LIFECYCLE_COMPLETED


@pytest.fixture
def handler(session_factory, publisher, session_services):
    return SessionCompletionHandler(session_factory, publisher, session_services=session_services)


def meeting_completed(meeting_id="mtg-1", seconds=3630, scheduled=60):
    return MEETING_LIFECYCLE_COMPLETED.create({
        "meeting_id": meeting_id,
        "actual_duration_seconds": seconds,
        "schedule_duration_minutes": scheduled,
        "ended_at": datetime(2026, 3, 2, 10, 1, tzinfo=timezone.utc),
    })


@pytest.mark.parametrize("seconds, minutes", [(0, 0), (29, 0), (30, 1), (89, 1), (90, 2), (3630, 61)])
def test_seconds_to_minutes_rounds_half_up(seconds, minutes):
    assert seconds_to_minutes(seconds) == minutes


@pytest.mark.asyncio
async def test_completes_session_and_announces_it(handler, session_services, publisher):
    session_services[SessionKind.GAP_ANALYSIS].add(
        "s-1",
        status=SessionStatus.SCHEDULED,
        meeting_id="mtg-1",
        student_id="student-1",
        mentor_id="mentor-1",
        service_type="gap_analysis_credits",
    )

    await handler.handle_meeting_completed(meeting_completed())

    assert session_services[SessionKind.GAP_ANALYSIS].sessions["s-1"].status == SessionStatus.COMPLETED
    [(event, producer)] = publisher.published
    assert producer == "SessionCompletionHandler"
    assert event.event_type == "services.session.completed"
    assert event.payload.session_id == "s-1"
    assert event.payload.session_type_code == "gap_analysis"
    assert event.payload.service_type_code == "gap_analysis_credits"
    assert event.payload.actual_duration_minutes == 61
    assert event.payload.duration_minutes == 60
    assert event.payload.allow_billing is True


@pytest.mark.asyncio
async def test_unknown_meeting_is_ignored(handler, publisher):
    await handler.handle_meeting_completed(meeting_completed(meeting_id="mtg-404"))

    assert publisher.published == []


@pytest.mark.asyncio
async def test_already_completed_session_is_announced_again(handler, session_services, publisher):
    session_services[SessionKind.REGULAR_MENTORING].add("s-1", status=SessionStatus.COMPLETED, meeting_id="mtg-1")

    await handler.handle_meeting_completed(meeting_completed())

    [event] = publisher.events
    assert event.payload.service_type_code == "External"


@pytest.mark.asyncio
async def test_cancelled_session_is_not_completed(handler, session_services, publisher):
    session_services[SessionKind.REGULAR_MENTORING].add("s-1", status=SessionStatus.CANCELLED, meeting_id="mtg-1")

    await handler.handle_meeting_completed(meeting_completed())

    assert session_services[SessionKind.REGULAR_MENTORING].sessions["s-1"].status == SessionStatus.CANCELLED
    assert publisher.published == []


@pytest.mark.asyncio
async def test_publish_failure_propagates_for_redelivery(handler, session_services, publisher):
    session_services[SessionKind.REGULAR_MENTORING].add("s-1", status=SessionStatus.SCHEDULED, meeting_id="mtg-1")
    publisher.error = ConnectionError("stream down")

    with pytest.raises(ConnectionError):
        await handler.handle_meeting_completed(meeting_completed())
