"""Tests for the SQLAlchemy collaborator adapters against SQLite."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from orchestration.saga import SagaBase

from mentorship.domain.entities import ConsumptionRecord, ServiceSession, SlotRequest
from mentorship.domain.enums import (
    HoldReleaseReason,
    HoldStatus,
    SessionKind,
    SessionStatus,
    SlotStatus,
)
from mentorship.domain.exceptions import (
    DomainValidationError,
    HoldNotFoundError,
    MentorPriceNotFoundError,
    SessionNotFoundError,
    SlotAlreadyCancelledError,
    SlotConflictError,
    SlotNotFoundError,
    StaleSessionStateError,
)
from mentorship.infrastructure.database.models import ClassCounselorModel, ClassStudentModel, UserModel
from mentorship.infrastructure.database.repositories import (
    SQLAlchemyCalendarService,
    SQLAlchemyClassMembershipService,
    SQLAlchemyMentorPayableService,
    SQLAlchemyServiceHoldService,
    SQLAlchemyServiceLedgerService,
    SQLAlchemySessionDomainService,
    SQLAlchemyUserService,
)

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class TransactionOwner(SagaBase):
    """Opens saga transactions for adapters that join them."""


def pending_session(session_id="s-1", kind=SessionKind.REGULAR_MENTORING, **fields) -> ServiceSession:
    return ServiceSession(id=session_id, kind=kind, status=SessionStatus.PENDING_MEETING, **fields)


def slot_request(user_id="mentor-1", start=START) -> SlotRequest:
    return SlotRequest(user_id=user_id, user_type="mentor", start_time=start, duration_minutes=60)


# =============================================================================
# SESSIONS
# =============================================================================

@pytest.mark.asyncio
async def test_schedule_then_complete_session(session_factory):
    service = SQLAlchemySessionDomainService(session_factory, SessionKind.REGULAR_MENTORING)
    await service.create_session(pending_session(student_id="student-1", duration_minutes=60))

    await service.schedule_meeting("s-1", "mtg-1")

    session = await service.get_session_by_id("s-1")
    assert session.status == SessionStatus.SCHEDULED
    assert session.meeting_id == "mtg-1"
    assert session.student_id == "student-1"
    assert (await service.find_by_meeting_id("mtg-1")).id == "s-1"
    assert await service.get_meeting_id("s-1") == "mtg-1"

    await service.complete_session("s-1")
    assert (await service.get_session_by_id("s-1")).status == SessionStatus.COMPLETED


@pytest.mark.asyncio
async def test_second_schedule_loses_the_race(session_factory):
    service = SQLAlchemySessionDomainService(session_factory, SessionKind.REGULAR_MENTORING)
    await service.create_session(pending_session())
    await service.schedule_meeting("s-1", "mtg-1")

    with pytest.raises(StaleSessionStateError) as exc_info:
        await service.schedule_meeting("s-1", "mtg-2")

    assert exc_info.value.actual == "scheduled"
    assert await service.get_meeting_id("s-1") == "mtg-1"


@pytest.mark.asyncio
async def test_mark_failed_never_overwrites_other_states(session_factory):
    service = SQLAlchemySessionDomainService(session_factory, SessionKind.REGULAR_MENTORING)
    await service.create_session(pending_session("s-1"))
    await service.create_session(pending_session("s-2"))
    await service.schedule_meeting("s-2", "mtg-2")

    await service.mark_meeting_failed("s-1")
    # Already failed is fine
    await service.mark_meeting_failed("s-1")

    assert (await service.get_session_by_id("s-1")).status == SessionStatus.MEETING_FAILED
    with pytest.raises(StaleSessionStateError):
        await service.mark_meeting_failed("s-2")
    assert (await service.get_session_by_id("s-2")).status == SessionStatus.SCHEDULED


@pytest.mark.asyncio
async def test_transition_on_missing_session_raises_not_found(session_factory):
    service = SQLAlchemySessionDomainService(session_factory, SessionKind.REGULAR_MENTORING)

    with pytest.raises(SessionNotFoundError):
        await service.schedule_meeting("missing", "mtg-1")


@pytest.mark.asyncio
async def test_session_services_are_scoped_by_kind(session_factory):
    regular = SQLAlchemySessionDomainService(session_factory, SessionKind.REGULAR_MENTORING)
    gap = SQLAlchemySessionDomainService(session_factory, SessionKind.GAP_ANALYSIS)
    await regular.create_session(pending_session())

    assert await gap.get_session_by_id("s-1") is None
    with pytest.raises(SessionNotFoundError):
        await gap.schedule_meeting("s-1", "mtg-1")


@pytest.mark.asyncio
async def test_schedule_in_rolled_back_transaction_is_undone(session_factory, publisher):
    service = SQLAlchemySessionDomainService(session_factory, SessionKind.REGULAR_MENTORING)
    await service.create_session(pending_session())
    owner = TransactionOwner(session_factory, publisher)

    with pytest.raises(RuntimeError):
        async with owner.transaction() as tx:
            await service.schedule_meeting("s-1", "mtg-1", tx)
            raise RuntimeError("slot link failed")

    session = await service.get_session_by_id("s-1")
    assert session.status == SessionStatus.PENDING_MEETING
    assert session.meeting_id is None


# =============================================================================
# CALENDAR
# =============================================================================

@pytest.mark.asyncio
async def test_double_booking_is_a_conflict(session_factory):
    calendar = SQLAlchemyCalendarService(session_factory)
    await calendar.reserve_slot(slot_request())

    assert await calendar.create_slot_direct(slot_request()) is None
    with pytest.raises(SlotConflictError):
        await calendar.reserve_slot(slot_request())

    other = await calendar.reserve_slot(slot_request(user_id="student-1"))
    assert other.status == SlotStatus.BOOKED


@pytest.mark.asyncio
async def test_cancelled_slot_frees_the_time(session_factory):
    calendar = SQLAlchemyCalendarService(session_factory)
    slot = await calendar.reserve_slot(slot_request())

    await calendar.cancel_slot(slot.id)

    assert (await calendar.get_slot(slot.id)).status == SlotStatus.CANCELLED
    assert await calendar.create_slot_direct(slot_request()) is not None


@pytest.mark.asyncio
async def test_cancel_slot_errors(session_factory):
    calendar = SQLAlchemyCalendarService(session_factory)
    slot = await calendar.reserve_slot(slot_request())
    await calendar.cancel_slot(slot.id)

    with pytest.raises(SlotAlreadyCancelledError):
        await calendar.cancel_slot(slot.id)
    with pytest.raises(SlotNotFoundError):
        await calendar.cancel_slot("missing")


@pytest.mark.asyncio
async def test_link_pair_then_complete_by_meeting(session_factory):
    calendar = SQLAlchemyCalendarService(session_factory)
    mentor_slot = await calendar.reserve_slot(slot_request(user_id="mentor-1"))
    student_slot = await calendar.reserve_slot(slot_request(user_id="student-1"))

    await calendar.update_slot_with_session_and_meeting(
        "s-1", "mtg-1", "https://meet.example.com/mtg-1",
        mentor_slot.id, student_slot.id, "Alice", "Bob",
    )

    mentor_view = await calendar.get_slot(mentor_slot.id)
    student_view = await calendar.get_slot(student_slot.id)
    assert mentor_view.title == "Session with Bob"
    assert student_view.title == "Session with Alice"
    assert mentor_view.meeting_url == "https://meet.example.com/mtg-1"
    assert student_view.session_id == "s-1"

    updated = await calendar.update_status_by_meeting_id("mtg-1", SlotStatus.COMPLETED)

    assert updated == 2
    assert {s.status for s in await calendar.find_by_meeting_id("mtg-1")} == {SlotStatus.COMPLETED}


@pytest.mark.asyncio
async def test_link_unknown_slot_raises(session_factory):
    calendar = SQLAlchemyCalendarService(session_factory)

    with pytest.raises(SlotNotFoundError):
        await calendar.update_single_slot_with_session_and_meeting(
            "s-1", "mtg-1", "https://meet.example.com/mtg-1", "missing", "Class Session"
        )


# =============================================================================
# CONTRACT
# =============================================================================

@pytest.mark.asyncio
async def test_hold_release_is_idempotent(session_factory):
    holds = SQLAlchemyServiceHoldService(session_factory)
    hold = await holds.create_hold("student-1", "mentoring_hours", "s-1")

    [active] = await holds.find_active_holds("student-1", "mentoring_hours", "s-1", for_update=True)
    assert active.id == hold.id

    released = await holds.release_hold(hold.id, HoldReleaseReason.COMPLETED)
    again = await holds.release_hold(hold.id, HoldReleaseReason.MEETING_CREATE_FAILED)

    assert released.status == HoldStatus.RELEASED
    assert again.release_reason == "completed"
    assert await holds.find_active_holds("student-1", "mentoring_hours", "s-1") == []

    with pytest.raises(HoldNotFoundError):
        await holds.release_hold("missing", HoldReleaseReason.COMPLETED)


@pytest.mark.asyncio
async def test_one_consumption_per_booking(session_factory):
    ledger = SQLAlchemyServiceLedgerService(session_factory)
    record = ConsumptionRecord(
        student_id="student-1",
        service_type="mentoring_hours",
        quantity=2,
        related_booking_id="s-1",
        booking_source="regular_mentoring",
        created_by="student-1",
    )

    entry = await ledger.record_consumption(record)
    assert (await ledger.find_consumption("student-1", "mentoring_hours", "s-1")).id == entry.id

    with pytest.raises(IntegrityError):
        await ledger.record_consumption(record)
    assert len(await ledger.list_entries("student-1")) == 1


def test_negative_consumption_rejected():
    with pytest.raises(DomainValidationError):
        ConsumptionRecord("student-1", "mentoring_hours", -1, "s-1", "regular_mentoring", "student-1")


# =============================================================================
# BILLING
# =============================================================================

@pytest.mark.asyncio
async def test_per_session_billing_is_idempotent(session_factory):
    payables = SQLAlchemyMentorPayableService(session_factory)
    await payables.set_mentor_price("mentor-1", "regular_mentoring", Decimal("150.00"))
    payload = {
        "session_id": "s-1",
        "mentor_id": "mentor-1",
        "student_id": "student-1",
        "session_type_code": "regular_mentoring",
        "service_type_code": "mentoring_hours",
        "actual_duration_minutes": 61,
    }

    first = await payables.create_per_session_billing(payload)
    second = await payables.create_per_session_billing(payload)

    assert first.id == second.id
    assert first.price == Decimal("150.00")
    assert first.duration_minutes == 61
    assert await payables.is_duplicate("s-1") is True
    assert len(await payables.list_for_session("s-1")) == 1


@pytest.mark.asyncio
async def test_billing_requires_price_and_fields(session_factory):
    payables = SQLAlchemyMentorPayableService(session_factory)

    assert await payables.get_mentor_price("mentor-1", "regular_mentoring") is None
    with pytest.raises(MentorPriceNotFoundError):
        await payables.create_per_session_billing(
            {"session_id": "s-1", "mentor_id": "mentor-1", "session_type_code": "regular_mentoring"}
        )
    with pytest.raises(DomainValidationError):
        await payables.create_per_session_billing({"session_id": "s-1"})


# =============================================================================
# IDENTITY
# =============================================================================

@pytest.mark.asyncio
async def test_display_name_fallbacks(session_factory):
    async with session_factory() as session:
        async with session.begin():
            session.add_all([
                UserModel(id="u-1", display_name="Alice", email="alice@example.com"),
                UserModel(id="u-2", email="bob@example.com"),
                UserModel(id="u-3"),
            ])
    users = SQLAlchemyUserService(session_factory)

    assert await users.get_display_name("u-1") == "Alice"
    assert await users.get_display_name("u-2") == "bob@example.com"
    assert await users.get_display_name("u-3") == "u-3"
    assert await users.get_display_name("unknown") == "unknown"


@pytest.mark.asyncio
async def test_class_roster(session_factory):
    async with session_factory() as session:
        async with session.begin():
            session.add_all([
                ClassStudentModel(class_id="class-1", student_user_id="student-2"),
                ClassStudentModel(class_id="class-1", student_user_id="student-1"),
                ClassStudentModel(class_id="class-2", student_user_id="student-3"),
                ClassCounselorModel(class_id="class-1", counselor_user_id="counselor-1"),
            ])
    roster = SQLAlchemyClassMembershipService(session_factory)

    assert await roster.get_student_ids("class-1") == ["student-1", "student-2"]
    assert await roster.get_counselor_ids("class-1") == ["counselor-1"]
    assert await roster.get_counselor_ids("class-2") == []
