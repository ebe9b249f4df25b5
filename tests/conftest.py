"""Shared fixtures: SQLite database and in-memory fakes for every collaborator."""

from typing import Any, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from orchestration.retry import RetryPolicy

from mentorship.application.interfaces import (
    ICalendarService,
    IClassMembershipService,
    IMeetingProvider,
    IMentorPayableService,
    IServiceHoldService,
    IServiceLedgerService,
    ISessionDomainService,
    IUserService,
)
from mentorship.domain.entities import (
    ConsumptionRecord,
    LedgerEntry,
    Meeting,
    MentorPrice,
    ServiceHold,
    ServiceSession,
)
from mentorship.domain.enums import HoldStatus, LedgerEntryType, SessionKind, SessionStatus
from mentorship.domain.exceptions import SessionNotFoundError, StaleSessionStateError
from mentorship.infrastructure.database.models import Base


# =============================================================================
# DATABASE
# =============================================================================

@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """File-backed SQLite so concurrent sessions see each other's commits."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sagas.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    yield async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


# =============================================================================
# FAKES
# =============================================================================

class FakeEventPublisher:
    """Collects published events."""

    def __init__(self) -> None:
        self.published: list[tuple[Any, str]] = []
        self.error: Optional[Exception] = None

    async def publish(self, event, producer: str) -> None:
        if self.error is not None:
            raise self.error
        self.published.append((event, producer))

    @property
    def events(self) -> list:
        return [event for event, _ in self.published]


class FakeMeetingProvider(IMeetingProvider):
    """Meeting provider whose failures are scripted per operation."""

    def __init__(self) -> None:
        self.create_errors: list[Exception] = []
        self.update_errors: list[Exception] = []
        self.cancel_errors: list[Exception] = []
        self.create_calls: list[dict] = []
        self.update_calls: list[dict] = []
        self.cancel_calls: list[str] = []
        self._counter = 0

    async def create_meeting(self, topic, start_time, duration_minutes, provider,
                             host_user_id=None, auto_record=True, allow_early_join=True) -> Meeting:
        self.create_calls.append({
            "topic": topic,
            "start_time": start_time,
            "duration_minutes": duration_minutes,
            "provider": provider,
            "host_user_id": host_user_id,
            "auto_record": auto_record,
            "allow_early_join": allow_early_join,
        })
        if self.create_errors:
            raise self.create_errors.pop(0)
        self._counter += 1
        meeting_id = f"mtg-{self._counter}"
        return Meeting(id=meeting_id, meeting_url=f"https://meet.example.com/{meeting_id}")

    async def update_meeting(self, meeting_id, topic=None, start_time=None, duration_minutes=None) -> None:
        self.update_calls.append({
            "meeting_id": meeting_id,
            "topic": topic,
            "start_time": start_time,
            "duration_minutes": duration_minutes,
        })
        if self.update_errors:
            raise self.update_errors.pop(0)

    async def cancel_meeting(self, meeting_id) -> None:
        self.cancel_calls.append(meeting_id)
        if self.cancel_errors:
            raise self.cancel_errors.pop(0)


class FakeCalendarService(ICalendarService):

    def __init__(self) -> None:
        self.pair_links: list[dict] = []
        self.single_links: list[dict] = []
        self.cancelled: list[str] = []
        self.cancel_errors: dict[str, Exception] = {}
        self.link_error: Optional[Exception] = None
        self.status_updates: list[tuple[str, Any]] = []
        self.slots_per_meeting = 2

    async def create_slot_direct(self, request, tx=None):
        return None

    async def update_slot_with_session_and_meeting(self, session_id, meeting_id, meeting_url,
                                                   mentor_slot_id, student_slot_id,
                                                   mentor_name, student_name, tx=None) -> None:
        if self.link_error is not None:
            raise self.link_error
        self.pair_links.append({
            "session_id": session_id,
            "meeting_id": meeting_id,
            "meeting_url": meeting_url,
            "mentor_slot_id": mentor_slot_id,
            "student_slot_id": student_slot_id,
            "mentor_name": mentor_name,
            "student_name": student_name,
        })

    async def update_single_slot_with_session_and_meeting(self, session_id, meeting_id, meeting_url,
                                                          slot_id, title, tx=None) -> None:
        if self.link_error is not None:
            raise self.link_error
        self.single_links.append({
            "session_id": session_id,
            "meeting_id": meeting_id,
            "slot_id": slot_id,
            "title": title,
        })

    async def cancel_slot(self, slot_id) -> None:
        self.cancelled.append(slot_id)
        if slot_id in self.cancel_errors:
            raise self.cancel_errors[slot_id]

    async def update_status_by_meeting_id(self, meeting_id, status) -> int:
        self.status_updates.append((meeting_id, status))
        return self.slots_per_meeting


class FakeHoldService(IServiceHoldService):

    def __init__(self) -> None:
        self.holds: dict[str, ServiceHold] = {}
        self.released: list[tuple[str, Any]] = []
        self.release_error: Optional[Exception] = None
        self.find_calls: list[dict] = []

    def add(self, hold_id, student_id, service_type, related_booking_id) -> ServiceHold:
        hold = ServiceHold(
            id=hold_id,
            student_id=student_id,
            service_type=service_type,
            related_booking_id=related_booking_id,
            quantity=1,
            status=HoldStatus.ACTIVE,
        )
        self.holds[hold_id] = hold
        return hold

    async def find_active_holds(self, student_id, service_type, related_booking_id,
                                tx=None, for_update=False) -> list[ServiceHold]:
        self.find_calls.append({"for_update": for_update, "tx": tx})
        return [
            h for h in self.holds.values()
            if h.student_id == student_id
            and h.service_type == service_type
            and h.related_booking_id == related_booking_id
            and h.status == HoldStatus.ACTIVE
        ]

    async def release_hold(self, hold_id, reason, tx=None) -> ServiceHold:
        if self.release_error is not None:
            raise self.release_error
        self.released.append((hold_id, reason))
        hold = self.holds.get(hold_id)
        if hold is not None:
            hold.status = HoldStatus.RELEASED
            hold.release_reason = reason.value
        return hold


class FakeLedgerService(IServiceLedgerService):

    def __init__(self) -> None:
        self.entries: list[LedgerEntry] = []
        self.record_error: Optional[Exception] = None

    async def find_consumption(self, student_id, service_type, related_booking_id, tx=None):
        for entry in self.entries:
            if (entry.student_id, entry.service_type, entry.related_booking_id) == (
                student_id, service_type, related_booking_id
            ):
                return entry
        return None

    async def record_consumption(self, record: ConsumptionRecord, tx=None) -> LedgerEntry:
        if self.record_error is not None:
            raise self.record_error
        entry = LedgerEntry(
            id=f"ledger-{len(self.entries) + 1}",
            student_id=record.student_id,
            service_type=record.service_type,
            entry_type=LedgerEntryType.CONSUMPTION,
            quantity=record.quantity,
            related_booking_id=record.related_booking_id,
            booking_source=record.booking_source,
            created_by=record.created_by,
        )
        self.entries.append(entry)
        return entry


class FakePayableService(IMentorPayableService):

    def __init__(self) -> None:
        self.prices: dict[tuple[str, str], MentorPrice] = {}
        self.billed: list[dict] = []
        self.references: set[str] = set()
        self.billing_error: Optional[Exception] = None

    def set_price(self, mentor_id, session_type_code, price) -> None:
        self.prices[(mentor_id, session_type_code)] = MentorPrice(mentor_id, session_type_code, price)

    async def get_mentor_price(self, mentor_id, session_type_code):
        return self.prices.get((mentor_id, session_type_code))

    async def is_duplicate(self, reference_id) -> bool:
        return reference_id in self.references

    async def create_per_session_billing(self, payload):
        if self.billing_error is not None:
            raise self.billing_error
        reference_id = payload.get("reference_id") or payload["session_id"]
        if reference_id in self.references:
            return payload
        self.billed.append(payload)
        self.references.add(reference_id)
        return payload


class FakeUserService(IUserService):

    def __init__(self, names: Optional[dict[str, str]] = None) -> None:
        self.names = names or {}

    async def get_display_name(self, user_id) -> str:
        return self.names.get(user_id, user_id)


class FakeClassMembershipService(IClassMembershipService):

    def __init__(self) -> None:
        self.students: dict[str, list[str]] = {}
        self.counselors: dict[str, list[str]] = {}

    async def get_student_ids(self, class_id) -> list[str]:
        return list(self.students.get(class_id, []))

    async def get_counselor_ids(self, class_id) -> list[str]:
        return list(self.counselors.get(class_id, []))


class FakeSessionService(ISessionDomainService):
    """In-memory session store with compare-and-swap transitions."""

    def __init__(self, kind: SessionKind) -> None:
        self.kind = kind
        self.sessions: dict[str, ServiceSession] = {}
        self.mark_failed_error: Optional[Exception] = None
        self.schedule_error: Optional[Exception] = None

    def add(self, session_id: str, status=SessionStatus.PENDING_MEETING, **fields) -> ServiceSession:
        session = ServiceSession(id=session_id, kind=self.kind, status=status, **fields)
        self.sessions[session_id] = session
        return session

    async def get_session_by_id(self, session_id):
        return self.sessions.get(session_id)

    async def find_by_meeting_id(self, meeting_id):
        for session in self.sessions.values():
            if session.meeting_id == meeting_id:
                return session
        return None

    async def get_meeting_id(self, session_id):
        session = self.sessions.get(session_id)
        return session.meeting_id if session else None

    async def schedule_meeting(self, session_id, meeting_id, tx=None) -> None:
        if self.schedule_error is not None:
            raise self.schedule_error
        self._transition(session_id, SessionStatus.PENDING_MEETING, SessionStatus.SCHEDULED)
        self.sessions[session_id].meeting_id = meeting_id

    async def mark_meeting_failed(self, session_id, tx=None) -> None:
        if self.mark_failed_error is not None:
            raise self.mark_failed_error
        self._transition(session_id, SessionStatus.PENDING_MEETING, SessionStatus.MEETING_FAILED)

    async def complete_session(self, session_id, tx=None) -> None:
        self._transition(session_id, SessionStatus.SCHEDULED, SessionStatus.COMPLETED)

    def _transition(self, session_id, expected, target) -> None:
        session = self.sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if session.status != expected:
            raise StaleSessionStateError(session_id, expected.value, session.status.value)
        session.status = target


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def no_delay_retry() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, initial_delay_ms=0)


@pytest.fixture
def publisher() -> FakeEventPublisher:
    return FakeEventPublisher()


@pytest.fixture
def meeting_provider() -> FakeMeetingProvider:
    return FakeMeetingProvider()


@pytest.fixture
def calendar_service() -> FakeCalendarService:
    return FakeCalendarService()


@pytest.fixture
def hold_service() -> FakeHoldService:
    return FakeHoldService()


@pytest.fixture
def ledger_service() -> FakeLedgerService:
    return FakeLedgerService()


@pytest.fixture
def payable_service() -> FakePayableService:
    return FakePayableService()


@pytest.fixture
def user_service() -> FakeUserService:
    return FakeUserService({
        "mentor-1": "Alice Mentor",
        "student-1": "Bob Student",
        "counselor-1": "Carol Counselor",
    })


@pytest.fixture
def class_membership() -> FakeClassMembershipService:
    return FakeClassMembershipService()


@pytest.fixture
def session_services() -> dict[SessionKind, FakeSessionService]:
    return {kind: FakeSessionService(kind) for kind in SessionKind}
