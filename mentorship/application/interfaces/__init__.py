"""Application layer interfaces.

Collaborators the sagas talk to. Methods that take ``tx`` join the caller's
transaction when one is given and open their own otherwise.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional

from orchestration.models import SagaExecutionContext

from mentorship.domain.entities import (
    CalendarSlot,
    ConsumptionRecord,
    LedgerEntry,
    Meeting,
    MentorPrice,
    PayableEntry,
    ServiceHold,
    ServiceSession,
    SlotRequest,
)
from mentorship.domain.enums import HoldReleaseReason, SessionKind, SlotStatus


class IMeetingProvider(ABC):
    """
    Interface for the external conferencing provider.

    Every method may raise a transient error; callers wrap them in a
    RetryPolicy.
    """

    @abstractmethod
    async def create_meeting(
        self,
        topic: str,
        start_time: datetime,
        duration_minutes: int,
        provider: str,
        host_user_id: Optional[str] = None,
        auto_record: bool = True,
        allow_early_join: bool = True,
    ) -> Meeting:
        """
        Create a meeting.

        Args:
            topic: Meeting title
            start_time: Scheduled start
            duration_minutes: Scheduled length
            provider: Provider key (e.g. "feishu", "zoom")
            host_user_id: Provider-side host account, if the provider needs one
            auto_record: Start cloud recording automatically
            allow_early_join: Let participants join before the host

        Returns:
            Created meeting (id, url, optional password)

        Raises:
            MeetingProviderError: If the provider rejects the request
        """
        pass

    @abstractmethod
    async def update_meeting(
        self,
        meeting_id: str,
        topic: Optional[str] = None,
        start_time: Optional[datetime] = None,
        duration_minutes: Optional[int] = None,
    ) -> None:
        """
        Update an existing meeting. Only the given fields change.

        Args:
            meeting_id: Provider meeting id
            topic: New title
            start_time: New start
            duration_minutes: New length
        """
        pass

    @abstractmethod
    async def cancel_meeting(self, meeting_id: str) -> None:
        """
        Cancel a meeting.

        Args:
            meeting_id: Provider meeting id
        """
        pass


class ICalendarService(ABC):
    """Interface for the calendar slot store."""

    @abstractmethod
    async def create_slot_direct(
        self, request: SlotRequest, tx: Optional[SagaExecutionContext] = None
    ) -> Optional[CalendarSlot]:
        """
        Reserve a slot.

        Args:
            request: Slot to reserve
            tx: Transaction to join

        Returns:
            Created slot, or None when the slot conflicts with an existing booking
        """
        pass

    @abstractmethod
    async def update_slot_with_session_and_meeting(
        self,
        session_id: str,
        meeting_id: str,
        meeting_url: str,
        mentor_slot_id: str,
        student_slot_id: str,
        mentor_name: str,
        student_name: str,
        tx: Optional[SagaExecutionContext] = None,
    ) -> None:
        """
        Link a mentor/student slot pair to a session and its meeting.

        Each slot's title names the other participant.
        """
        pass

    @abstractmethod
    async def update_single_slot_with_session_and_meeting(
        self,
        session_id: str,
        meeting_id: str,
        meeting_url: str,
        slot_id: str,
        title: str,
        tx: Optional[SagaExecutionContext] = None,
    ) -> None:
        """Link one slot to a session and its meeting."""
        pass

    @abstractmethod
    async def cancel_slot(self, slot_id: str) -> None:
        """
        Cancel a slot.

        Raises:
            SlotNotFoundError: If no such slot
            SlotAlreadyCancelledError: If the slot is already cancelled
        """
        pass

    @abstractmethod
    async def update_status_by_meeting_id(self, meeting_id: str, status: SlotStatus) -> int:
        """
        Bulk-update every slot linked to a meeting.

        Returns:
            Number of slots updated
        """
        pass


class IServiceHoldService(ABC):
    """Interface for entitlement holds."""

    @abstractmethod
    async def find_active_holds(
        self,
        student_id: str,
        service_type: str,
        related_booking_id: str,
        tx: Optional[SagaExecutionContext] = None,
        for_update: bool = False,
    ) -> list[ServiceHold]:
        """
        Active holds for one booking.

        Args:
            for_update: Lock the returned rows until ``tx`` ends
        """
        pass

    @abstractmethod
    async def release_hold(
        self,
        hold_id: str,
        reason: HoldReleaseReason,
        tx: Optional[SagaExecutionContext] = None,
    ) -> ServiceHold:
        """
        Release a hold.

        Raises:
            HoldNotFoundError: If no such hold
        """
        pass


class IServiceLedgerService(ABC):
    """Interface for the entitlement ledger."""

    @abstractmethod
    async def find_consumption(
        self,
        student_id: str,
        service_type: str,
        related_booking_id: str,
        tx: Optional[SagaExecutionContext] = None,
    ) -> Optional[LedgerEntry]:
        """Existing consumption entry for a booking, if any."""
        pass

    @abstractmethod
    async def record_consumption(
        self, record: ConsumptionRecord, tx: Optional[SagaExecutionContext] = None
    ) -> LedgerEntry:
        """Append a consumption entry."""
        pass


class IMentorPayableService(ABC):
    """Interface for mentor billing."""

    @abstractmethod
    async def get_mentor_price(
        self, mentor_id: str, session_type_code: str
    ) -> Optional[MentorPrice]:
        """Active price for a mentor and session type, or None."""
        pass

    @abstractmethod
    async def is_duplicate(self, reference_id: str) -> bool:
        """True when a payable entry already exists for ``reference_id``."""
        pass

    @abstractmethod
    async def create_per_session_billing(self, payload: Dict[str, Any]) -> PayableEntry:
        """
        Create a per-session payable entry.

        Args:
            payload: Full completed-event payload (snake_case keys)

        Raises:
            MentorPriceNotFoundError: If the mentor has no active price
        """
        pass


class IUserService(ABC):
    """Interface for the identity collaborator."""

    @abstractmethod
    async def get_display_name(self, user_id: str) -> str:
        pass


class IClassMembershipService(ABC):
    """Interface for class rosters."""

    @abstractmethod
    async def get_student_ids(self, class_id: str) -> list[str]:
        pass

    @abstractmethod
    async def get_counselor_ids(self, class_id: str) -> list[str]:
        pass


class ISessionDomainService(ABC):
    """
    Interface for the domain service owning one session kind.

    Status transitions are compare-and-swap: they only apply when the
    session is in the expected status.
    """

    kind: SessionKind

    @abstractmethod
    async def get_session_by_id(self, session_id: str) -> Optional[ServiceSession]:
        pass

    @abstractmethod
    async def find_by_meeting_id(self, meeting_id: str) -> Optional[ServiceSession]:
        pass

    @abstractmethod
    async def get_meeting_id(self, session_id: str) -> Optional[str]:
        pass

    @abstractmethod
    async def schedule_meeting(
        self, session_id: str, meeting_id: str, tx: Optional[SagaExecutionContext] = None
    ) -> None:
        """
        Link a meeting and move PENDING_MEETING -> SCHEDULED.

        Raises:
            StaleSessionStateError: If the session is no longer PENDING_MEETING
        """
        pass

    @abstractmethod
    async def mark_meeting_failed(
        self, session_id: str, tx: Optional[SagaExecutionContext] = None
    ) -> None:
        """
        Move PENDING_MEETING -> MEETING_FAILED. No-op when already MEETING_FAILED.

        Raises:
            StaleSessionStateError: If the session is in any other status
        """
        pass

    @abstractmethod
    async def complete_session(
        self, session_id: str, tx: Optional[SagaExecutionContext] = None
    ) -> None:
        """
        Move SCHEDULED -> COMPLETED.

        Raises:
            StaleSessionStateError: If the session is not SCHEDULED
        """
        pass


__all__ = [
    "ICalendarService",
    "IClassMembershipService",
    "IMeetingProvider",
    "IMentorPayableService",
    "IServiceHoldService",
    "IServiceLedgerService",
    "ISessionDomainService",
    "IUserService",
]
