"""
Domain exceptions.

Taxonomy used by the sagas:
- DomainValidationError: rejected immediately, nothing to compensate
- SlotConflictError: calendar slot already taken
- MeetingProviderError: transient provider failure, retried by the caller
- StaleSessionStateError: a status transition lost a race
"""


class MentorshipError(Exception):
    """Base class for all domain errors."""


class DomainValidationError(MentorshipError):
    """Input failed a domain rule (missing field, negative quantity, ...)."""


class SessionNotFoundError(MentorshipError):
    """No session with the given id."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class StaleSessionStateError(MentorshipError):
    """A compare-and-swap status transition found an unexpected status."""

    def __init__(self, session_id: str, expected: str, actual: str | None):
        self.session_id = session_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Session {session_id} is not in status {expected} (current: {actual})"
        )


class SlotConflictError(MentorshipError):
    """A calendar slot overlaps an existing booking."""


class SlotAlreadyCancelledError(MentorshipError):
    """The calendar slot is already cancelled."""

    def __init__(self, slot_id: str):
        self.slot_id = slot_id
        super().__init__(f"Calendar slot {slot_id} is already cancelled")


class SlotNotFoundError(MentorshipError):
    """No calendar slot with the given id."""

    def __init__(self, slot_id: str):
        self.slot_id = slot_id
        super().__init__(f"Calendar slot not found: {slot_id}")


class HoldNotFoundError(MentorshipError):
    """No service hold with the given id."""

    def __init__(self, hold_id: str):
        self.hold_id = hold_id
        super().__init__(f"Service hold not found: {hold_id}")


class MentorPriceNotFoundError(DomainValidationError):
    """Billing cannot proceed without an active mentor rate."""

    def __init__(self, mentor_id: str, session_type_code: str):
        self.mentor_id = mentor_id
        self.session_type_code = session_type_code
        super().__init__(
            f"No active price found for mentor: {mentor_id} and session type: {session_type_code}"
        )


class MeetingProviderError(MentorshipError):
    """The conferencing provider rejected or failed a request."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
