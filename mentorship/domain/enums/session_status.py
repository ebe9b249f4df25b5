"""
Session Status Enum.

Lifecycle values shared by every session kind.
"""
from enum import Enum


class SessionStatus(str, Enum):
    """Session status values."""

    PENDING_MEETING = "pending_meeting"
    SCHEDULED = "scheduled"
    MEETING_FAILED = "meeting_failed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            SessionStatus.MEETING_FAILED,
            SessionStatus.COMPLETED,
            SessionStatus.CANCELLED,
        )
