"""
Meeting Operation Enums.

Values carried by meeting operation result events.
"""
from enum import Enum


class MeetingOperation(str, Enum):
    """Operation performed against the conferencing provider."""

    CREATE = "create"
    UPDATE = "update"
    CANCEL = "cancel"


class OperationStatus(str, Enum):
    """Outcome of a meeting operation."""

    SUCCESS = "success"
    FAILED = "failed"


class NotifyRole(str, Enum):
    """Participant roles a result notification is addressed to."""

    COUNSELOR = "counselor"
    MENTOR = "mentor"
    STUDENT = "student"


ALL_ROLES = [NotifyRole.COUNSELOR, NotifyRole.MENTOR, NotifyRole.STUDENT]
COUNSELOR_ONLY = [NotifyRole.COUNSELOR]
