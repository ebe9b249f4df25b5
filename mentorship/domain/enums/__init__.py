"""Domain enums."""

from .calendar import SlotStatus
from .contract import HoldReleaseReason, HoldStatus, LedgerEntryType
from .meeting import ALL_ROLES, COUNSELOR_ONLY, MeetingOperation, NotifyRole, OperationStatus
from .session_kind import SessionKind
from .session_status import SessionStatus

__all__ = [
    "ALL_ROLES",
    "COUNSELOR_ONLY",
    "HoldReleaseReason",
    "HoldStatus",
    "LedgerEntryType",
    "MeetingOperation",
    "NotifyRole",
    "OperationStatus",
    "SessionKind",
    "SessionStatus",
    "SlotStatus",
]
