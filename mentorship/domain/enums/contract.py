"""
Contract Enums.

Entitlement hold and ledger values.
"""
from enum import Enum


class HoldStatus(str, Enum):
    """Service hold status values."""

    ACTIVE = "active"
    RELEASED = "released"


class HoldReleaseReason(str, Enum):
    """Why a hold was released."""

    COMPLETED = "completed"
    MEETING_CREATE_FAILED = "meeting_create_failed"
    CANCELLED = "cancelled"


class LedgerEntryType(str, Enum):
    """Service ledger entry types."""

    CONSUMPTION = "consumption"
    REFUND = "refund"
    ADJUSTMENT = "adjustment"
