"""
Calendar Slot Status Enum.
"""
from enum import Enum


class SlotStatus(str, Enum):
    """Calendar slot status values."""

    BOOKED = "booked"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
