"""Domain entities."""

from .billing import MentorPrice, PayableEntry
from .calendar import CalendarSlot, SlotRequest
from .contract import ConsumptionRecord, LedgerEntry, ServiceHold
from .meeting import Meeting
from .session import ServiceSession

__all__ = [
    "CalendarSlot",
    "ConsumptionRecord",
    "LedgerEntry",
    "Meeting",
    "MentorPrice",
    "PayableEntry",
    "ServiceHold",
    "ServiceSession",
    "SlotRequest",
]
