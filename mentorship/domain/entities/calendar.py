"""Calendar slot entities (owned by the calendar domain)."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..enums import SlotStatus


@dataclass
class SlotRequest:
    """Request to reserve a slot on a user's calendar."""
    user_id: str
    user_type: str
    start_time: datetime
    duration_minutes: int
    title: Optional[str] = None
    session_type: Optional[str] = None


@dataclass
class CalendarSlot:
    id: str
    user_id: str
    user_type: str
    start_time: datetime
    duration_minutes: int
    status: SlotStatus
    session_id: Optional[str] = None
    meeting_id: Optional[str] = None
    meeting_url: Optional[str] = None
    title: Optional[str] = None
