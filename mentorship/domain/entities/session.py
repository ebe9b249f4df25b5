"""
Service session entity.

CRITICAL: This file must contain ZERO imports from:
- sqlalchemy
- pydantic
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..enums import SessionKind, SessionStatus


@dataclass
class ServiceSession:
    """
    A booked session of any kind.

    The creating domain service persists it in PENDING_MEETING; the
    provisioning saga moves it to SCHEDULED or MEETING_FAILED. The saga is
    one of several writers of ``status`` and never overwrites a terminal one.
    """
    id: str
    kind: SessionKind
    status: SessionStatus
    student_id: Optional[str] = None
    mentor_id: Optional[str] = None
    counselor_id: Optional[str] = None
    class_id: Optional[str] = None
    title: Optional[str] = None
    service_type: Optional[str] = None
    meeting_id: Optional[str] = None
    service_hold_id: Optional[str] = None
    scheduled_start_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None

    @property
    def is_pending_meeting(self) -> bool:
        return self.status == SessionStatus.PENDING_MEETING

    @property
    def is_meeting_updatable(self) -> bool:
        """Only a linked, scheduled meeting can be rescheduled or cancelled."""
        return bool(self.meeting_id) and self.status == SessionStatus.SCHEDULED
