"""Mentor billing entities (owned by the financial domain)."""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class MentorPrice:
    """Active rate for a mentor and session type."""
    mentor_id: str
    session_type_code: str
    price: Decimal
    currency: str = "USD"


@dataclass
class PayableEntry:
    """Per-session payable owed to a mentor."""
    id: str
    reference_id: str
    session_id: str
    mentor_id: str
    student_id: Optional[str]
    session_type_code: str
    service_type_code: Optional[str]
    duration_minutes: Optional[int]
    price: Decimal
    currency: str
    created_at: Optional[datetime] = None
