"""Entitlement hold and ledger entities (owned by the contract domain)."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..enums import HoldStatus, LedgerEntryType
from ..exceptions import DomainValidationError


@dataclass
class ServiceHold:
    """Provisional reservation of entitlement pending consumption."""
    id: str
    student_id: str
    service_type: str
    related_booking_id: Optional[str]
    quantity: int
    status: HoldStatus
    release_reason: Optional[str] = None
    released_at: Optional[datetime] = None


@dataclass
class ConsumptionRecord:
    """Input for recording consumption against a student's entitlement."""
    student_id: str
    service_type: str
    quantity: int
    related_booking_id: str
    booking_source: str
    created_by: str

    def __post_init__(self):
        if self.quantity < 0:
            raise DomainValidationError(f"Consumption quantity must be >= 0, got {self.quantity}")
        if not self.student_id or not self.service_type or not self.related_booking_id:
            raise DomainValidationError(
                "Consumption requires student_id, service_type and related_booking_id"
            )


@dataclass
class LedgerEntry:
    """Immutable ledger line."""
    id: str
    student_id: str
    service_type: str
    entry_type: LedgerEntryType
    quantity: int
    related_booking_id: Optional[str]
    booking_source: Optional[str]
    created_by: Optional[str]
    created_at: Optional[datetime] = None
