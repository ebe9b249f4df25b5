"""
SQLAlchemy ORM Models.

Tables backing the collaborator adapters. Ids are opaque strings so the
same schema runs on PostgreSQL and SQLite.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, DateTime, Integer, Numeric, Text, Index, PrimaryKeyConstraint, text
)
from sqlalchemy.orm import declarative_base


Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# SESSIONS
# =============================================================================

class ServiceSessionModel(Base):
    """
    Session of any kind.

    ``kind`` is the session type code; ``status`` follows
    pending_meeting -> scheduled | meeting_failed -> completed | cancelled.
    """

    __tablename__ = "service_sessions"

    id = Column(String(64), primary_key=True, default=_new_id)
    kind = Column(String(32), nullable=False, index=True)
    status = Column(String(32), nullable=False, default="pending_meeting")

    student_user_id = Column(String(64), nullable=True, index=True)
    mentor_user_id = Column(String(64), nullable=True, index=True)
    counselor_user_id = Column(String(64), nullable=True)
    class_id = Column(String(64), nullable=True)

    title = Column(String(500), nullable=True)
    service_type = Column(String(100), nullable=True)
    meeting_id = Column(String(128), nullable=True, index=True)
    service_hold_id = Column(String(64), nullable=True)

    scheduled_start_time = Column(DateTime(timezone=True), nullable=True)
    duration_minutes = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    def __repr__(self):
        return f"<ServiceSessionModel(id={self.id}, kind={self.kind}, status={self.status})>"


# =============================================================================
# CALENDAR
# =============================================================================

class CalendarSlotModel(Base):
    """
    Calendar slot.

    A user can hold at most one booked slot per start time; the partial
    unique index is the conflict check.
    """

    __tablename__ = "calendar_slots"

    id = Column(String(64), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False)
    user_type = Column(String(32), nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    status = Column(String(32), nullable=False, default="booked")

    session_id = Column(String(64), nullable=True, index=True)
    session_type = Column(String(32), nullable=True)
    meeting_id = Column(String(128), nullable=True, index=True)
    meeting_url = Column(Text, nullable=True)
    title = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (
        Index(
            "uq_calendar_slots_user_start_booked",
            "user_id",
            "start_time",
            unique=True,
            postgresql_where=text("status = 'booked'"),
            sqlite_where=text("status = 'booked'"),
        ),
    )


# =============================================================================
# CONTRACT
# =============================================================================

class ServiceHoldModel(Base):
    """Entitlement hold keyed by (student, service type, booking)."""

    __tablename__ = "service_holds"

    id = Column(String(64), primary_key=True, default=_new_id)
    student_id = Column(String(64), nullable=False)
    service_type = Column(String(100), nullable=False)
    related_booking_id = Column(String(64), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    status = Column(String(16), nullable=False, default="active")
    release_reason = Column(String(64), nullable=True)
    released_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_service_holds_booking", "student_id", "service_type", "related_booking_id", "status"),
    )


class ServiceLedgerModel(Base):
    """Append-only entitlement ledger."""

    __tablename__ = "service_ledgers"

    id = Column(String(64), primary_key=True, default=_new_id)
    student_id = Column(String(64), nullable=False)
    service_type = Column(String(100), nullable=False)
    type = Column(String(16), nullable=False)
    quantity = Column(Integer, nullable=False)
    related_booking_id = Column(String(64), nullable=True)
    booking_source = Column(String(64), nullable=True)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        # One consumption per booking
        Index(
            "uq_service_ledgers_consumption",
            "student_id",
            "service_type",
            "related_booking_id",
            unique=True,
            postgresql_where=text("type = 'consumption'"),
            sqlite_where=text("type = 'consumption'"),
        ),
    )


# =============================================================================
# FINANCIAL
# =============================================================================

class MentorPriceModel(Base):
    __tablename__ = "mentor_prices"

    id = Column(String(64), primary_key=True, default=_new_id)
    mentor_user_id = Column(String(64), nullable=False, index=True)
    session_type_code = Column(String(32), nullable=False)
    price = Column(Numeric(15, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(String(16), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class MentorPayableModel(Base):
    """Per-session payable owed to a mentor; unique per reference id."""

    __tablename__ = "mentor_payables"

    id = Column(String(64), primary_key=True, default=_new_id)
    reference_id = Column(String(64), nullable=False, unique=True)
    session_id = Column(String(64), nullable=False, index=True)
    mentor_user_id = Column(String(64), nullable=False, index=True)
    student_user_id = Column(String(64), nullable=True)
    session_type_code = Column(String(32), nullable=False)
    service_type_code = Column(String(100), nullable=True)
    duration_minutes = Column(Integer, nullable=True)
    price = Column(Numeric(15, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


# =============================================================================
# IDENTITY
# =============================================================================

class UserModel(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=_new_id)
    display_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)


class ClassStudentModel(Base):
    __tablename__ = "class_students"

    class_id = Column(String(64), nullable=False)
    student_user_id = Column(String(64), nullable=False)

    __table_args__ = (PrimaryKeyConstraint("class_id", "student_user_id"),)


class ClassCounselorModel(Base):
    __tablename__ = "class_counselors"

    class_id = Column(String(64), nullable=False)
    counselor_user_id = Column(String(64), nullable=False)

    __table_args__ = (PrimaryKeyConstraint("class_id", "counselor_user_id"),)
