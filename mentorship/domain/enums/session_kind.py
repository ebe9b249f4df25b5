"""
Session Kind Enum.

The value doubles as the event-type prefix and the session type code.
"""
from enum import Enum


class SessionKind(str, Enum):
    """Kinds of bookable sessions."""

    REGULAR_MENTORING = "regular_mentoring"
    GAP_ANALYSIS = "gap_analysis"
    AI_CAREER = "ai_career"
    COMM_SESSION = "comm_session"
    CLASS_SESSION = "class_session"
