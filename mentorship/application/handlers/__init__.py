"""Event handlers that are not sagas."""

from .meeting_lifecycle import SessionMeetingLifecycleHandler
from .session_completion import SessionCompletionHandler

__all__ = ["SessionCompletionHandler", "SessionMeetingLifecycleHandler"]
