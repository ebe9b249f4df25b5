from .http_meeting_provider import HttpMeetingProvider

__all__ = ["HttpMeetingProvider"]
