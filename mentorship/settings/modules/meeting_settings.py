from __future__ import annotations

from typing import Optional

from mentorship.settings.base import MentorshipBaseSettings


class MeetingProviderSettings(MentorshipBaseSettings):
    """
    Conferencing provider gateway settings.
    Loaded from MEETING_* environment variables or .env.
    """

    base_url: str = "http://localhost:8080"
    api_token: Optional[str] = None
    request_timeout_seconds: float = 15.0

    class Config:
        env_prefix = "MEETING_"
