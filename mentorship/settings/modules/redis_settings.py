from __future__ import annotations

from pydantic import Field

from mentorship.settings.base import MentorshipBaseSettings


class RedisSettings(MentorshipBaseSettings):
    """
    Redis stream transport settings.
    Loaded from REDIS_* environment variables or .env.
    """

    url: str = "redis://localhost:6379/0"
    stream_name: str = "mentorship:events"
    # Approximate stream cap (XADD MAXLEN ~)
    max_len: int = 100_000
    dead_letter_stream: str = "mentorship:events:dead"
    # Deliveries of one message before it is dead-lettered
    max_deliveries: int = Field(5, ge=1)

    class Config:
        env_prefix = "REDIS_"
