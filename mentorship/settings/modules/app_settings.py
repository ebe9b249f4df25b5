from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, ConfigDict

from mentorship.settings.modules.database_settings import DatabaseSettings
from mentorship.settings.modules.meeting_settings import MeetingProviderSettings
from mentorship.settings.modules.redis_settings import RedisSettings
from mentorship.settings.modules.saga_settings import SagaSettings


class AppSettings(BaseModel):
    """Application settings aggregator."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="ignore")

    database: DatabaseSettings
    meeting: MeetingProviderSettings
    saga: SagaSettings
    redis: RedisSettings


@lru_cache()
def get_app_settings() -> AppSettings:
    return AppSettings(
        database=DatabaseSettings(),
        meeting=MeetingProviderSettings(),
        saga=SagaSettings(),
        redis=RedisSettings(),
    )
