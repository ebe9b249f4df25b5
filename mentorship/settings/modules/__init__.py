# Settings modules
from .app_settings import AppSettings, get_app_settings
from .database_settings import DatabaseSettings
from .meeting_settings import MeetingProviderSettings
from .redis_settings import RedisSettings
from .saga_settings import SagaSettings

__all__ = [
    "AppSettings",
    "get_app_settings",
    "DatabaseSettings",
    "MeetingProviderSettings",
    "RedisSettings",
    "SagaSettings",
]
