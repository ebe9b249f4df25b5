from __future__ import annotations

from typing import Optional

from pydantic import Field

from mentorship.settings.base import MentorshipBaseSettings


class SagaSettings(MentorshipBaseSettings):
    """
    Saga retry and provider defaults.
    Loaded from SAGA_* environment variables or .env.
    """

    retry_max_attempts: int = Field(3, ge=1)
    retry_initial_delay_ms: int = Field(1000, ge=0)
    # Host account used when creating meetings on feishu
    feishu_default_host_user_id: Optional[str] = None
    # Delivery attempts per handler on the in-process bus
    bus_max_deliveries: int = Field(1, ge=1)

    class Config:
        env_prefix = "SAGA_"
