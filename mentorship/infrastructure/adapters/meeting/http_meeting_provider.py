"""
HTTP Meeting Provider.

Talks to the conferencing gateway over JSON/HTTP:

    POST   /meetings          -> {"id", "meeting_url", "password"?}
    PATCH  /meetings/{id}
    DELETE /meetings/{id}

Every request carries a client-side timeout, so a stuck provider fails
the call (and the saga retries) instead of blocking forever.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

import aiohttp

from mentorship.application.interfaces import IMeetingProvider
from mentorship.domain.entities import Meeting
from mentorship.domain.exceptions import MeetingProviderError
from mentorship.settings.modules.meeting_settings import MeetingProviderSettings


logger = logging.getLogger(__name__)


class HttpMeetingProvider(IMeetingProvider):
    """aiohttp implementation of the conferencing provider."""

    def __init__(self, settings: MeetingProviderSettings):
        """
        Initialize provider client.

        Args:
            settings: Gateway URL, token and timeout
        """
        self.settings = settings
        self.base_url = settings.base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=settings.request_timeout_seconds)
        logger.info(f"HttpMeetingProvider initialized: {self.base_url}")

    async def create_meeting(
        self,
        topic: str,
        start_time: datetime,
        duration_minutes: int,
        provider: str,
        host_user_id: Optional[str] = None,
        auto_record: bool = True,
        allow_early_join: bool = True,
    ) -> Meeting:
        body: Dict[str, Any] = {
            "topic": topic,
            "provider": provider,
            "start_time": start_time.isoformat(),
            "duration_minutes": duration_minutes,
            "auto_record": auto_record,
            "allow_early_join": allow_early_join,
        }
        if host_user_id:
            body["host_user_id"] = host_user_id

        data = await self._request("POST", "/meetings", body)
        try:
            meeting = Meeting(
                id=str(data["id"]),
                meeting_url=data["meeting_url"],
                password=data.get("password"),
            )
        except (KeyError, TypeError) as e:
            raise MeetingProviderError(f"Malformed create meeting response: {data}") from e

        logger.info(f"Created {provider} meeting {meeting.id}")
        return meeting

    async def update_meeting(
        self,
        meeting_id: str,
        topic: Optional[str] = None,
        start_time: Optional[datetime] = None,
        duration_minutes: Optional[int] = None,
    ) -> None:
        body: Dict[str, Any] = {}
        if topic is not None:
            body["topic"] = topic
        if start_time is not None:
            body["start_time"] = start_time.isoformat()
        if duration_minutes is not None:
            body["duration_minutes"] = duration_minutes

        await self._request("PATCH", f"/meetings/{meeting_id}", body)
        logger.info(f"Updated meeting {meeting_id}")

    async def cancel_meeting(self, meeting_id: str) -> None:
        await self._request("DELETE", f"/meetings/{meeting_id}")
        logger.info(f"Cancelled meeting {meeting_id}")

    async def _request(
        self, method: str, path: str, body: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        headers = {}
        if self.settings.api_token:
            headers["Authorization"] = f"Bearer {self.settings.api_token}"

        url = f"{self.base_url}{path}"
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(method, url, json=body, headers=headers) as response:
                    if response.status >= 400:
                        error_text = await response.text()
                        raise MeetingProviderError(
                            f"Meeting provider error: {response.status} - {error_text}",
                            status_code=response.status,
                        )
                    if response.status == 204 or response.content_length == 0:
                        return {}
                    return await response.json()
        except asyncio.TimeoutError as e:
            raise MeetingProviderError(
                f"Meeting provider timed out after {self.timeout.total}s: {method} {path}"
            ) from e
        except aiohttp.ClientError as e:
            raise MeetingProviderError(f"Meeting provider request failed: {e}") from e
