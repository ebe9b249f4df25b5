"""
Redis Streams Publisher.

Appends integration events to a Redis Stream so consumers in other
processes receive them with at-least-once delivery.
"""
import logging
from typing import Optional

import redis.asyncio as aioredis

from orchestration.events import IntegrationEvent


logger = logging.getLogger(__name__)


class RedisStreamPublisher:
    """
    Publishes events to a Redis Stream.

    Message format (all strings): event_type, version, id, timestamp,
    payload (JSON), producer.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        stream_name: str = "mentorship:events",
        max_len: int = 100_000,
        client: Optional[aioredis.Redis] = None,
    ):
        """
        Initialize Redis Stream Publisher.

        Args:
            redis_url: Redis connection URL
            stream_name: Redis Stream name
            max_len: Approximate stream length cap
            client: Pre-built client (skips ``connect``)
        """
        self.redis_url = redis_url
        self.stream_name = stream_name
        self.max_len = max_len
        self._redis_client: Optional[aioredis.Redis] = client

    async def connect(self) -> None:
        """Establish Redis connection."""
        if self._redis_client is None:
            self._redis_client = aioredis.from_url(
                self.redis_url, encoding="utf-8", decode_responses=True
            )
            await self._redis_client.ping()
            logger.info(f"Connected to Redis: {self.redis_url}")

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self._redis_client:
            await self._redis_client.aclose()
            self._redis_client = None
            logger.info("Disconnected from Redis")

    async def publish(self, event: IntegrationEvent, producer: str) -> None:
        """
        Append ``event`` to the stream.

        Args:
            event: Event to publish
            producer: Name of the component emitting the event
        """
        if self._redis_client is None:
            await self.connect()

        message = event.to_message()
        message["producer"] = producer

        try:
            msg_id = await self._redis_client.xadd(
                self.stream_name,
                message,
                maxlen=self.max_len,
                approximate=True,
            )
        except Exception as e:
            logger.error(f"Failed to publish {event.event_type} to Redis Stream: {e}", exc_info=True)
            raise

        logger.info(
            f"Published {event.event_type} id={event.id} producer={producer} msg_id={msg_id}"
        )

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
