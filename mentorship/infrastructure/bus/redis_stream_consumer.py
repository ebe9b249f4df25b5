"""
Redis Streams Consumer.

Reads integration events through a consumer group and hands them to the
handlers registered on an in-process bus. A message is acknowledged only
after every handler succeeded; failed messages stay pending and are
re-read on the next pass, which gives the sagas their redelivery.

Messages that cannot be parsed, or that stay pending past
``max_deliveries``, are copied to a dead-letter stream and acknowledged.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

import redis.asyncio as aioredis
from pydantic import ValidationError

from orchestration.bus import InMemoryEventBus
from orchestration.events import EventDefinition


logger = logging.getLogger(__name__)


class RedisStreamConsumer:
    """
    Consumes events from a Redis Stream consumer group.

    Features:
    - Consumer groups for load balancing
    - ACK after successful processing
    - Pending messages retried before new ones
    - Dead-letter stream for unparseable and exhausted messages
    """

    def __init__(
        self,
        bus: InMemoryEventBus,
        definitions: Mapping[str, EventDefinition],
        redis_url: str = "redis://localhost:6379/0",
        stream_name: str = "mentorship:events",
        consumer_group: str = "mentorship:sagas",
        consumer_name: str = "saga-worker-1",
        dead_letter_stream: Optional[str] = None,
        max_deliveries: int = 5,
        client: Optional[aioredis.Redis] = None,
    ):
        """
        Initialize Redis Stream Consumer.

        Args:
            bus: Dispatch table to deliver events to
            definitions: Event type -> definition, used to parse payloads
            redis_url: Redis connection URL
            stream_name: Redis Stream name
            consumer_group: Consumer group name
            consumer_name: Unique consumer name
            dead_letter_stream: Stream receiving given-up messages (default ``<stream>:dead``)
            max_deliveries: Deliveries before a pending message is given up
            client: Pre-built client (skips connecting)
        """
        if max_deliveries < 1:
            raise ValueError(f"max_deliveries must be >= 1, got {max_deliveries}")
        self.bus = bus
        self.definitions = dict(definitions)
        self.redis_url = redis_url
        self.stream_name = stream_name
        self.consumer_group = consumer_group
        self.consumer_name = consumer_name
        self.dead_letter_stream = dead_letter_stream or f"{stream_name}:dead"
        self.max_deliveries = max_deliveries
        self._redis_client: Optional[aioredis.Redis] = client
        self._group_ready = False

    async def connect(self) -> None:
        """Establish Redis connection and create the consumer group."""
        if self._redis_client is None:
            self._redis_client = aioredis.from_url(
                self.redis_url, encoding="utf-8", decode_responses=True
            )
            await self._redis_client.ping()
            logger.info(f"Connected to Redis: {self.redis_url}")

        if not self._group_ready:
            try:
                await self._redis_client.xgroup_create(
                    name=self.stream_name,
                    groupname=self.consumer_group,
                    id="0",
                    mkstream=True,
                )
                logger.info(f"Created consumer group: {self.consumer_group}")
            except aioredis.ResponseError as e:
                if "BUSYGROUP" not in str(e):
                    raise
                logger.debug(f"Consumer group {self.consumer_group} already exists")
            self._group_ready = True

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self._redis_client:
            await self._redis_client.aclose()
            self._redis_client = None
            self._group_ready = False
            logger.info("Disconnected from Redis")

    async def consume_messages(
        self,
        batch_size: int = 10,
        block_ms: int = 1000,
        pending: bool = False,
        after_id: str = "0",
    ) -> List[Dict[str, Any]]:
        """
        Read messages from the stream.

        Args:
            batch_size: Maximum number of messages to read
            block_ms: Blocking time in milliseconds
            pending: Re-read this consumer's unacknowledged messages instead of new ones
            after_id: With ``pending``, only entries after this id are returned

        Returns:
            List of ``{"id": ..., "data": ...}`` dicts. Pending entries trimmed
            from the stream come back with empty ``data``.
        """
        await self.connect()

        messages = await self._redis_client.xreadgroup(
            groupname=self.consumer_group,
            consumername=self.consumer_name,
            streams={self.stream_name: after_id if pending else ">"},
            count=batch_size,
            block=None if pending else block_ms,
        )
        result = []
        for _stream, stream_messages in messages or []:
            for msg_id, msg_data in stream_messages:
                result.append({"id": msg_id, "data": msg_data or {}})
        return result

    async def delivery_counts(self, message_ids: List[str]) -> Dict[str, int]:
        """Times each pending message has been delivered to this consumer."""
        if not message_ids:
            return {}
        entries = await self._redis_client.xpending_range(
            self.stream_name,
            self.consumer_group,
            min=message_ids[0],
            max=message_ids[-1],
            count=len(message_ids),
            consumername=self.consumer_name,
        )
        return {entry["message_id"]: entry["times_delivered"] for entry in entries}

    async def acknowledge_message(self, message_id: str) -> None:
        """Acknowledge a processed message."""
        await self._redis_client.xack(self.stream_name, self.consumer_group, message_id)
        logger.debug(f"Acknowledged message: {message_id}")

    async def dead_letter(self, message: Dict[str, Any], reason: str) -> None:
        """Copy ``message`` to the dead-letter stream, then acknowledge it."""
        fields = {**message["data"], "original_id": message["id"], "dead_letter_reason": reason}
        await self._redis_client.xadd(self.dead_letter_stream, fields)
        await self.acknowledge_message(message["id"])
        logger.error(
            f"Dead-lettered message {message['id']} "
            f"({message['data'].get('event_type')}) to {self.dead_letter_stream}: {reason}"
        )

    async def process_message(self, message: Dict[str, Any]) -> bool:
        """
        Deliver one message to its handlers.

        Returns:
            True when the message was acknowledged
        """
        data = message["data"]
        event_type = data.get("event_type")
        definition = self.definitions.get(event_type)
        if definition is None:
            logger.warning(f"Unknown event type {event_type} in message {message['id']}; acknowledging")
            await self.acknowledge_message(message["id"])
            return True

        try:
            event = definition.parse(data)
        except (ValidationError, KeyError, ValueError) as e:
            await self.dead_letter(message, f"invalid {event_type} message: {e}")
            return True

        for handler in self.bus.handlers_for(event_type):
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    f"Handler {getattr(handler, '__qualname__', handler)} failed on "
                    f"{event_type} id={event.id}: {e}; leaving message {message['id']} pending",
                    exc_info=True,
                )
                return False

        await self.acknowledge_message(message["id"])
        return True

    async def process_pending(self, batch_size: int = 10) -> int:
        """
        Retry every pending message once, oldest first.

        The cursor moves past each batch, so messages that keep failing do
        not hide the ones behind them.

        Returns:
            Number of messages acknowledged
        """
        acknowledged = 0
        cursor = "0"
        while True:
            batch = await self.consume_messages(batch_size, pending=True, after_id=cursor)
            if not batch:
                return acknowledged
            cursor = batch[-1]["id"]

            counts = await self.delivery_counts([m["id"] for m in batch])
            for message in batch:
                deliveries = counts.get(message["id"], 0)
                if deliveries > self.max_deliveries:
                    await self.dead_letter(
                        message, f"gave up after {self.max_deliveries} deliveries"
                    )
                    acknowledged += 1
                elif await self.process_message(message):
                    acknowledged += 1

    async def run_once(self, batch_size: int = 10, block_ms: int = 1000) -> int:
        """
        Process pending messages first, then new ones.

        Returns:
            Number of messages acknowledged
        """
        acknowledged = await self.process_pending(batch_size)
        for message in await self.consume_messages(batch_size, block_ms):
            if await self.process_message(message):
                acknowledged += 1
        return acknowledged

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
