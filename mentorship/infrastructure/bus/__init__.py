"""Redis Streams transport."""

from .redis_stream_consumer import RedisStreamConsumer
from .redis_stream_publisher import RedisStreamPublisher

__all__ = ["RedisStreamConsumer", "RedisStreamPublisher"]
