"""
Saga worker (long-running process).

Reads session events from the Redis stream and dispatches them to the
sagas wired by ``build_container``. Result events are written back to the
same stream.

Usage:
    python -m mentorship.worker
"""
import asyncio
import os
import socket
from typing import Optional

from mentorship.bootstrap import Container, build_container
from mentorship.infrastructure.bus import RedisStreamConsumer, RedisStreamPublisher
from mentorship.infrastructure.database import (
    close_database,
    create_engine,
    get_session_factory,
    init_database,
)
from mentorship.infrastructure.logging import configure_logging, get_logger
from mentorship.settings import AppSettings, get_app_settings


logger = get_logger(__name__)


async def run_worker(
    container: Container,
    consumer: RedisStreamConsumer,
    poll_interval: float = 1.0,
    max_iterations: Optional[int] = None,
) -> int:
    """
    Poll the stream until cancelled (or ``max_iterations`` passes).

    Returns:
        Number of messages acknowledged
    """
    logger.info("Starting saga worker...")
    logger.info(f"   Stream: {consumer.stream_name}")
    logger.info(f"   Consumer Group: {consumer.consumer_group}")
    logger.info(f"   Consumer Name: {consumer.consumer_name}")
    logger.info(f"   Event types: {len(container.catalog)}")

    acknowledged = 0
    iteration = 0
    await consumer.connect()
    try:
        while max_iterations is None or iteration < max_iterations:
            iteration += 1
            try:
                processed = await consumer.run_once()
            except Exception as e:
                logger.error(f"Worker error: {e}", exc_info=True)
                processed = 0
            acknowledged += processed
            if not processed:
                await asyncio.sleep(poll_interval)
    finally:
        await consumer.disconnect()
        logger.info(f"Saga worker stopped ({acknowledged} message(s) acknowledged)")
    return acknowledged


async def main(settings: Optional[AppSettings] = None) -> None:
    settings = settings or get_app_settings()
    configure_logging()

    engine = create_engine(settings.database)
    await init_database(engine)

    publisher = RedisStreamPublisher(
        redis_url=settings.redis.url,
        stream_name=settings.redis.stream_name,
        max_len=settings.redis.max_len,
    )
    container = build_container(get_session_factory(engine), settings=settings, publisher=publisher)

    validation = container.catalog.validate()
    for warning in validation.warnings:
        logger.warning(f"Event catalog: {warning}")

    consumer = RedisStreamConsumer(
        bus=container.bus,
        definitions=container.definitions,
        redis_url=settings.redis.url,
        stream_name=settings.redis.stream_name,
        consumer_name=f"saga-worker-{socket.gethostname()}-{os.getpid()}",
        dead_letter_stream=settings.redis.dead_letter_stream,
        max_deliveries=settings.redis.max_deliveries,
    )

    try:
        await run_worker(container, consumer)
    finally:
        await publisher.disconnect()
        await close_database(engine)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Stopping saga worker...")
