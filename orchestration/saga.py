"""Saga base - transaction scoping and event emission shared by all sagas."""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .bus import EventPublisher
from .events import IntegrationEvent
from .models import SagaExecutionContext

T = TypeVar("T")


class SagaBase:
    """Common capability for sagas.

    Sagas get a session factory rather than repositories, so the base is not
    tied to any one domain. Each ``transaction()`` block maps to exactly one
    storage transaction: commit on normal exit, rollback on exception.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        event_publisher: EventPublisher,
    ) -> None:
        self._session_factory = session_factory
        self._event_publisher = event_publisher
        self.logger = logging.getLogger(f"{type(self).__module__}.{type(self).__name__}")

    @property
    def name(self) -> str:
        return type(self).__name__

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SagaExecutionContext]:
        """Open a transaction scoped to the calling saga step."""
        async with self._session_factory() as session:
            async with session.begin():
                yield SagaExecutionContext(
                    saga_name=self.name,
                    session=session,
                    started_at=datetime.now(timezone.utc),
                )

    async def with_transaction(
        self, work: Callable[[SagaExecutionContext], Awaitable[T]]
    ) -> T:
        """Run ``work`` inside a single transaction and return its result."""
        async with self.transaction() as tx:
            return await work(tx)

    async def publish(self, event: IntegrationEvent) -> None:
        """Emit an event with this saga as the producer."""
        await self._event_publisher.publish(event, self.name)

    @staticmethod
    def stringify_error(error: BaseException) -> str:
        message = str(error)
        return message if message else type(error).__name__
