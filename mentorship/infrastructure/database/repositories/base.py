"""Shared plumbing for the SQLAlchemy adapters."""
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from orchestration.models import SagaExecutionContext


class SQLAlchemyRepository:
    """
    Base for adapters that may join a saga transaction.

    Writes go through the caller's ``tx`` when one is given (the caller
    commits); otherwise each call runs in its own short transaction.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """
        Initialize repository with a session factory.

        Args:
            session_factory: Factory for standalone sessions
        """
        self.session_factory = session_factory

    @asynccontextmanager
    async def _scope(self, tx: Optional[SagaExecutionContext] = None) -> AsyncIterator[AsyncSession]:
        if tx is not None:
            yield tx.session
            return
        async with self.session_factory() as session:
            async with session.begin():
                yield session
