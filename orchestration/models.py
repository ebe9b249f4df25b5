"""Saga models - SagaExecutionContext, CompensationResult."""

from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession


@dataclass
class SagaExecutionContext:
    """Handle on one storage transaction opened by a saga method.

    Owned by the method that opened it and never shared across concurrent
    invocations. Collaborators receiving it must do their writes through
    ``session`` so they commit or roll back together.
    """

    saga_name: str
    session: AsyncSession
    started_at: datetime


@dataclass
class CompensationResult:
    """Outcome of a compensation chain. Never persisted."""

    compensation_errors: list[str] = field(default_factory=list)

    @property
    def require_manual_intervention(self) -> bool:
        return len(self.compensation_errors) > 0
