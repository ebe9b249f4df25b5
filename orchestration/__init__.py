"""Orchestration layer - events, transport, retry, catalog and saga base."""

from .bus import EventBusProtocol, EventHandler, EventPublisher, InMemoryEventBus
from .catalog import CatalogError, CatalogValidationResult, EventCatalog, EventCatalogEntry
from .events import EventDefinition, EventPayload, IntegrationEvent
from .models import CompensationResult, SagaExecutionContext
from .retry import RetryPolicy, retry_with_backoff
from .saga import SagaBase

__all__ = [
    "CatalogError",
    "CatalogValidationResult",
    "CompensationResult",
    "EventBusProtocol",
    "EventCatalog",
    "EventCatalogEntry",
    "EventDefinition",
    "EventHandler",
    "EventPublisher",
    "EventPayload",
    "InMemoryEventBus",
    "IntegrationEvent",
    "RetryPolicy",
    "SagaBase",
    "SagaExecutionContext",
    "retry_with_backoff",
]
