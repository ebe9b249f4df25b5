"""Event bus - EventBusProtocol and InMemoryEventBus."""

import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from .events import IntegrationEvent

EventHandler = Callable[[IntegrationEvent], Awaitable[None]]

logger = logging.getLogger(__name__)


class EventPublisher(Protocol):
    """Outbound side of an event transport."""

    async def publish(self, event: IntegrationEvent, producer: str) -> None:
        """Publish an event.

        Args:
            event: Event to publish
            producer: Name of the component emitting the event
        """
        ...


class EventBusProtocol(EventPublisher, Protocol):
    """Protocol for in-process event transports with subscription."""

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Subscribe a handler to an event type.

        Args:
            event_type: Event type to subscribe to
            handler: Async handler function
        """
        ...


class InMemoryEventBus(EventBusProtocol):
    """In-process event bus.

    Dispatch is an explicit table of event type -> ordered handler list.
    A handler that raises is redelivered the same event up to
    ``max_deliveries`` times in total; the final failure is logged and the
    remaining handlers still run.
    """

    def __init__(self, max_deliveries: int = 1) -> None:
        """Initialize in-memory event bus.

        Args:
            max_deliveries: Delivery attempts per handler (>= 1)
        """
        if max_deliveries < 1:
            raise ValueError("max_deliveries must be >= 1")
        self._handlers: dict[str, list[EventHandler]] = {}
        self._max_deliveries = max_deliveries

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Subscribe a handler to an event type.

        Args:
            event_type: Event type to subscribe to
            handler: Async handler function
        """
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        self._handlers[event_type].append(handler)

    def handlers_for(self, event_type: str) -> list[EventHandler]:
        return list(self._handlers.get(event_type, []))

    async def publish(self, event: IntegrationEvent, producer: str) -> None:
        """Publish an event to all subscribed handlers, in subscription order.

        Args:
            event: Event to publish
            producer: Name of the component emitting the event
        """
        handlers = self._handlers.get(event.event_type, [])
        if not handlers:
            logger.debug(f"No handlers for {event.event_type} (producer={producer})")
            return

        logger.info(
            f"Publishing {event.event_type} id={event.id} producer={producer} "
            f"handlers={len(handlers)}"
        )

        for handler in handlers:
            await self._deliver(event, handler)

    async def _deliver(self, event: IntegrationEvent, handler: EventHandler) -> None:
        name = getattr(handler, "__qualname__", repr(handler))
        for delivery in range(1, self._max_deliveries + 1):
            try:
                await handler(event)
                return
            except Exception as exc:
                if delivery < self._max_deliveries:
                    logger.warning(
                        f"Handler {name} failed on {event.event_type} id={event.id} "
                        f"(delivery {delivery}/{self._max_deliveries}): {exc}; redelivering"
                    )
                    continue
                logger.error(
                    f"Handler {name} failed on {event.event_type} id={event.id} "
                    f"after {self._max_deliveries} delivery attempt(s): {exc}",
                    exc_info=True,
                )
