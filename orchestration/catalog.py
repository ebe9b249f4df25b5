"""Event catalog - governance registry of event types, producers and consumers.

The catalog documents declared intent (who produces and who consumes each
event type) so that drift between the declarations and the actual handler
wiring can be detected. It plays no part in delivery; dispatch is owned by
the event bus.
"""

import logging
from dataclasses import dataclass, field

from .events import EventDefinition, EventPayload

logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """Raised on conflicting or unknown catalog registrations."""


@dataclass
class EventCatalogEntry:
    """Catalog metadata for one event type.

    Created once by a producer declaration; afterwards only consumer names
    are appended. Entries are never removed.
    """

    event_type: str
    version: str
    schema: type[EventPayload]
    producers: set[str] = field(default_factory=set)
    consumers: set[str] = field(default_factory=set)
    description: str = ""
    deprecated: bool = False
    deprecation_message: str | None = None
    tags: set[str] = field(default_factory=set)


@dataclass
class CatalogValidationResult:
    """Outcome of ``EventCatalog.validate``."""

    valid: bool
    errors: list[str]
    warnings: list[str]


class EventCatalog:
    """Process-scoped registry of event types.

    One instance is created at startup and passed to whatever needs to
    register or query it.
    """

    def __init__(self) -> None:
        self._entries: dict[str, EventCatalogEntry] = {}

    def __contains__(self, event_type: object) -> bool:
        return event_type in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def register(self, declaration: EventDefinition) -> EventCatalogEntry:
        """Register a producer declaration for an event type.

        Registering the same event type again with the same version merges
        the declared producers. A different version is a conflict.

        Args:
            declaration: EventDefinition describing the event type

        Returns:
            The catalog entry for the event type

        Raises:
            CatalogError: If the event type is already registered with another version
        """
        entry = self._entries.get(declaration.event_type)
        if entry is not None:
            if entry.version != declaration.version:
                raise CatalogError(
                    f"Event type {declaration.event_type!r} already registered with "
                    f"version {entry.version}, got {declaration.version}"
                )
            entry.producers.update(declaration.producers)
            return entry

        entry = EventCatalogEntry(
            event_type=declaration.event_type,
            version=declaration.version,
            schema=declaration.payload_model,
            producers=set(declaration.producers),
            description=declaration.description,
            deprecated=declaration.deprecated,
            deprecation_message=declaration.deprecation_message,
            tags=set(declaration.tags),
        )
        self._entries[declaration.event_type] = entry
        logger.debug(f"Registered event type {declaration.event_type} v{declaration.version}")
        return entry

    def add_consumer(self, event_type: str, consumer_name: str) -> None:
        """Record that ``consumer_name`` handles ``event_type``.

        Raises:
            CatalogError: If the event type was never declared
        """
        entry = self._entries.get(event_type)
        if entry is None:
            raise CatalogError(
                f"Cannot add consumer {consumer_name!r}: event type {event_type!r} is not registered"
            )
        entry.consumers.add(consumer_name)

    def get(self, event_type: str) -> EventCatalogEntry | None:
        return self._entries.get(event_type)

    def all_event_types(self) -> list[str]:
        return sorted(self._entries)

    def get_orphans(self) -> list[str]:
        """Event types with zero registered consumers."""
        return sorted(name for name, entry in self._entries.items() if not entry.consumers)

    def events_for_producer(self, producer_name: str) -> list[str]:
        return sorted(
            name for name, entry in self._entries.items() if producer_name in entry.producers
        )

    def events_for_consumer(self, consumer_name: str) -> list[str]:
        return sorted(
            name for name, entry in self._entries.items() if consumer_name in entry.consumers
        )

    def events_by_tag(self, tag: str) -> list[str]:
        return sorted(name for name, entry in self._entries.items() if tag in entry.tags)

    def deprecated(self) -> list[str]:
        return sorted(name for name, entry in self._entries.items() if entry.deprecated)

    def validate(self) -> CatalogValidationResult:
        """Cross-check declarations for consistency.

        Orphans and producer-less types are warnings, not errors: a type can
        be declared ahead of its first consumer.
        """
        errors: list[str] = []
        warnings: list[str] = []

        for name, entry in sorted(self._entries.items()):
            if not entry.version:
                errors.append(f"Event {name!r} has no version")
            if not entry.producers:
                warnings.append(f"Event {name!r} has no producers declared")
            if not entry.consumers:
                warnings.append(f"Event {name!r} has no consumers registered")
            if entry.deprecated and not entry.deprecation_message:
                warnings.append(f"Deprecated event {name!r} is missing a deprecation message")
            if entry.deprecated and entry.consumers:
                warnings.append(
                    f"Deprecated event {name!r} still has consumers: "
                    f"{', '.join(sorted(entry.consumers))}"
                )

        return CatalogValidationResult(valid=not errors, errors=errors, warnings=warnings)

    def stats(self) -> dict[str, int]:
        entries = list(self._entries.values())
        return {
            "total_events": len(entries),
            "deprecated_count": sum(1 for e in entries if e.deprecated),
            "orphan_count": sum(1 for e in entries if not e.consumers),
            "total_producers": sum(len(e.producers) for e in entries),
            "total_consumers": sum(len(e.consumers) for e in entries),
        }
