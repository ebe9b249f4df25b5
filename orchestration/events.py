"""Integration events - IntegrationEvent, EventPayload, EventDefinition."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny


class EventPayload(BaseModel):
    """Base class for integration event payloads.

    Payloads are closed, versioned shapes. Unknown extra fields are ignored
    so that older consumers keep working when producers add fields.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)


class IntegrationEvent(BaseModel):
    """Immutable message published after a domain operation commits.

    ``id`` is the identity, ``event_type`` is the dispatch key. Delivery is
    at-least-once, so every consumer must tolerate seeing the same ``id``
    more than once.
    """

    model_config = ConfigDict(frozen=True)

    event_type: str
    version: str = "1.0"
    id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    payload: SerializeAsAny[EventPayload]

    def to_message(self) -> dict[str, str]:
        """Flatten into string fields for stream transports."""
        return {
            "event_type": self.event_type,
            "version": self.version,
            "id": str(self.id),
            "timestamp": self.timestamp.isoformat(),
            "payload": self.payload.model_dump_json(),
        }


@dataclass(frozen=True)
class EventDefinition:
    """Producer declaration for one event type.

    A plain record per event type; the catalog and the event factories are
    both driven by these instead of class metadata.
    """

    event_type: str
    payload_model: type[EventPayload]
    version: str = "1.0"
    description: str = ""
    producers: tuple[str, ...] = ()
    deprecated: bool = False
    deprecation_message: str | None = None
    tags: tuple[str, ...] = field(default_factory=tuple)

    def create(self, payload: EventPayload | dict[str, Any]) -> IntegrationEvent:
        """Build an event of this type, validating the payload shape.

        Args:
            payload: Payload model instance or raw mapping

        Returns:
            New IntegrationEvent with a fresh id and timestamp
        """
        if isinstance(payload, dict):
            payload = self.payload_model.model_validate(payload)
        elif not isinstance(payload, self.payload_model):
            raise TypeError(
                f"{self.event_type} expects {self.payload_model.__name__}, "
                f"got {type(payload).__name__}"
            )
        return IntegrationEvent(event_type=self.event_type, version=self.version, payload=payload)

    def parse(self, message: dict[str, Any]) -> IntegrationEvent:
        """Rebuild an event from its ``to_message`` form."""
        raw_payload = message["payload"]
        if isinstance(raw_payload, str):
            payload = self.payload_model.model_validate_json(raw_payload)
        else:
            payload = self.payload_model.model_validate(raw_payload)
        return IntegrationEvent(
            event_type=message["event_type"],
            version=message.get("version", self.version),
            id=UUID(str(message["id"])),
            timestamp=datetime.fromisoformat(str(message["timestamp"])),
            payload=payload,
        )
