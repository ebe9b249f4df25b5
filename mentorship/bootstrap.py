"""
Composition root.

Builds the event catalog, the in-process dispatch table and the sagas, and
wires every handler into both: the bus gets the handler, the catalog gets
the consumer name.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from orchestration.bus import EventPublisher, InMemoryEventBus
from orchestration.catalog import EventCatalog
from orchestration.events import EventDefinition
from orchestration.retry import RetryPolicy

from mentorship.application.handlers import SessionCompletionHandler, SessionMeetingLifecycleHandler
from mentorship.application.interfaces import (
    ICalendarService,
    IClassMembershipService,
    IMeetingProvider,
    IMentorPayableService,
    IServiceHoldService,
    IServiceLedgerService,
    ISessionDomainService,
    IUserService,
)
from mentorship.application.sagas import SessionEndSaga, SessionProvisioningSaga
from mentorship.domain.enums import SessionKind
from mentorship.domain.events import all_event_definitions, register_session_events
from mentorship.infrastructure.adapters.meeting import HttpMeetingProvider
from mentorship.infrastructure.database.repositories import (
    SQLAlchemyCalendarService,
    SQLAlchemyClassMembershipService,
    SQLAlchemyMentorPayableService,
    SQLAlchemyServiceHoldService,
    SQLAlchemyServiceLedgerService,
    SQLAlchemySessionDomainService,
    SQLAlchemyUserService,
)
from mentorship.settings import AppSettings, get_app_settings


logger = logging.getLogger(__name__)


@dataclass
class Container:
    """Everything a worker process needs, built once at startup."""

    settings: AppSettings
    catalog: EventCatalog
    bus: InMemoryEventBus
    publisher: EventPublisher
    session_factory: async_sessionmaker[AsyncSession]
    session_services: dict[SessionKind, ISessionDomainService]
    provisioning_saga: SessionProvisioningSaga
    session_end_saga: SessionEndSaga
    lifecycle_handler: SessionMeetingLifecycleHandler
    completion_handler: SessionCompletionHandler

    @property
    def definitions(self) -> dict[str, EventDefinition]:
        """Event type -> definition, for transports that parse raw messages."""
        return {d.event_type: d for d in all_event_definitions()}


def build_container(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Optional[AppSettings] = None,
    meeting_provider: Optional[IMeetingProvider] = None,
    publisher: Optional[EventPublisher] = None,
    calendar_service: Optional[ICalendarService] = None,
    hold_service: Optional[IServiceHoldService] = None,
    ledger_service: Optional[IServiceLedgerService] = None,
    payable_service: Optional[IMentorPayableService] = None,
    user_service: Optional[IUserService] = None,
    class_membership: Optional[IClassMembershipService] = None,
    session_services: Optional[dict[SessionKind, ISessionDomainService]] = None,
) -> Container:
    """
    Build and wire the saga layer.

    Collaborators default to the SQLAlchemy adapters over ``session_factory``
    and the HTTP meeting provider. Events are published on the in-process
    bus unless another ``publisher`` (e.g. RedisStreamPublisher) is given.

    Args:
        session_factory: Factory used for saga transactions and the default adapters
        settings: Application settings (defaults to the environment)

    Returns:
        Wired container
    """
    settings = settings or get_app_settings()

    catalog = EventCatalog()
    register_session_events(catalog)

    bus = InMemoryEventBus(max_deliveries=settings.saga.bus_max_deliveries)
    publisher = publisher or bus

    retry_policy = RetryPolicy(
        max_attempts=settings.saga.retry_max_attempts,
        initial_delay_ms=settings.saga.retry_initial_delay_ms,
    )

    meeting_provider = meeting_provider or HttpMeetingProvider(settings.meeting)
    calendar_service = calendar_service or SQLAlchemyCalendarService(session_factory)
    hold_service = hold_service or SQLAlchemyServiceHoldService(session_factory)
    ledger_service = ledger_service or SQLAlchemyServiceLedgerService(session_factory)
    payable_service = payable_service or SQLAlchemyMentorPayableService(session_factory)
    user_service = user_service or SQLAlchemyUserService(session_factory)
    class_membership = class_membership or SQLAlchemyClassMembershipService(session_factory)
    session_services = session_services or {
        kind: SQLAlchemySessionDomainService(session_factory, kind) for kind in SessionKind
    }

    provisioning_saga = SessionProvisioningSaga(
        session_factory,
        publisher,
        meeting_provider=meeting_provider,
        calendar_service=calendar_service,
        session_services=session_services,
        hold_service=hold_service,
        user_service=user_service,
        class_membership=class_membership,
        retry_policy=retry_policy,
        feishu_host_user_id=settings.saga.feishu_default_host_user_id,
    )
    session_end_saga = SessionEndSaga(
        session_factory,
        publisher,
        calendar_service=calendar_service,
        hold_service=hold_service,
        ledger_service=ledger_service,
        payable_service=payable_service,
        session_services=session_services,
    )
    lifecycle_handler = SessionMeetingLifecycleHandler(
        publisher,
        meeting_provider=meeting_provider,
        session_services=session_services,
        retry_policy=retry_policy,
    )
    completion_handler = SessionCompletionHandler(
        session_factory,
        publisher,
        session_services=session_services,
    )

    for component in (provisioning_saga, lifecycle_handler, completion_handler, session_end_saga):
        for event_type, handler in component.handlers().items():
            bus.subscribe(event_type, handler)
            catalog.add_consumer(event_type, component.name)

    orphans = catalog.get_orphans()
    if orphans:
        logger.info(f"Event types without in-process consumers: {', '.join(orphans)}")

    return Container(
        settings=settings,
        catalog=catalog,
        bus=bus,
        publisher=publisher,
        session_factory=session_factory,
        session_services=session_services,
        provisioning_saga=provisioning_saga,
        session_end_saga=session_end_saga,
        lifecycle_handler=lifecycle_handler,
        completion_handler=completion_handler,
    )
