"""SQLAlchemy implementations of the collaborator interfaces."""

from .base import SQLAlchemyRepository
from .sqlalchemy_billing_service import SQLAlchemyMentorPayableService
from .sqlalchemy_calendar_service import SQLAlchemyCalendarService
from .sqlalchemy_contract_services import SQLAlchemyServiceHoldService, SQLAlchemyServiceLedgerService
from .sqlalchemy_identity_services import SQLAlchemyClassMembershipService, SQLAlchemyUserService
from .sqlalchemy_session_service import SQLAlchemySessionDomainService

__all__ = [
    "SQLAlchemyCalendarService",
    "SQLAlchemyClassMembershipService",
    "SQLAlchemyMentorPayableService",
    "SQLAlchemyRepository",
    "SQLAlchemyServiceHoldService",
    "SQLAlchemyServiceLedgerService",
    "SQLAlchemySessionDomainService",
    "SQLAlchemyUserService",
]
