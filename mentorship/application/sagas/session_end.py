"""
Session end saga.

Settles a completed session across three domains, in order:

    Step 1: calendar  - mark every slot of the session's meeting COMPLETED
    Step 2: contract  - release the hold and record consumption (one transaction)
    Step 3: financial - create the mentor's per-session payable

Every step is idempotent on its own. On failure the saga classifies what
was left half-done, then re-raises so the transport redelivers the event.
"""
import math
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import asdict, dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from orchestration.bus import EventPublisher
from orchestration.events import IntegrationEvent
from orchestration.models import CompensationResult
from orchestration.saga import SagaBase

from mentorship.application.interfaces import (
    ICalendarService,
    IMentorPayableService,
    IServiceHoldService,
    IServiceLedgerService,
    ISessionDomainService,
)
from mentorship.domain.entities import ConsumptionRecord
from mentorship.domain.enums import HoldReleaseReason, SessionKind, SlotStatus
from mentorship.domain.events import SERVICE_SESSION_COMPLETED, ServiceSessionCompletedPayload
from mentorship.domain.exceptions import DomainValidationError, MentorPriceNotFoundError

DEFAULT_DURATION_MINUTES = 60


def consumption_quantity(
    actual_duration_minutes: Optional[int], duration_minutes: Optional[int]
) -> int:
    """
    Units of entitlement consumed by a session, one unit per started hour.

    No actual duration falls back to the scheduled one; an actual duration
    of exactly 0 is a no-show and consumes nothing.
    """
    if actual_duration_minutes is None:
        return math.ceil((duration_minutes or DEFAULT_DURATION_MINUTES) / 60)
    if actual_duration_minutes == 0:
        return 0
    return math.ceil(actual_duration_minutes / 60)


@dataclass
class SessionEndSteps:
    """Which settlement steps have committed, used to classify failures."""
    calendar_updated: bool = False
    hold_released: bool = False
    consumption_recorded: bool = False
    billing_created: bool = False


class SessionEndSaga(SagaBase):
    """Reacts to ``services.session.completed``."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        event_publisher: EventPublisher,
        calendar_service: ICalendarService,
        hold_service: IServiceHoldService,
        ledger_service: IServiceLedgerService,
        payable_service: IMentorPayableService,
        session_services: Mapping[SessionKind, ISessionDomainService],
    ) -> None:
        super().__init__(session_factory, event_publisher)
        self._calendar = calendar_service
        self._hold_service = hold_service
        self._ledger_service = ledger_service
        self._payable_service = payable_service
        self._session_services = dict(session_services)

    def handlers(self) -> dict[str, Callable[[IntegrationEvent], Awaitable[None]]]:
        return {SERVICE_SESSION_COMPLETED.event_type: self.handle_service_session_completed}

    async def handle_service_session_completed(self, event: IntegrationEvent) -> None:
        payload: ServiceSessionCompletedPayload = event.payload
        session_id = payload.session_id

        self.logger.info(
            f"[{self.name}] Processing session end: session_id={session_id}, "
            f"student={payload.student_id}, mentor={payload.mentor_id}"
        )

        steps = SessionEndSteps()

        try:
            self._validate(payload)

            self.logger.debug(f"[{self.name}] Step 1: updating calendar slots for session {session_id}")
            await self._update_calendar(payload, steps)

            self.logger.debug(f"[{self.name}] Step 2: contract settlement for session {session_id}")
            await self._settle_contract(payload, steps)

            if payload.mentor_id and payload.allow_billing:
                self.logger.debug(f"[{self.name}] Step 3: billing for session {session_id}")
                await self._settle_billing(payload, steps)
            else:
                self.logger.info(
                    f"[{self.name}] Skipping billing: mentor_id={payload.mentor_id}, "
                    f"allow_billing={payload.allow_billing}"
                )

            self.logger.info(f"[{self.name}] Session end processing completed for {session_id}")

        except Exception as exc:
            self.logger.error(
                f"[{self.name}] Failed to process session end for {session_id}: "
                f"{self.stringify_error(exc)}",
                exc_info=True,
            )
            compensation = self.compensate_session_end(session_id, steps)
            if compensation.require_manual_intervention:
                self.logger.error(
                    f"[{self.name}] Manual intervention required for session {session_id}. "
                    f"Errors: {' | '.join(compensation.compensation_errors)}"
                )
            raise

    def _validate(self, payload: ServiceSessionCompletedPayload) -> None:
        if not (
            payload.session_id
            and payload.student_id
            and payload.service_type_code
            and payload.session_type_code
        ):
            raise DomainValidationError(
                f"Missing required fields: session_id={payload.session_id}, "
                f"student_id={payload.student_id}, service_type_code={payload.service_type_code}, "
                f"session_type_code={payload.session_type_code}"
            )

    # =========================================================================
    # STEP 1: CALENDAR
    # =========================================================================

    async def _update_calendar(
        self, payload: ServiceSessionCompletedPayload, steps: SessionEndSteps
    ) -> None:
        meeting_id = await self._resolve_meeting_id(payload.session_id, payload.session_type_code)
        if not meeting_id:
            self.logger.warning(
                f"[{self.name}] No meeting_id found for session {payload.session_id}, "
                f"skipping calendar update"
            )
            return

        updated = await self._calendar.update_status_by_meeting_id(meeting_id, SlotStatus.COMPLETED)
        self.logger.info(
            f"[{self.name}] Updated {updated} calendar slot(s) to completed for meeting {meeting_id}"
        )
        steps.calendar_updated = True

    async def _resolve_meeting_id(self, session_id: str, session_type_code: str) -> Optional[str]:
        try:
            service = self._session_services.get(SessionKind(session_type_code))
        except ValueError:
            service = None

        if service is not None:
            return await service.get_meeting_id(session_id)

        for candidate in self._session_services.values():
            meeting_id = await candidate.get_meeting_id(session_id)
            if meeting_id:
                return meeting_id
        return None

    # =========================================================================
    # STEP 2: CONTRACT
    # =========================================================================

    async def _settle_contract(
        self, payload: ServiceSessionCompletedPayload, steps: SessionEndSteps
    ) -> None:
        session_id = payload.session_id
        released: list[str] = []

        async with self.transaction() as tx:
            existing = await self._ledger_service.find_consumption(
                payload.student_id, payload.service_type_code, session_id, tx
            )
            if existing is not None:
                self.logger.warning(
                    f"[{self.name}] Consumption already recorded for session {session_id}, "
                    f"skipping contract settlement"
                )
                steps.consumption_recorded = True
                return

            holds = await self._hold_service.find_active_holds(
                payload.student_id, payload.service_type_code, session_id, tx, for_update=True
            )
            if not holds:
                self.logger.warning(
                    f"[{self.name}] No active hold found for session {session_id}, "
                    f"recording consumption anyway"
                )
            elif len(holds) > 1:
                self.logger.warning(
                    f"[{self.name}] Multiple active holds ({len(holds)}) found for session {session_id}"
                )

            for hold in holds:
                await self._hold_service.release_hold(hold.id, HoldReleaseReason.COMPLETED, tx)
                released.append(hold.id)

            quantity = consumption_quantity(
                payload.actual_duration_minutes, payload.duration_minutes
            )
            await self._ledger_service.record_consumption(
                ConsumptionRecord(
                    student_id=payload.student_id,
                    service_type=payload.service_type_code,
                    quantity=quantity,
                    related_booking_id=session_id,
                    booking_source=payload.session_type_code,
                    created_by=payload.student_id,
                ),
                tx,
            )

        steps.hold_released = bool(released)
        steps.consumption_recorded = True
        if released:
            self.logger.info(f"[{self.name}] Released hold(s) {', '.join(released)} for session {session_id}")
        self.logger.info(f"[{self.name}] Recorded consumption of {quantity} unit(s) for session {session_id}")

    # =========================================================================
    # STEP 3: FINANCIAL
    # =========================================================================

    async def _settle_billing(
        self, payload: ServiceSessionCompletedPayload, steps: SessionEndSteps
    ) -> None:
        reference_id = payload.reference_id
        if reference_id and await self._payable_service.is_duplicate(reference_id):
            self.logger.warning(
                f"[{self.name}] Billing already exists for reference_id {reference_id}, skipping"
            )
            steps.billing_created = True
            return

        price = await self._payable_service.get_mentor_price(
            payload.mentor_id, payload.session_type_code
        )
        if price is None:
            raise MentorPriceNotFoundError(payload.mentor_id, payload.session_type_code)

        self.logger.info(f"[{self.name}] Found mentor price: {price.price} {price.currency}")

        await self._payable_service.create_per_session_billing(payload.model_dump())
        steps.billing_created = True
        self.logger.info(f"[{self.name}] Created billing for session {payload.session_id}")

    # =========================================================================
    # COMPENSATION
    # =========================================================================

    def compensate_session_end(
        self, session_id: Optional[str], steps: SessionEndSteps
    ) -> CompensationResult:
        """
        Classify a partial settlement. Nothing is rolled back: a meeting that
        ended stays ended and a released hold stays released.
        """
        self.logger.warning(
            f"[{self.name}] Starting compensation for session {session_id}. "
            f"Completed steps: {asdict(steps)}"
        )

        result = CompensationResult()
        if steps.consumption_recorded and not steps.billing_created:
            result.compensation_errors.append(
                f"Consumption recorded but billing failed for session {session_id}. "
                f"Manual billing may be required."
            )
        if steps.hold_released and not steps.consumption_recorded:
            result.compensation_errors.append(
                f"Hold released but consumption not recorded for session {session_id}. "
                f"Data inconsistency detected."
            )
        return result
