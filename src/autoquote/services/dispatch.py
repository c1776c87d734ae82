"""Fan-out of outbound quote calls, one per shop."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Protocol

from autoquote.domain.calls import OPEN_CALL_STATUSES, CallRecord, CallStatus
from autoquote.domain.sessions import SessionRecord, Shop
from autoquote.errors import CallAlreadyExistsError
from autoquote.services.assistant import AssistantOptions, build_assistant_config
from autoquote.services.audit import AuditService
from autoquote.services.calls import CallRepository
from autoquote.services.safety import DestinationDecision, DestinationGate

logger = logging.getLogger(__name__)


class VoiceAgentClient(Protocol):
    """Interface for the voice-agent platform."""

    async def create_call(
        self, destination: str, customer_name: str, assistant: dict[str, object]
    ) -> dict[str, object]:
        """Start an outbound call and return the platform's call object."""


class DispatchKind(StrEnum):
    """Per-shop result of a dispatch attempt."""

    DISPATCHED = "DISPATCHED"
    BLOCKED = "BLOCKED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


@dataclass(frozen=True)
class DispatchOutcome:
    """What happened when dispatching to a single shop."""

    shop_id: str
    kind: DispatchKind
    destination: str | None = None
    external_call_id: str | None = None
    error: str | None = None
    # False when no call record could be stored for the shop.
    recorded: bool = True


@dataclass
class CallDispatcher:
    """Creates call records and starts one call per shop, concurrently."""

    gate: DestinationGate
    call_repository: CallRepository
    voice_client: VoiceAgentClient
    audit_service: AuditService
    options: AssistantOptions
    callback_url: str

    async def dispatch_all(self, session: SessionRecord) -> list[DispatchOutcome]:
        """Dispatch to every shop; one shop's failure never affects the others."""
        logger.info(
            "Session %s: initiating %d calls", session.id, len(session.shops)
        )
        outcomes = await asyncio.gather(
            *(self._dispatch_isolated(session, shop) for shop in session.shops)
        )
        dispatched = sum(1 for o in outcomes if o.kind == DispatchKind.DISPATCHED)
        logger.info(
            "Session %s: %d/%d calls initiated",
            session.id,
            dispatched,
            len(outcomes),
        )
        return list(outcomes)

    async def _dispatch_isolated(
        self, session: SessionRecord, shop: Shop
    ) -> DispatchOutcome:
        try:
            return await self._dispatch(session, shop)
        except Exception as exc:
            logger.exception(
                "Session %s: dispatch to %s failed unexpectedly",
                session.id,
                shop.name,
                extra={"shop_id": shop.id},
            )
            recorded = self._record_failure(session, shop, f"dispatch_error: {exc}")
            return DispatchOutcome(
                shop.id, DispatchKind.FAILED, error=str(exc), recorded=recorded
            )

    async def _dispatch(self, session: SessionRecord, shop: Shop) -> DispatchOutcome:
        decision = self.gate.resolve(shop.phone)
        if decision.blocked:
            return self._record_blocked(session, shop, decision)

        destination = decision.require()
        try:
            self.call_repository.create_call(
                _new_call(session, shop, CallStatus.PENDING, to_number=destination)
            )
        except CallAlreadyExistsError:
            logger.warning(
                "Session %s: call for shop %s already exists, not redialing",
                session.id,
                shop.id,
            )
            return DispatchOutcome(shop.id, DispatchKind.SKIPPED, destination)
        if decision.substituted:
            self.audit_service.record_destination_decision(
                session.id, shop.id, decision
            )

        assistant = build_assistant_config(
            session, shop, self.options, self.callback_url
        )
        try:
            response = await self.voice_client.create_call(
                destination=destination,
                customer_name=shop.name,
                assistant=assistant,
            )
        except Exception as exc:
            logger.exception(
                "Session %s: failed to call %s",
                session.id,
                shop.name,
                extra={"shop_id": shop.id},
            )
            self.call_repository.update_call(
                session.id,
                shop.id,
                OPEN_CALL_STATUSES,
                {
                    "status": CallStatus.FAILED,
                    "ended_reason": f"dispatch_failed: {exc}",
                },
            )
            return DispatchOutcome(
                shop.id, DispatchKind.FAILED, destination, error=str(exc)
            )

        call_id = response.get("id")
        external_id = str(call_id) if call_id else None
        self._mark_in_progress(session, shop, external_id)
        logger.info(
            "Session %s: call initiated to %s (%s)", session.id, shop.name, destination
        )
        return DispatchOutcome(
            shop.id, DispatchKind.DISPATCHED, destination, external_id
        )

    def _mark_in_progress(
        self, session: SessionRecord, shop: Shop, external_id: str | None
    ) -> None:
        updated = self.call_repository.update_call(
            session.id,
            shop.id,
            {CallStatus.PENDING},
            {"status": CallStatus.IN_PROGRESS, "external_call_id": external_id},
        )
        if updated is not None or external_id is None:
            return
        # A webhook got there first; only fill in a missing id on an open call.
        current = self.call_repository.get_call(session.id, shop.id)
        if current and not current.is_terminal and not current.external_call_id:
            self.call_repository.update_call(
                session.id,
                shop.id,
                OPEN_CALL_STATUSES,
                {"external_call_id": external_id},
            )

    def _record_blocked(
        self, session: SessionRecord, shop: Shop, decision: DestinationDecision
    ) -> DispatchOutcome:
        reason = f"destination_blocked: {decision.reason}"
        try:
            self.call_repository.create_call(
                _new_call(session, shop, CallStatus.FAILED, ended_reason=reason)
            )
        except CallAlreadyExistsError:
            logger.warning(
                "Session %s: call for shop %s already exists", session.id, shop.id
            )
            return DispatchOutcome(shop.id, DispatchKind.SKIPPED, error=reason)
        self.audit_service.record_destination_decision(session.id, shop.id, decision)
        return DispatchOutcome(shop.id, DispatchKind.BLOCKED, error=reason)

    def _record_failure(self, session: SessionRecord, shop: Shop, reason: str) -> bool:
        """Persist a FAILED record; false if the shop is left without one."""
        try:
            updated = self.call_repository.update_call(
                session.id,
                shop.id,
                OPEN_CALL_STATUSES,
                {"status": CallStatus.FAILED, "ended_reason": reason},
            )
            if updated is None and not self.call_repository.get_call(
                session.id, shop.id
            ):
                self.call_repository.create_call(
                    _new_call(session, shop, CallStatus.FAILED, ended_reason=reason)
                )
        except CallAlreadyExistsError:
            return True
        except Exception:
            logger.exception(
                "Could not record dispatch failure",
                extra={"session_id": str(session.id), "shop_id": shop.id},
            )
            return False
        return True


def _new_call(
    session: SessionRecord,
    shop: Shop,
    status: CallStatus,
    to_number: str | None = None,
    ended_reason: str | None = None,
) -> CallRecord:
    now = datetime.now(tz=UTC)
    return CallRecord(
        session_id=session.id,
        shop_id=shop.id,
        shop_name=shop.name,
        status=status,
        to_number=to_number,
        ended_reason=ended_reason,
        created_at=now,
        updated_at=now,
    )
