"""Fan-in of call lifecycle events and the exactly-once synthesis trigger.

Events arrive unordered and possibly duplicated, and a fast call may deliver
only its terminal event. Each event is applied to the stored call record as a
compare-and-set against the open statuses, so a terminal record is never
written again. After any terminal event the session is checked for
completion, and the ``CALLING -> SUMMARIZING`` transition is itself a
compare-and-set: only the evaluator that wins it runs report synthesis.
"""

import logging
from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from autoquote.domain.calls import (
    OPEN_CALL_STATUSES,
    CallAnalysis,
    CallRecord,
    CallStatus,
)
from autoquote.domain.events import CallEvent, VapiCall
from autoquote.domain.sessions import SessionRecord, SessionStatus
from autoquote.services.calls import CallRepository
from autoquote.services.reports import ReportService
from autoquote.services.sessions import SessionRepository

logger = logging.getLogger(__name__)


class EventResult(StrEnum):
    """How an inbound event was absorbed."""

    APPLIED = "APPLIED"
    DUPLICATE = "DUPLICATE"
    IGNORED = "IGNORED"
    UNKNOWN_CALL = "UNKNOWN_CALL"


@dataclass
class CompletionAggregator:
    """Applies call events and advances sessions once every call is terminal."""

    session_repository: SessionRepository
    call_repository: CallRepository
    report_service: ReportService

    async def handle_event(self, event: CallEvent) -> EventResult:
        """Correlate a webhook event to (session, shop) and apply it."""
        correlation = event.resolve_correlation()
        if correlation is None:
            logger.warning("Dropping %s event without correlation metadata", event.type)
            return EventResult.IGNORED
        if event.kind is None:
            logger.info(
                "Ignoring %s event for session %s, shop %s",
                event.type,
                correlation.session_id,
                correlation.shop_name or correlation.shop_id,
            )
            return EventResult.IGNORED
        try:
            session_id = UUID(str(correlation.session_id))
        except ValueError:
            logger.warning(
                "Dropping %s event with malformed session id %r",
                event.type,
                correlation.session_id,
            )
            return EventResult.IGNORED
        return await self.on_call_event(
            session_id,
            str(correlation.shop_id),
            event.kind,
            event.call or VapiCall(),
        )

    async def on_call_event(
        self, session_id: UUID, shop_id: str, kind: str, call: VapiCall
    ) -> EventResult:
        """Apply one started/ended/failed event to the call record."""
        current = self.call_repository.get_call(session_id, shop_id)
        if current is None:
            logger.warning(
                "Dropping %s event for unknown call %s/%s", kind, session_id, shop_id
            )
            return EventResult.UNKNOWN_CALL

        if kind == "started":
            return self._apply_started(current, call)
        if kind == "ended":
            result = self._apply_terminal(
                current, CallStatus.COMPLETED, _completed_changes(current, call)
            )
        elif kind == "failed":
            result = self._apply_terminal(
                current,
                CallStatus.FAILED,
                {
                    "ended_reason": call.ended_reason or "Unknown failure",
                    **_external_id_change(current, call),
                },
            )
        else:
            logger.info("Ignoring unsupported event kind %s", kind)
            return EventResult.IGNORED

        # Re-evaluate on duplicates too: a previous delivery may have crashed
        # between writing the call and advancing the session.
        await self.evaluate_completion(session_id)
        return result

    async def evaluate_completion(self, session_id: UUID) -> bool:
        """Advance the session if every call is terminal; true if this call won."""
        session = self.session_repository.get_session(session_id)
        if session is None:
            logger.warning("Completion check for unknown session %s", session_id)
            return False
        if session.status != SessionStatus.CALLING:
            return False

        calls = self.call_repository.list_calls(session_id)
        remaining = _open_shop_count(session, calls)
        if remaining:
            logger.info(
                "Session %s: %d calls still in progress", session_id, remaining
            )
            return False

        logger.info("Session %s: all calls complete, generating report", session_id)
        return await self.summarize(session_id)

    async def summarize(self, session_id: UUID, note: str | None = None) -> bool:
        """Move CALLING -> SUMMARIZING and synthesize the report exactly once."""
        session = self.session_repository.transition_status(
            session_id, {SessionStatus.CALLING}, SessionStatus.SUMMARIZING
        )
        if session is None:
            logger.info(
                "Session %s: already past CALLING, skipping synthesis", session_id
            )
            return False

        calls = self.call_repository.list_calls(session_id)
        try:
            report = await self.report_service.synthesize(session, calls, note)
        except Exception as exc:
            logger.exception("Session %s: report generation failed", session_id)
            self.session_repository.transition_status(
                session_id,
                {SessionStatus.SUMMARIZING},
                SessionStatus.FAILED,
                {"failure_reason": str(exc)},
            )
            return True

        self.session_repository.transition_status(
            session_id,
            {SessionStatus.SUMMARIZING},
            SessionStatus.DONE,
            {"report": report},
        )
        logger.info("Session %s: report complete", session_id)
        return True

    def _apply_started(self, current: CallRecord, call: VapiCall) -> EventResult:
        if current.is_terminal:
            logger.info(
                "Ignoring late start for terminal call %s/%s",
                current.session_id,
                current.shop_id,
            )
            return EventResult.DUPLICATE
        updated = self.call_repository.update_call(
            current.session_id,
            current.shop_id,
            OPEN_CALL_STATUSES,
            {"status": CallStatus.IN_PROGRESS, **_external_id_change(current, call)},
        )
        return EventResult.APPLIED if updated else EventResult.DUPLICATE

    def _apply_terminal(
        self,
        current: CallRecord,
        status: CallStatus,
        changes: dict[str, object],
    ) -> EventResult:
        if current.is_terminal:
            logger.info(
                "Absorbing repeated terminal event for call %s/%s (%s)",
                current.session_id,
                current.shop_id,
                current.status,
            )
            return EventResult.DUPLICATE
        updated = self.call_repository.update_call(
            current.session_id,
            current.shop_id,
            OPEN_CALL_STATUSES,
            {"status": status, **changes},
        )
        if updated is None:
            return EventResult.DUPLICATE
        logger.info(
            "Call %s/%s is %s", current.session_id, current.shop_id, status
        )
        return EventResult.APPLIED


def _external_id_change(current: CallRecord, call: VapiCall) -> dict[str, object]:
    if current.external_call_id or not call.id:
        return {}
    return {"external_call_id": call.id}


def _completed_changes(current: CallRecord, call: VapiCall) -> dict[str, object]:
    artifact = call.artifact
    analysis = call.analysis
    structured: CallAnalysis | None = None
    if analysis and analysis.structured_data:
        try:
            structured = CallAnalysis.model_validate(analysis.structured_data)
        except PydanticValidationError:
            logger.warning(
                "Discarding malformed structured data for call %s/%s",
                current.session_id,
                current.shop_id,
            )
    return {
        "transcript": artifact.transcript if artifact else None,
        "recording_url": artifact.recording_url if artifact else None,
        "structured_data": structured,
        "summary": analysis.summary if analysis else None,
        "cost": call.cost,
        "duration_seconds": call.duration_seconds(),
        "ended_reason": call.ended_reason,
        **_external_id_change(current, call),
    }


def _open_shop_count(session: SessionRecord, calls: list[CallRecord]) -> int:
    """Count shops whose call is missing or not yet terminal."""
    terminal = {call.shop_id for call in calls if call.is_terminal}
    return sum(1 for shop in session.shops if shop.id not in terminal)
