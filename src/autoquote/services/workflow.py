"""Session workflow: analysis, call fan-out and hand-off to the aggregator."""

import logging
from dataclasses import dataclass
from uuid import UUID

from autoquote.domain.sessions import SessionRecord, SessionStatus
from autoquote.services.aggregator import CompletionAggregator
from autoquote.services.analysis import DamageAnalysisService
from autoquote.services.dispatch import CallDispatcher
from autoquote.services.sessions import SessionRepository

logger = logging.getLogger(__name__)

CALLS_DISABLED_NOTE = "Outbound calls are disabled; no shops were contacted."


@dataclass
class WorkflowService:
    """Drives a session from CREATED to CALLING.

    The rest of the journey (SUMMARIZING, DONE) is owned by the
    :class:`CompletionAggregator`, which runs as call events arrive.
    """

    session_repository: SessionRepository
    analysis_service: DamageAnalysisService
    dispatcher: CallDispatcher
    aggregator: CompletionAggregator
    allow_outbound_calls: bool = True

    def start(self, session_id: UUID) -> bool:
        """Claim the session for processing; false if it already left CREATED."""
        started = self.session_repository.transition_status(
            session_id, {SessionStatus.CREATED}, SessionStatus.ANALYZING
        )
        if started is None:
            logger.info("Session %s already started", session_id)
            return False
        logger.info("Session %s: workflow started", session_id)
        return True

    async def run(self, session_id: UUID) -> None:
        """Run analysis and dispatch for a session claimed by :meth:`start`."""
        session = self.session_repository.get_session(session_id)
        if session is None or session.status != SessionStatus.ANALYZING:
            logger.warning(
                "Session %s is not ready to run (status: %s)",
                session_id,
                session.status if session else None,
            )
            return

        try:
            analyzed = await self._analyze(session)
            calling = (
                self.session_repository.transition_status(
                    session_id, {SessionStatus.ANALYZING}, SessionStatus.CALLING
                )
                if analyzed
                else None
            )
        except Exception as exc:
            logger.exception("Session %s: analysis failed", session_id)
            self._fail(session_id, SessionStatus.ANALYZING, str(exc))
            return
        if calling is None:
            logger.info("Session %s left ANALYZING before dispatch", session_id)
            return

        if not self.allow_outbound_calls:
            logger.warning("Session %s: outbound calls disabled", session_id)
            await self.aggregator.summarize(session_id, note=CALLS_DISABLED_NOTE)
            return

        try:
            outcomes = await self.dispatcher.dispatch_all(calling)
        except Exception as exc:
            logger.exception("Session %s: dispatch failed", session_id)
            self._fail(session_id, SessionStatus.CALLING, str(exc))
            return

        unrecorded = [outcome.shop_id for outcome in outcomes if not outcome.recorded]
        if unrecorded:
            # No event will ever arrive for these shops, so the session cannot
            # complete on its own.
            logger.error(
                "Session %s: no call record stored for shops %s",
                session_id,
                unrecorded,
            )
            self._fail(
                session_id,
                SessionStatus.CALLING,
                f"could not record calls for shops: {', '.join(unrecorded)}",
            )
            return

        # Zero shops, all blocked, or events that beat us here.
        await self.aggregator.evaluate_completion(session_id)

    async def record_image_description(self, session_id: UUID, text: str) -> None:
        """Store image-derived text and refresh the summary while still analyzing."""
        updated = self.session_repository.update_session(
            session_id, {"image_prompt": text}
        )
        if updated is None:
            logger.warning("Image description for unknown session %s", session_id)
            return
        if updated.status != SessionStatus.ANALYZING:
            logger.info(
                "Session %s is %s; image description stored only",
                session_id,
                updated.status,
            )
            return
        try:
            await self._analyze(updated)
        except Exception:
            # The running workflow owns failure; this refresh is best effort.
            logger.exception("Session %s: image re-analysis failed", session_id)

    async def _analyze(self, session: SessionRecord) -> SessionRecord | None:
        logger.info("Session %s: generating damage summary", session.id)
        summary = await self.analysis_service.summarize(session)
        return self.session_repository.transition_status(
            session.id,
            {SessionStatus.ANALYZING},
            SessionStatus.ANALYZING,
            {"damage_summary": summary},
        )

    def _fail(self, session_id: UUID, expected: SessionStatus, reason: str) -> None:
        failed = self.session_repository.transition_status(
            session_id, {expected}, SessionStatus.FAILED, {"failure_reason": reason}
        )
        if failed is None:
            logger.warning(
                "Session %s: could not mark failed from %s", session_id, expected
            )
