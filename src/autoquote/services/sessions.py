"""Session persistence interface and user-facing session operations."""

import logging
from collections.abc import Collection
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID, uuid4

from autoquote.domain.calls import CallRecord
from autoquote.domain.reports import Report
from autoquote.domain.sessions import SessionRecord, SessionStatus, Shop, Vehicle
from autoquote.errors import (
    ForbiddenError,
    NotFoundError,
    ReportNotReadyError,
    ValidationError,
)
from autoquote.services.calls import CallRepository

logger = logging.getLogger(__name__)

MAX_SHOPS = 10
MAX_LIST_LIMIT = 100


class SessionRepository(Protocol):
    """Persistence interface for quote sessions."""

    def create_session(self, record: SessionRecord) -> SessionRecord:
        """Create a session; raise SessionAlreadyExistsError if the id is taken."""

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""

    def list_sessions(self, user_id: str, limit: int) -> list[SessionRecord]:
        """Return a user's sessions, most recent first."""

    def update_session(
        self, session_id: UUID, changes: dict[str, object]
    ) -> SessionRecord | None:
        """Update non-status fields and return the new row."""

    def transition_status(
        self,
        session_id: UUID,
        expected: Collection[SessionStatus],
        target: SessionStatus,
        changes: dict[str, object] | None = None,
    ) -> SessionRecord | None:
        """Compare-and-set the status; return the new row or None if it lost.

        Raises ValueError for an edge the session state machine forbids.
        """


@dataclass
class SessionService:
    """Creates sessions and serves their state to the owning user."""

    session_repository: SessionRepository
    call_repository: CallRepository

    def create_session(
        self,
        user_id: str,
        location: str,
        description_raw: str,
        shops: list[Shop],
        vehicle: Vehicle | None = None,
    ) -> SessionRecord:
        """Persist a new session in CREATED."""
        if not user_id:
            raise ValidationError("user id is required")
        if not location.strip():
            raise ValidationError("location is required")
        if len(shops) > MAX_SHOPS:
            raise ValidationError(f"at most {MAX_SHOPS} shops are allowed")
        shop_ids = [shop.id for shop in shops]
        if len(set(shop_ids)) != len(shop_ids):
            raise ValidationError("shop ids must be unique")

        now = datetime.now(tz=UTC)
        record = SessionRecord(
            id=uuid4(),
            user_id=user_id,
            location=location.strip(),
            description_raw=description_raw,
            shops=tuple(shops),
            status=SessionStatus.CREATED,
            vehicle=vehicle,
            created_at=now,
            updated_at=now,
        )
        created = self.session_repository.create_session(record)
        logger.info(
            "Session %s created for user %s with %d shops",
            created.id,
            user_id,
            len(shops),
        )
        return created

    def get_owned_session(self, session_id: UUID, user_id: str) -> SessionRecord:
        """Return a session, enforcing ownership."""
        session = self.session_repository.get_session(session_id)
        if session is None:
            raise NotFoundError("Session", str(session_id))
        if session.user_id != user_id:
            raise ForbiddenError("Access denied")
        return session

    def list_sessions(self, user_id: str, limit: int = 50) -> list[SessionRecord]:
        return self.session_repository.list_sessions(
            user_id, max(1, min(limit, MAX_LIST_LIMIT))
        )

    def list_calls(self, session_id: UUID, user_id: str) -> list[CallRecord]:
        self.get_owned_session(session_id, user_id)
        return self.call_repository.list_calls(session_id)

    def get_report(self, session_id: UUID, user_id: str) -> Report:
        """Return the report of a finished session."""
        session = self.get_owned_session(session_id, user_id)
        if session.status != SessionStatus.DONE or session.report is None:
            raise ReportNotReadyError(session.status)
        return session.report
