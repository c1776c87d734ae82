"""Audit trail for safety-relevant decisions."""

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from autoquote.services.safety import DestinationDecision


class AuditRepository(Protocol):
    """Persistence interface for audit events."""

    def create_event(  # noqa: PLR0913
        self,
        session_id: UUID,
        entity_type: str,
        entity_id: str,
        event_type: str,
        before: dict[str, object] | None,
        after: dict[str, object] | None,
    ) -> None:
        """Create an audit event row."""


@dataclass
class AuditService:
    """Service for recording audit events."""

    repository: AuditRepository

    def record_destination_decision(
        self, session_id: UUID, shop_id: str, decision: DestinationDecision
    ) -> None:
        """Persist a gate substitution or rejection for later review."""
        self.repository.create_event(
            session_id=session_id,
            entity_type="call",
            entity_id=shop_id,
            event_type=f"destination_{decision.outcome.lower()}",
            before={"to_number": decision.requested},
            after={"to_number": decision.destination, "reason": decision.reason},
        )
