"""Supabase repository for audit events."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from autoquote.services.audit import AuditRepository


@dataclass
class SupabaseAuditRepository(AuditRepository):
    """Supabase-backed audit repository."""

    client: Client
    table: str = "autoquote_audit_events"

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
        self.client.table(self.table).insert(
            {
                "session_id": str(session_id),
                "entity_type": entity_type,
                "entity_id": entity_id,
                "event_type": event_type,
                "before_json": before,
                "after_json": after,
            }
        ).execute()
