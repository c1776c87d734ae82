"""Supabase-backed session repository."""

from collections.abc import Collection
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from postgrest.exceptions import APIError
from pydantic import BaseModel
from supabase import Client

from autoquote.domain.reports import Report
from autoquote.domain.sessions import (
    DamageSummary,
    SessionRecord,
    SessionStatus,
    Shop,
    Vehicle,
    check_transition,
)
from autoquote.errors import SessionAlreadyExistsError
from autoquote.services.sessions import SessionRepository

UNIQUE_VIOLATION = "23505"

_JSON_COLUMNS = {
    "damage_summary": "damage_summary_json",
    "report": "report_json",
}


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for quote sessions."""

    client: Client
    table: str = "autoquote_sessions"

    def create_session(self, record: SessionRecord) -> SessionRecord:
        """Insert a session row; the primary key makes this create-if-absent."""
        try:
            response = self.client.table(self.table).insert(_to_row(record)).execute()
        except APIError as exc:
            if exc.code == UNIQUE_VIOLATION:
                raise SessionAlreadyExistsError(str(record.id)) from exc
            raise
        if not response.data:
            raise RuntimeError("Failed to create session")
        return _parse_session(response.data[0])

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""
        response = (
            self.client.table(self.table)
            .select("*")
            .eq("id", str(session_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_session(response.data[0])

    def list_sessions(self, user_id: str, limit: int) -> list[SessionRecord]:
        """Return the user's most recent sessions."""
        response = (
            self.client.table(self.table)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [_parse_session(row) for row in response.data or []]

    def update_session(
        self, session_id: UUID, changes: dict[str, object]
    ) -> SessionRecord | None:
        """Update non-status fields."""
        if "status" in changes:
            raise ValueError("status changes must go through transition_status")
        response = (
            self.client.table(self.table)
            .update(_serialize_changes(changes))
            .eq("id", str(session_id))
            .execute()
        )
        if not response.data:
            return None
        return _parse_session(response.data[0])

    def transition_status(
        self,
        session_id: UUID,
        expected: Collection[SessionStatus],
        target: SessionStatus,
        changes: dict[str, object] | None = None,
    ) -> SessionRecord | None:
        """Conditional update filtered on the current status."""
        check_transition(expected, target)
        payload = _serialize_changes(changes or {})
        payload["status"] = target.value
        response = (
            self.client.table(self.table)
            .update(payload)
            .eq("id", str(session_id))
            .in_("status", [status.value for status in expected])
            .execute()
        )
        if not response.data:
            return None
        return _parse_session(response.data[0])


def _serialize_changes(changes: dict[str, object]) -> dict[str, object]:
    payload: dict[str, object] = {}
    for key, value in changes.items():
        column = _JSON_COLUMNS.get(key, key)
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json")
        payload[column] = value
    payload["updated_at"] = datetime.now(tz=UTC).isoformat()
    return payload


def _to_row(record: SessionRecord) -> dict[str, object]:
    vehicle = record.vehicle
    return {
        "id": str(record.id),
        "user_id": record.user_id,
        "location": record.location,
        "description_raw": record.description_raw,
        "vehicle_json": (
            {"make": vehicle.make, "model": vehicle.model, "year": vehicle.year}
            if vehicle
            else None
        ),
        "shops_json": [
            {
                "id": shop.id,
                "name": shop.name,
                "phone": shop.phone,
                "address": shop.address,
            }
            for shop in record.shops
        ],
        "status": record.status.value,
        "image_prompt": record.image_prompt,
        "damage_summary_json": (
            record.damage_summary.model_dump(mode="json")
            if record.damage_summary
            else None
        ),
        "report_json": record.report.model_dump(mode="json") if record.report else None,
        "failure_reason": record.failure_reason,
    }


def _parse_timestamp(value: object) -> datetime | None:
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return None


def _parse_session(row: dict[str, object]) -> SessionRecord:
    """Parse a session row into a domain model."""
    vehicle_raw = row.get("vehicle_json")
    summary_raw = row.get("damage_summary_json")
    report_raw = row.get("report_json")
    return SessionRecord(
        id=UUID(str(row["id"])),
        user_id=str(row["user_id"]),
        location=str(row.get("location", "")),
        description_raw=str(row.get("description_raw", "")),
        shops=tuple(
            Shop(
                id=str(shop["id"]),
                name=str(shop["name"]),
                phone=str(shop["phone"]),
                address=shop.get("address"),
            )
            for shop in row.get("shops_json") or []
        ),
        status=SessionStatus(row["status"]),
        vehicle=Vehicle(**vehicle_raw) if isinstance(vehicle_raw, dict) else None,
        image_prompt=row.get("image_prompt"),
        damage_summary=(
            DamageSummary.model_validate(summary_raw) if summary_raw else None
        ),
        report=Report.model_validate(report_raw) if report_raw else None,
        failure_reason=row.get("failure_reason"),
        created_at=_parse_timestamp(row.get("created_at")),
        updated_at=_parse_timestamp(row.get("updated_at")),
    )
