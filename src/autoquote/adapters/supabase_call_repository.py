"""Supabase-backed call repository keyed by (session_id, shop_id)."""

from collections.abc import Collection
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from postgrest.exceptions import APIError
from pydantic import BaseModel
from supabase import Client

from autoquote.adapters.supabase_session_repository import UNIQUE_VIOLATION
from autoquote.domain.calls import CallAnalysis, CallRecord, CallStatus
from autoquote.errors import CallAlreadyExistsError
from autoquote.services.calls import CallRepository


@dataclass
class SupabaseCallRepository(CallRepository):
    """Supabase implementation for call records.

    The table has a composite primary key on ``(session_id, shop_id)``, so an
    insert doubles as create-if-absent. Updates filter on the current status
    in the same statement, which makes them compare-and-set.
    """

    client: Client
    table: str = "autoquote_calls"

    def create_call(self, record: CallRecord) -> CallRecord:
        try:
            response = self.client.table(self.table).insert(_to_row(record)).execute()
        except APIError as exc:
            if exc.code == UNIQUE_VIOLATION:
                raise CallAlreadyExistsError(
                    f"{record.session_id}/{record.shop_id}"
                ) from exc
            raise
        if not response.data:
            raise RuntimeError("Failed to create call")
        return _parse_call(response.data[0])

    def get_call(self, session_id: UUID, shop_id: str) -> CallRecord | None:
        response = (
            self.client.table(self.table)
            .select("*")
            .eq("session_id", str(session_id))
            .eq("shop_id", shop_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_call(response.data[0])

    def list_calls(self, session_id: UUID) -> list[CallRecord]:
        response = (
            self.client.table(self.table)
            .select("*")
            .eq("session_id", str(session_id))
            .order("created_at", desc=False)
            .execute()
        )
        return [_parse_call(row) for row in response.data or []]

    def update_call(
        self,
        session_id: UUID,
        shop_id: str,
        expected: Collection[CallStatus],
        changes: dict[str, object],
    ) -> CallRecord | None:
        payload: dict[str, object] = {}
        for key, value in changes.items():
            if isinstance(value, BaseModel):
                value = value.model_dump(mode="json")
            payload[key] = value
        payload["updated_at"] = datetime.now(tz=UTC).isoformat()
        response = (
            self.client.table(self.table)
            .update(payload)
            .eq("session_id", str(session_id))
            .eq("shop_id", shop_id)
            .in_("status", [status.value for status in expected])
            .execute()
        )
        if not response.data:
            return None
        return _parse_call(response.data[0])


def _to_row(record: CallRecord) -> dict[str, object]:
    return {
        "session_id": str(record.session_id),
        "shop_id": record.shop_id,
        "shop_name": record.shop_name,
        "status": record.status.value,
        "to_number": record.to_number,
        "external_call_id": record.external_call_id,
        "ended_reason": record.ended_reason,
    }


def _parse_call(row: dict[str, object]) -> CallRecord:
    """Parse a call row into a domain model."""
    structured_raw = row.get("structured_data")
    cost = row.get("cost")
    duration = row.get("duration_seconds")
    return CallRecord(
        session_id=UUID(str(row["session_id"])),
        shop_id=str(row["shop_id"]),
        shop_name=str(row.get("shop_name", "")),
        status=CallStatus(row["status"]),
        to_number=row.get("to_number"),
        external_call_id=row.get("external_call_id"),
        transcript=row.get("transcript"),
        structured_data=(
            CallAnalysis.model_validate(structured_raw) if structured_raw else None
        ),
        summary=row.get("summary"),
        cost=float(cost) if cost is not None else None,
        duration_seconds=int(duration) if duration is not None else None,
        ended_reason=row.get("ended_reason"),
        recording_url=row.get("recording_url"),
        created_at=_parse_timestamp(row.get("created_at")),
        updated_at=_parse_timestamp(row.get("updated_at")),
    )


def _parse_timestamp(value: object) -> datetime | None:
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return None
