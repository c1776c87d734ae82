"""Domain models for outbound shop calls."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class CallStatus(StrEnum):
    """Lifecycle states of a single shop call."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


TERMINAL_CALL_STATUSES = frozenset({CallStatus.COMPLETED, CallStatus.FAILED})
OPEN_CALL_STATUSES = frozenset({CallStatus.PENDING, CallStatus.IN_PROGRESS})


class CallAnalysis(BaseModel):
    """Structured data the voice agent extracts from a conversation."""

    model_config = ConfigDict(extra="allow")

    quote_provided: bool | None = None
    price_estimate_low: float | None = None
    price_estimate_high: float | None = None
    timeframe_days: float | None = None
    requires_inspection: bool | None = None
    shop_can_do_work: bool | None = None
    notes: str | None = None

    @property
    def has_usable_quote(self) -> bool:
        return bool(self.quote_provided) and (
            self.price_estimate_low is not None or self.price_estimate_high is not None
        )


@dataclass(frozen=True)
class CallRecord:
    """Represents a persisted call keyed by (session_id, shop_id)."""

    session_id: UUID
    shop_id: str
    shop_name: str
    status: CallStatus
    to_number: str | None = None
    external_call_id: str | None = None
    transcript: str | None = None
    structured_data: CallAnalysis | None = None
    summary: str | None = None
    cost: float | None = None
    duration_seconds: int | None = None
    ended_reason: str | None = None
    recording_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_CALL_STATUSES
