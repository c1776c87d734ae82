"""Domain models for quote sessions."""

from collections.abc import Collection
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from autoquote.domain.reports import Report


class SessionStatus(StrEnum):
    """Workflow states of a quote session."""

    CREATED = "CREATED"
    ANALYZING = "ANALYZING"
    CALLING = "CALLING"
    SUMMARIZING = "SUMMARIZING"
    DONE = "DONE"
    FAILED = "FAILED"


# Forward-only: there is no edge back to an earlier state.
SESSION_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.CREATED: frozenset({SessionStatus.ANALYZING}),
    SessionStatus.ANALYZING: frozenset(
        {SessionStatus.ANALYZING, SessionStatus.CALLING, SessionStatus.FAILED}
    ),
    SessionStatus.CALLING: frozenset(
        {SessionStatus.SUMMARIZING, SessionStatus.FAILED}
    ),
    SessionStatus.SUMMARIZING: frozenset({SessionStatus.DONE, SessionStatus.FAILED}),
    SessionStatus.DONE: frozenset(),
    SessionStatus.FAILED: frozenset(),
}


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    """Return true when the state machine allows current -> target."""
    return target in SESSION_TRANSITIONS[current]


def check_transition(
    expected: Collection[SessionStatus], target: SessionStatus
) -> None:
    """Raise ValueError unless every expected status may move to target."""
    illegal = sorted(s.value for s in expected if not can_transition(s, target))
    if illegal:
        raise ValueError(
            f"illegal session transition {', '.join(illegal)} -> {target.value}"
        )


@dataclass(frozen=True)
class Vehicle:
    """Optional vehicle details supplied by the user."""

    make: str | None = None
    model: str | None = None
    year: int | None = None

    def describe(self) -> str:
        return (
            f"{self.year or 'Unknown year'} "
            f"{self.make or 'Unknown make'} "
            f"{self.model or 'Unknown model'}"
        )


@dataclass(frozen=True)
class Shop:
    """Candidate repair shop to call."""

    id: str
    name: str
    phone: str
    address: str | None = None


class DamageSummary(BaseModel):
    """Structured output of the damage-analysis engine."""

    description: str
    severity: Literal["minor", "moderate", "severe"]
    affected_areas: list[str] = Field(default_factory=list)
    estimated_repair_type: str


@dataclass(frozen=True)
class SessionRecord:
    """Represents a persisted quote session."""

    id: UUID
    user_id: str
    location: str
    description_raw: str
    shops: tuple[Shop, ...]
    status: SessionStatus
    vehicle: Vehicle | None = None
    image_prompt: str | None = None
    damage_summary: DamageSummary | None = None
    report: Report | None = None
    failure_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
