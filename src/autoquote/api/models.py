"""Request and response models for the session API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from autoquote.domain.calls import CallAnalysis, CallRecord
from autoquote.domain.reports import Report
from autoquote.domain.sessions import DamageSummary, SessionRecord, Shop, Vehicle
from autoquote.services.sessions import MAX_SHOPS

E164_PATTERN = r"^\+[1-9]\d{6,14}$"


class VehicleIn(BaseModel):
    """Vehicle details in a create-session request."""

    make: str | None = None
    model: str | None = None
    year: int | None = Field(default=None, ge=1900, le=2100)

    def to_domain(self) -> Vehicle:
        return Vehicle(make=self.make, model=self.model, year=self.year)


class ShopIn(BaseModel):
    """Shop entry in a create-session request."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    phone: str = Field(pattern=E164_PATTERN)
    address: str | None = None

    def to_domain(self) -> Shop:
        return Shop(id=self.id, name=self.name, phone=self.phone, address=self.address)


class CreateSessionRequest(BaseModel):
    """Body of POST /api/v1/sessions."""

    location: str
    vehicle: VehicleIn | None = None
    description_raw: str = Field(min_length=10)
    shops: list[ShopIn] = Field(default_factory=list, max_length=MAX_SHOPS)

    @field_validator("location")
    @classmethod
    def _require_location(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Location is required")
        return value

    @model_validator(mode="after")
    def _unique_shop_ids(self) -> "CreateSessionRequest":
        ids = [shop.id for shop in self.shops]
        if len(set(ids)) != len(ids):
            raise ValueError("Shop ids must be unique")
        return self


class SessionView(BaseModel):
    """Session as returned to its owner."""

    id: UUID
    status: str
    location: str
    description_raw: str
    vehicle: VehicleIn | None = None
    shops: list[ShopIn] = Field(default_factory=list)
    image_prompt: str | None = None
    damage_summary: DamageSummary | None = None
    report: Report | None = None
    error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, record: SessionRecord, show_debug: bool) -> "SessionView":
        """Build a view; failure details are only exposed when debugging."""
        error = None
        if record.failure_reason is not None:
            error = (
                f"Processing failed: {record.failure_reason}"
                if show_debug
                else "Processing failed. Please try again."
            )
        vehicle = record.vehicle
        return cls(
            id=record.id,
            status=record.status,
            location=record.location,
            description_raw=record.description_raw,
            vehicle=(
                VehicleIn(make=vehicle.make, model=vehicle.model, year=vehicle.year)
                if vehicle
                else None
            ),
            shops=[
                ShopIn.model_construct(
                    id=shop.id, name=shop.name, phone=shop.phone, address=shop.address
                )
                for shop in record.shops
            ],
            image_prompt=record.image_prompt,
            damage_summary=record.damage_summary,
            report=record.report,
            error=error,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class CallView(BaseModel):
    """Call record as returned to the session owner."""

    shop_id: str
    shop_name: str
    status: str
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

    @classmethod
    def from_record(cls, record: CallRecord) -> "CallView":
        return cls(
            shop_id=record.shop_id,
            shop_name=record.shop_name,
            status=record.status,
            to_number=record.to_number,
            external_call_id=record.external_call_id,
            transcript=record.transcript,
            structured_data=record.structured_data,
            summary=record.summary,
            cost=record.cost,
            duration_seconds=record.duration_seconds,
            ended_reason=record.ended_reason,
            recording_url=record.recording_url,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
