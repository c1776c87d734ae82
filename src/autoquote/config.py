"""Application configuration."""

import os
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    sessions_table: str = "autoquote_sessions"
    calls_table: str = "autoquote_calls"
    audit_table: str = "autoquote_audit_events"
    openrouter_api_key: str
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_model: str = "anthropic/claude-opus-4.5"
    claude_thinking_budget_tokens: int = 10000
    vapi_api_key: str
    vapi_base_url: str = "https://api.vapi.ai"
    vapi_phone_number_id: str
    vapi_webhook_secret: str
    elevenlabs_voice_id: str = "21m00Tcm4TlvDq8ikWAM"
    app_base_url: str = "https://autoquote.ai"
    demo_mode: bool = True
    demo_to_numbers: str = ""
    demo_number_strategy: Literal["round_robin", "first"] = "round_robin"
    scope_calls_to_demo_list: bool = True
    allow_outbound_calls: bool = True
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @field_validator("demo_number_strategy", mode="before")
    @classmethod
    def _normalize_strategy(cls, value: object) -> object:
        # Older deployments spell it "round-robin".
        if isinstance(value, str):
            return value.strip().lower().replace("-", "_")
        return value


def parse_demo_numbers(raw: str | None) -> tuple[str, ...]:
    """Parse the comma-separated demo allow-list from env."""
    if raw is None:
        return ()
    numbers: list[str] = []
    for chunk in raw.split(","):
        value = chunk.strip()
        if value and value not in numbers:
            numbers.append(value)
    return tuple(numbers)
