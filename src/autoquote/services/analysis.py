"""Damage analysis using an LLM."""

import logging
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError as PydanticValidationError

from autoquote.domain.sessions import DamageSummary, SessionRecord
from autoquote.errors import ExternalServiceError

logger = logging.getLogger(__name__)

DAMAGE_SYSTEM_PROMPT = """You are an auto damage assessment expert. Analyze the \
provided damage description and generate a structured summary for obtaining \
repair quotes.

Output JSON with this exact schema:
{
  "description": "Clear, professional description of the damage",
  "severity": "minor" | "moderate" | "severe",
  "affected_areas": ["array", "of", "affected", "parts"],
  "estimated_repair_type": "Type of repair needed (e.g., 'body work', \
'paint only', 'panel replacement')"
}

Guidelines:
- Be specific about damage location and extent
- Use industry-standard terminology
- Severity: "minor" = cosmetic only, "moderate" = functional impact, \
"severe" = safety concern
- List all visible damage areas
- Provide a clear repair type recommendation"""


class ChatCompletionClient(Protocol):
    """Interface for JSON-mode chat completions."""

    async def complete_json(  # noqa: PLR0913
        self,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        thinking_budget_tokens: int | None,
    ) -> dict[str, object]:
        """Return the model's JSON response as a dict."""


@dataclass
class DamageAnalysisService:
    """Turns a free-text damage description into a DamageSummary."""

    client: ChatCompletionClient
    model: str
    thinking_budget_tokens: int | None = None
    max_tokens: int = 4096

    async def summarize(self, session: SessionRecord) -> DamageSummary:
        """Analyze the session's description and optional image text."""
        vehicle_info = (
            f"Vehicle: {session.vehicle.describe()}"
            if session.vehicle
            else "Vehicle: Not specified"
        )
        image_info = (
            f"Image Analysis: {session.image_prompt}"
            if session.image_prompt
            else "No image provided"
        )
        user_prompt = (
            f"{vehicle_info}\n\n"
            f"User's damage description: {session.description_raw}\n\n"
            f"{image_info}\n\n"
            "Generate a structured damage summary for this repair quote request."
        )
        try:
            raw = await self.client.complete_json(
                model=self.model,
                system_prompt=DAMAGE_SYSTEM_PROMPT,
                user_prompt=user_prompt,
                max_tokens=self.max_tokens,
                thinking_budget_tokens=self.thinking_budget_tokens,
            )
        except Exception as exc:
            raise ExternalServiceError("damage-analysis", str(exc)) from exc
        try:
            return DamageSummary.model_validate(raw)
        except PydanticValidationError as exc:
            logger.warning(
                "Damage analysis returned malformed output",
                extra={"session_id": str(session.id)},
            )
            raise ExternalServiceError(
                "damage-analysis", "malformed damage summary"
            ) from exc
