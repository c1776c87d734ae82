"""Conversation configuration for outbound quote calls."""

from dataclasses import dataclass

from autoquote.config import Settings
from autoquote.domain.sessions import DamageSummary, SessionRecord, Shop

FIRST_MESSAGE = (
    "Hi, I'm calling to get a repair estimate for some car damage. "
    "Do you have a moment to help me?"
)

END_CALL_PHRASES = ["goodbye", "thank you for your time", "have a great day"]

STRUCTURED_DATA_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "quote_provided": {
            "type": "boolean",
            "description": "Whether a quote was provided during the call",
        },
        "price_estimate_low": {
            "type": "number",
            "description": "Low end of price estimate in dollars",
        },
        "price_estimate_high": {
            "type": "number",
            "description": "High end of price estimate in dollars",
        },
        "timeframe_days": {
            "type": "number",
            "description": "Estimated repair timeframe in days",
        },
        "requires_inspection": {
            "type": "boolean",
            "description": "Whether in-person inspection is required",
        },
        "shop_can_do_work": {
            "type": "boolean",
            "description": "Whether the shop can perform the repair",
        },
        "notes": {
            "type": "string",
            "description": "Additional notes from the conversation",
        },
    },
    "required": ["quote_provided", "shop_can_do_work"],
}


@dataclass(frozen=True)
class AssistantOptions:
    """Model and voice selection for the voice agent."""

    voice_id: str
    model_provider: str = "anthropic"
    model_id: str = "claude-opus-4-5-20251101"
    thinking_budget_tokens: int = 10000
    temperature: float = 0.7
    max_tokens: int = 2048
    max_duration_seconds: int = 300

    @classmethod
    def from_settings(cls, settings: Settings) -> "AssistantOptions":
        return cls(
            voice_id=settings.elevenlabs_voice_id,
            thinking_budget_tokens=settings.claude_thinking_budget_tokens,
        )


def webhook_url(app_base_url: str) -> str:
    """Return the callback URL for voice-platform events."""
    return f"{app_base_url.rstrip('/')}/api/vapi/webhook"


def build_assistant_config(
    session: SessionRecord,
    shop: Shop,
    options: AssistantOptions,
    callback_url: str,
) -> dict[str, object]:
    """Build the transient assistant for one shop call."""
    vehicle_info = (
        session.vehicle.describe()
        if session.vehicle
        else "Vehicle details not provided"
    )
    damage = (
        _format_damage_summary(session.damage_summary)
        if session.damage_summary
        else session.description_raw
    )
    return {
        "firstMessage": FIRST_MESSAGE,
        "model": {
            "provider": options.model_provider,
            "model": options.model_id,
            "thinking": {
                "type": "enabled",
                "budgetTokens": options.thinking_budget_tokens,
            },
            "messages": [
                {"role": "system", "content": _system_prompt(damage, vehicle_info)}
            ],
            "temperature": options.temperature,
            "maxTokens": options.max_tokens,
        },
        "voice": {
            "provider": "11labs",
            "voiceId": options.voice_id,
            "stability": 0.5,
            "similarityBoost": 0.75,
        },
        "transcriber": {"provider": "deepgram", "language": "en-US"},
        "analysisPlan": {
            "structuredDataPlan": {"enabled": True, "schema": STRUCTURED_DATA_SCHEMA},
            "summaryPlan": {"enabled": True},
        },
        "artifactPlan": {"recordingEnabled": True, "transcriptPlan": {"enabled": True}},
        "server": {"url": callback_url},
        "maxDurationSeconds": options.max_duration_seconds,
        "endCallPhrases": END_CALL_PHRASES,
        "metadata": {
            "session_id": str(session.id),
            "shop_id": shop.id,
            "shop_name": shop.name,
        },
    }


def _format_damage_summary(summary: DamageSummary) -> str:
    return (
        f"{summary.description}\n"
        f"Severity: {summary.severity}\n"
        f"Affected areas: {', '.join(summary.affected_areas)}\n"
        f"Estimated repair type: {summary.estimated_repair_type}"
    )


def _system_prompt(damage: str, vehicle_info: str) -> str:
    return f"""You are a friendly customer calling an auto repair shop to get a quote.

DAMAGE DESCRIPTION:
{damage}

VEHICLE INFO:
{vehicle_info}

YOUR TASK:
1. Politely introduce yourself and explain you need a repair estimate
2. Describe the damage clearly and concisely
3. Ask for their best estimate (price range and timeframe)
4. Thank them and end the call professionally

IMPORTANT:
- Be conversational and natural
- If they ask clarifying questions, answer based on the damage description
- If they can't give an estimate over the phone, ask what information they'd need
- Keep the call under 3 minutes
- End with "Thank you for your time, goodbye" when done"""
