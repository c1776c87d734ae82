"""OpenAI-compatible chat completions client pointed at OpenRouter."""

import json
from dataclasses import dataclass

from openai import AsyncOpenAI

from autoquote.services.analysis import ChatCompletionClient


@dataclass
class OpenAIChatClient(ChatCompletionClient):
    """Chat client backed by the OpenAI SDK."""

    client: AsyncOpenAI

    @classmethod
    def create(
        cls, api_key: str, base_url: str, app_base_url: str | None = None
    ) -> "OpenAIChatClient":
        """Create a client for an OpenAI-compatible endpoint."""
        headers = {"X-Title": "AutoQuote AI"}
        if app_base_url:
            headers["HTTP-Referer"] = app_base_url
        return cls(
            client=AsyncOpenAI(
                api_key=api_key, base_url=base_url, default_headers=headers
            )
        )

    async def complete_json(  # noqa: PLR0913
        self,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        thinking_budget_tokens: int | None,
    ) -> dict[str, object]:
        """Call chat completions in JSON mode with optional extended thinking."""
        request_payload: dict[str, object] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_tokens,
            "response_format": {"type": "json_object"},
        }
        if thinking_budget_tokens:
            request_payload["extra_body"] = {
                "thinking": {"type": "enabled", "budget_tokens": thinking_budget_tokens}
            }

        response = await self.client.chat.completions.create(**request_payload)
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise RuntimeError("Chat completion returned an empty response")
        parsed = json.loads(content)
        if not isinstance(parsed, dict):
            raise RuntimeError("Chat completion did not return a JSON object")
        return parsed
