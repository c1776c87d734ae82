"""Tests for HTTP-based adapters."""

import asyncio
import json

import httpx
import pytest

from autoquote.adapters.openai_chat_client import OpenAIChatClient
from autoquote.adapters.vapi_client import HttpxVapiClient


class _FakeCompletions:
    def __init__(self, content: str | None) -> None:
        self.content = content
        self.last_payload: dict[str, object] | None = None

    async def create(self, **kwargs):  # type: ignore[no-untyped-def]
        self.last_payload = kwargs
        message = type("Message", (), {"content": self.content})()
        choice = type("Choice", (), {"message": message})()
        return type("Resp", (), {"choices": [choice]})()


class _FakeOpenAI:
    def __init__(self, content: str | None) -> None:
        self.chat = type("Chat", (), {})()
        self.chat.completions = _FakeCompletions(content)


def test_chat_client_parses_json_and_enables_thinking() -> None:
    fake = _FakeOpenAI(json.dumps({"severity": "minor"}))
    client = OpenAIChatClient(client=fake)

    result = asyncio.run(
        client.complete_json(
            model="anthropic/claude-sonnet-4",
            system_prompt="Analyze damage",
            user_prompt="Scratched door",
            max_tokens=2048,
            thinking_budget_tokens=1024,
        )
    )

    assert result == {"severity": "minor"}
    payload = fake.chat.completions.last_payload
    assert payload is not None
    assert payload["response_format"] == {"type": "json_object"}
    assert payload["extra_body"] == {
        "thinking": {"type": "enabled", "budget_tokens": 1024}
    }
    assert payload["messages"][0] == {"role": "system", "content": "Analyze damage"}


def test_chat_client_without_thinking_budget() -> None:
    fake = _FakeOpenAI("{}")
    client = OpenAIChatClient(client=fake)

    asyncio.run(
        client.complete_json(
            model="m",
            system_prompt="s",
            user_prompt="u",
            max_tokens=10,
            thinking_budget_tokens=None,
        )
    )

    assert "extra_body" not in (fake.chat.completions.last_payload or {})


@pytest.mark.parametrize("content", [None, "", "[1, 2]"])
def test_chat_client_rejects_empty_or_non_object(content: str | None) -> None:
    client = OpenAIChatClient(client=_FakeOpenAI(content))

    with pytest.raises(RuntimeError):
        asyncio.run(
            client.complete_json(
                model="m",
                system_prompt="s",
                user_prompt="u",
                max_tokens=10,
                thinking_budget_tokens=None,
            )
        )


def test_vapi_client_creates_call() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"id": "call-123", "status": "queued"})

    transport = httpx.MockTransport(handler)
    async_client = httpx.AsyncClient(transport=transport)
    client = HttpxVapiClient(
        api_key="vapi-key",
        base_url="https://api.vapi.test/",
        phone_number_id="pn-1",
        http_client=async_client,
    )

    result = asyncio.run(
        client.create_call(
            destination="+15550000001",
            customer_name="Bay Auto Body",
            assistant={"name": "AutoQuote"},
        )
    )

    assert result == {"id": "call-123", "status": "queued"}
    request = seen[0]
    assert request.url.path == "/call"
    assert request.headers["Authorization"] == "Bearer vapi-key"
    payload = json.loads(request.content.decode())
    assert payload == {
        "assistant": {"name": "AutoQuote"},
        "phoneNumberId": "pn-1",
        "customer": {"number": "+15550000001", "name": "Bay Auto Body"},
    }


def test_vapi_client_raises_on_error_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"message": "invalid number"})

    transport = httpx.MockTransport(handler)
    async_client = httpx.AsyncClient(transport=transport)
    client = HttpxVapiClient(
        api_key="vapi-key",
        base_url="https://api.vapi.test",
        phone_number_id="pn-1",
        http_client=async_client,
    )

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client.create_call("+15550000001", "Shop", {}))
