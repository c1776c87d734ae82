"""Vapi voice-agent API client adapter."""

from dataclasses import dataclass

import httpx

from autoquote.services.dispatch import VoiceAgentClient


@dataclass
class HttpxVapiClient(VoiceAgentClient):
    """Vapi client implemented with httpx."""

    api_key: str
    base_url: str
    phone_number_id: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(
        cls, api_key: str, base_url: str, phone_number_id: str
    ) -> "HttpxVapiClient":
        """Create a Vapi client with a managed httpx session."""
        return cls(
            api_key=api_key,
            base_url=base_url,
            phone_number_id=phone_number_id,
            http_client=httpx.AsyncClient(),
        )

    async def create_call(
        self, destination: str, customer_name: str, assistant: dict[str, object]
    ) -> dict[str, object]:
        """Start an outbound phone call with a transient assistant."""
        url = f"{self.base_url.rstrip('/')}/call"
        payload: dict[str, object] = {
            "assistant": assistant,
            "phoneNumberId": self.phone_number_id,
            "customer": {"number": destination, "name": customer_name},
        }
        response = await self.http_client.post(
            url,
            json=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=30,
        )
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()
