"""Shared test fixtures."""

import asyncio
from collections.abc import Collection
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from uuid import UUID, uuid4

import pytest

from autoquote.config import Settings
from autoquote.containers import AppContainer
from autoquote.domain.calls import CallRecord, CallStatus
from autoquote.domain.sessions import (
    SessionRecord,
    SessionStatus,
    Shop,
    Vehicle,
    check_transition,
)
from autoquote.errors import CallAlreadyExistsError, SessionAlreadyExistsError
from autoquote.services.aggregator import CompletionAggregator
from autoquote.services.analysis import (
    DAMAGE_SYSTEM_PROMPT,
    ChatCompletionClient,
    DamageAnalysisService,
)
from autoquote.services.assistant import AssistantOptions, webhook_url
from autoquote.services.audit import AuditRepository, AuditService
from autoquote.services.calls import CallRepository
from autoquote.services.dispatch import CallDispatcher, VoiceAgentClient
from autoquote.services.reports import ReportService
from autoquote.services.safety import DemoPolicy, DestinationGate
from autoquote.services.sessions import SessionRepository, SessionService
from autoquote.services.workflow import WorkflowService

DEMO_NUMBERS = ("+15550000001", "+15550000002")


@dataclass
class InMemorySessionRepository(SessionRepository):
    """In-memory session repository for tests."""

    sessions: dict[UUID, SessionRecord] = field(default_factory=dict)
    transitions: list[tuple[UUID, SessionStatus]] = field(default_factory=list)

    def create_session(self, record: SessionRecord) -> SessionRecord:
        if record.id in self.sessions:
            raise SessionAlreadyExistsError(str(record.id))
        self.sessions[record.id] = record
        return record

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        return self.sessions.get(session_id)

    def list_sessions(self, user_id: str, limit: int) -> list[SessionRecord]:
        owned = [s for s in self.sessions.values() if s.user_id == user_id]
        owned.sort(key=lambda s: s.created_at or datetime.min.replace(tzinfo=UTC))
        return list(reversed(owned))[:limit]

    def update_session(
        self, session_id: UUID, changes: dict[str, object]
    ) -> SessionRecord | None:
        current = self.sessions.get(session_id)
        if current is None:
            return None
        updated = replace(current, **changes, updated_at=datetime.now(tz=UTC))
        self.sessions[session_id] = updated
        return updated

    def transition_status(
        self,
        session_id: UUID,
        expected: Collection[SessionStatus],
        target: SessionStatus,
        changes: dict[str, object] | None = None,
    ) -> SessionRecord | None:
        check_transition(expected, target)
        current = self.sessions.get(session_id)
        if current is None or current.status not in expected:
            return None
        updated = replace(
            current,
            **(changes or {}),
            status=target,
            updated_at=datetime.now(tz=UTC),
        )
        self.sessions[session_id] = updated
        self.transitions.append((session_id, target))
        return updated


@dataclass
class InMemoryCallRepository(CallRepository):
    """In-memory call repository with compare-and-set updates."""

    calls: dict[tuple[UUID, str], CallRecord] = field(default_factory=dict)
    writes: list[tuple[str, CallStatus]] = field(default_factory=list)

    def create_call(self, record: CallRecord) -> CallRecord:
        key = (record.session_id, record.shop_id)
        if key in self.calls:
            raise CallAlreadyExistsError(f"{record.session_id}/{record.shop_id}")
        self.calls[key] = record
        self.writes.append((record.shop_id, record.status))
        return record

    def get_call(self, session_id: UUID, shop_id: str) -> CallRecord | None:
        return self.calls.get((session_id, shop_id))

    def list_calls(self, session_id: UUID) -> list[CallRecord]:
        return [call for key, call in self.calls.items() if key[0] == session_id]

    def update_call(
        self,
        session_id: UUID,
        shop_id: str,
        expected: Collection[CallStatus],
        changes: dict[str, object],
    ) -> CallRecord | None:
        current = self.calls.get((session_id, shop_id))
        if current is None or current.status not in expected:
            return None
        updated = replace(current, **changes, updated_at=datetime.now(tz=UTC))
        self.calls[(session_id, shop_id)] = updated
        self.writes.append((shop_id, updated.status))
        return updated


@dataclass
class InMemoryAuditRepository(AuditRepository):
    """In-memory audit repository for tests."""

    events: list[dict[str, object]] = field(default_factory=list)

    def create_event(  # noqa: PLR0913
        self,
        session_id: UUID,
        entity_type: str,
        entity_id: str,
        event_type: str,
        before: dict[str, object] | None,
        after: dict[str, object] | None,
    ) -> None:
        self.events.append(
            {
                "session_id": session_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "event_type": event_type,
                "before": before,
                "after": after,
            }
        )


@dataclass
class FakeChatClient(ChatCompletionClient):
    """Fake chat client returning canned damage and report payloads."""

    damage_payload: dict[str, object] = field(
        default_factory=lambda: {
            "description": "Dent and scratches on the rear bumper",
            "severity": "moderate",
            "affected_areas": ["rear bumper"],
            "estimated_repair_type": "body work",
        }
    )
    report_payload: dict[str, object] = field(
        default_factory=lambda: {
            "summary": "Two shops provided quotes.",
            "quotes": [
                {
                    "shop_id": "shop-1",
                    "shop_name": "Shop One",
                    "price_range": {"low": 400, "high": 600},
                    "timeframe_days": 3,
                    "can_do_work": True,
                    "requires_inspection": False,
                    "notes": "Can start Monday",
                    "recommendation_score": 8,
                }
            ],
            "best_pick": {
                "by_price": "shop-1",
                "by_time": "shop-1",
                "overall": "shop-1",
            },
            "disclaimer": "Estimates only.",
        }
    )
    error: Exception | None = None
    requests: list[dict[str, object]] = field(default_factory=list)

    async def complete_json(  # noqa: PLR0913
        self,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        thinking_budget_tokens: int | None,
    ) -> dict[str, object]:
        self.requests.append(
            {
                "model": model,
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "thinking_budget_tokens": thinking_budget_tokens,
            }
        )
        # Yield so concurrent callers can interleave.
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        if system_prompt == DAMAGE_SYSTEM_PROMPT:
            return self.damage_payload
        return self.report_payload

    @property
    def report_requests(self) -> list[dict[str, object]]:
        return [r for r in self.requests if r["system_prompt"] != DAMAGE_SYSTEM_PROMPT]


@dataclass
class FakeVoiceClient(VoiceAgentClient):
    """Fake voice platform that records every dial attempt."""

    calls: list[dict[str, object]] = field(default_factory=list)
    failing_names: set[str] = field(default_factory=set)

    async def create_call(
        self, destination: str, customer_name: str, assistant: dict[str, object]
    ) -> dict[str, object]:
        await asyncio.sleep(0)
        if customer_name in self.failing_names:
            raise RuntimeError(f"platform rejected call to {customer_name}")
        self.calls.append(
            {
                "destination": destination,
                "customer_name": customer_name,
                "assistant": assistant,
            }
        )
        return {"id": f"vapi-{len(self.calls)}", "status": "queued"}

    @property
    def destinations(self) -> list[str]:
        return [str(call["destination"]) for call in self.calls]


def make_shops(count: int) -> list[Shop]:
    return [
        Shop(id=f"shop-{i}", name=f"Shop {i}", phone=f"+1415555010{i}")
        for i in range(1, count + 1)
    ]


def make_session(
    shops: list[Shop] | None = None,
    status: SessionStatus = SessionStatus.CREATED,
    user_id: str = "auth0|user-1",
    **overrides: object,
) -> SessionRecord:
    now = datetime.now(tz=UTC)
    values: dict[str, object] = {
        "id": uuid4(),
        "user_id": user_id,
        "location": "San Francisco, CA",
        "description_raw": "Rear bumper dented in a parking lot",
        "shops": tuple(shops if shops is not None else make_shops(2)),
        "status": status,
        "vehicle": Vehicle(make="Toyota", model="Camry", year=2020),
        "created_at": now,
        "updated_at": now,
    }
    values.update(overrides)
    return SessionRecord(**values)  # type: ignore[arg-type]


def call_event(
    event_type: str,
    session_id: UUID,
    shop_id: str,
    **call: object,
) -> dict[str, object]:
    """Build a webhook payload with correlation in the assistant metadata."""
    return {
        "type": event_type,
        "call": {"id": f"vapi-{shop_id}", **call},
        "assistant": {
            "metadata": {
                "session_id": str(session_id),
                "shop_id": shop_id,
                "shop_name": shop_id.replace("-", " ").title(),
            }
        },
    }


def ended_call(low: float = 400, high: float = 600) -> dict[str, object]:
    """Call fields of a completed conversation with a quote."""
    return {
        "endedReason": "customer-ended-call",
        "cost": 0.42,
        "artifact": {
            "transcript": "AI: Hi... Shop: We can do it for about five hundred.",
            "recordingUrl": "https://recordings.example/1.wav",
            "messages": [
                {"role": "assistant", "message": "Hi", "time": 1_700_000_000_000},
                {"role": "user", "message": "Bye", "time": 1_700_000_095_000},
            ],
        },
        "analysis": {
            "summary": "Quoted a bumper repair.",
            "structuredData": {
                "quote_provided": True,
                "price_estimate_low": low,
                "price_estimate_high": high,
                "timeframe_days": 3,
                "shop_can_do_work": True,
            },
        },
    }


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        openrouter_api_key="openrouter-key",
        vapi_api_key="vapi-key",
        vapi_phone_number_id="phone-number-id",
        vapi_webhook_secret="webhook-secret",
        app_base_url="https://autoquote.test",
        demo_mode=True,
        demo_to_numbers=",".join(DEMO_NUMBERS),
        demo_number_strategy="round_robin",
        scope_calls_to_demo_list=False,
        allow_outbound_calls=True,
        environment="test",
    )


@pytest.fixture
def session_repository() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def call_repository() -> InMemoryCallRepository:
    return InMemoryCallRepository()


@pytest.fixture
def audit_repository() -> InMemoryAuditRepository:
    return InMemoryAuditRepository()


@pytest.fixture
def chat_client() -> FakeChatClient:
    return FakeChatClient()


@pytest.fixture
def voice_client() -> FakeVoiceClient:
    return FakeVoiceClient()


@pytest.fixture
def report_service(chat_client: FakeChatClient) -> ReportService:
    return ReportService(client=chat_client, model="test-model")


@pytest.fixture
def aggregator(
    session_repository: InMemorySessionRepository,
    call_repository: InMemoryCallRepository,
    report_service: ReportService,
) -> CompletionAggregator:
    return CompletionAggregator(
        session_repository=session_repository,
        call_repository=call_repository,
        report_service=report_service,
    )


@pytest.fixture
def dispatcher(
    settings: Settings,
    call_repository: InMemoryCallRepository,
    audit_repository: InMemoryAuditRepository,
    voice_client: FakeVoiceClient,
) -> CallDispatcher:
    return CallDispatcher(
        gate=DestinationGate(DemoPolicy.from_settings(settings)),
        call_repository=call_repository,
        voice_client=voice_client,
        audit_service=AuditService(audit_repository),
        options=AssistantOptions.from_settings(settings),
        callback_url=webhook_url(settings.app_base_url),
    )


@pytest.fixture
def workflow_service(
    settings: Settings,
    session_repository: InMemorySessionRepository,
    chat_client: FakeChatClient,
    dispatcher: CallDispatcher,
    aggregator: CompletionAggregator,
) -> WorkflowService:
    return WorkflowService(
        session_repository=session_repository,
        analysis_service=DamageAnalysisService(
            client=chat_client,
            model="test-model",
            thinking_budget_tokens=settings.claude_thinking_budget_tokens,
        ),
        dispatcher=dispatcher,
        aggregator=aggregator,
        allow_outbound_calls=settings.allow_outbound_calls,
    )


@pytest.fixture
def container(
    settings: Settings,
    session_repository: InMemorySessionRepository,
    call_repository: InMemoryCallRepository,
    workflow_service: WorkflowService,
    aggregator: CompletionAggregator,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        session_service=SessionService(session_repository, call_repository),
        workflow_service=workflow_service,
        aggregator=aggregator,
        close_resources=close_resources,
    )
