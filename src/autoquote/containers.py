"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from autoquote.adapters.openai_chat_client import OpenAIChatClient
from autoquote.adapters.supabase_audit_repository import SupabaseAuditRepository
from autoquote.adapters.supabase_call_repository import SupabaseCallRepository
from autoquote.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from autoquote.adapters.vapi_client import HttpxVapiClient
from autoquote.config import Settings
from autoquote.services.aggregator import CompletionAggregator
from autoquote.services.analysis import DamageAnalysisService
from autoquote.services.assistant import AssistantOptions, webhook_url
from autoquote.services.audit import AuditService
from autoquote.services.dispatch import CallDispatcher
from autoquote.services.reports import ReportService
from autoquote.services.safety import DemoPolicy, DestinationGate
from autoquote.services.sessions import SessionService
from autoquote.services.workflow import WorkflowService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session_service: SessionService
    workflow_service: WorkflowService
    aggregator: CompletionAggregator
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session_repository = SupabaseSessionRepository(
        supabase_client, resolved_settings.sessions_table
    )
    call_repository = SupabaseCallRepository(
        supabase_client, resolved_settings.calls_table
    )
    audit_repository = SupabaseAuditRepository(
        supabase_client, resolved_settings.audit_table
    )

    chat_client = OpenAIChatClient.create(
        api_key=resolved_settings.openrouter_api_key,
        base_url=resolved_settings.openrouter_base_url,
        app_base_url=resolved_settings.app_base_url,
    )
    vapi_client = HttpxVapiClient.create(
        api_key=resolved_settings.vapi_api_key,
        base_url=resolved_settings.vapi_base_url,
        phone_number_id=resolved_settings.vapi_phone_number_id,
    )

    analysis_service = DamageAnalysisService(
        client=chat_client,
        model=resolved_settings.openrouter_model,
        thinking_budget_tokens=resolved_settings.claude_thinking_budget_tokens,
    )
    report_service = ReportService(
        client=chat_client,
        model=resolved_settings.openrouter_model,
        thinking_budget_tokens=resolved_settings.claude_thinking_budget_tokens,
    )
    dispatcher = CallDispatcher(
        gate=DestinationGate(DemoPolicy.from_settings(resolved_settings)),
        call_repository=call_repository,
        voice_client=vapi_client,
        audit_service=AuditService(audit_repository),
        options=AssistantOptions.from_settings(resolved_settings),
        callback_url=webhook_url(resolved_settings.app_base_url),
    )
    aggregator = CompletionAggregator(
        session_repository=session_repository,
        call_repository=call_repository,
        report_service=report_service,
    )
    workflow_service = WorkflowService(
        session_repository=session_repository,
        analysis_service=analysis_service,
        dispatcher=dispatcher,
        aggregator=aggregator,
        allow_outbound_calls=resolved_settings.allow_outbound_calls,
    )
    session_service = SessionService(session_repository, call_repository)

    async def close_resources() -> None:
        await vapi_client.close()
        await chat_client.client.close()

    return AppContainer(
        settings=resolved_settings,
        session_service=session_service,
        workflow_service=workflow_service,
        aggregator=aggregator,
        close_resources=close_resources,
    )
