"""Session endpoints for the owning user."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Request
from fastapi import status as http_status

from autoquote.api.models import CallView, CreateSessionRequest, SessionView

if TYPE_CHECKING:
    from autoquote.containers import AppContainer

router = APIRouter(prefix="/api/v1/sessions", tags=["sessions"])


async def require_user(x_user_id: str | None = Header(default=None)) -> str:
    """Return the authenticated subject forwarded by the identity proxy."""
    if not x_user_id:
        raise HTTPException(
            status_code=http_status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return x_user_id


@router.post("", status_code=http_status.HTTP_201_CREATED)
async def create_session(
    body: CreateSessionRequest,
    request: Request,
    user_id: str = Depends(require_user),
) -> dict[str, object]:
    """Create a session in CREATED."""
    container: AppContainer = request.app.state.container
    session = container.session_service.create_session(
        user_id=user_id,
        location=body.location,
        description_raw=body.description_raw,
        shops=[shop.to_domain() for shop in body.shops],
        vehicle=body.vehicle.to_domain() if body.vehicle else None,
    )
    return {"session_id": str(session.id)}


@router.get("")
async def list_sessions(
    request: Request, limit: int = 50, user_id: str = Depends(require_user)
) -> dict[str, object]:
    """Return the caller's sessions, most recent first."""
    container: AppContainer = request.app.state.container
    show_debug = container.settings.environment == "local"
    sessions = container.session_service.list_sessions(user_id, limit)
    return {
        "sessions": [
            SessionView.from_record(session, show_debug).model_dump(mode="json")
            for session in sessions
        ]
    }


@router.get("/{session_id}")
async def get_session(
    session_id: UUID, request: Request, user_id: str = Depends(require_user)
) -> dict[str, object]:
    """Return a session's status and data."""
    container: AppContainer = request.app.state.container
    session = container.session_service.get_owned_session(session_id, user_id)
    view = SessionView.from_record(session, container.settings.environment == "local")
    return view.model_dump(mode="json")


@router.post("/{session_id}/start")
async def start_session(
    session_id: UUID,
    request: Request,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(require_user),
) -> dict[str, str]:
    """Start the workflow; repeated calls are a no-op."""
    container: AppContainer = request.app.state.container
    container.session_service.get_owned_session(session_id, user_id)
    if not container.workflow_service.start(session_id):
        return {"status": "already_started"}
    background_tasks.add_task(container.workflow_service.run, session_id)
    return {"status": "started"}


@router.get("/{session_id}/calls")
async def list_calls(
    session_id: UUID, request: Request, user_id: str = Depends(require_user)
) -> dict[str, object]:
    """Return the call records of a session."""
    container: AppContainer = request.app.state.container
    calls = container.session_service.list_calls(session_id, user_id)
    return {
        "calls": [CallView.from_record(call).model_dump(mode="json") for call in calls]
    }


@router.get("/{session_id}/report")
async def get_report(
    session_id: UUID, request: Request, user_id: str = Depends(require_user)
) -> dict[str, object]:
    """Return the comparison report of a finished session."""
    container: AppContainer = request.app.state.container
    report = container.session_service.get_report(session_id, user_id)
    return report.model_dump(mode="json")
