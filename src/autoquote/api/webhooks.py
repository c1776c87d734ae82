"""Inbound webhooks from the voice platform and the image-to-text service."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, BackgroundTasks, Header, HTTPException, Request
from fastapi import status as http_status
from pydantic import ValidationError as PydanticValidationError

from autoquote.domain.events import CallEvent, ImagePromptEvent

if TYPE_CHECKING:
    from autoquote.containers import AppContainer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


def verify_signature(secret: str, body: bytes, signature: str) -> bool:
    """Check a hex HMAC-SHA256 of the raw body."""
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


def _parse_call_event(body: bytes) -> CallEvent:
    payload = json.loads(body)
    # Server messages may arrive wrapped in a "message" envelope.
    if isinstance(payload, dict) and isinstance(payload.get("message"), dict):
        payload = payload["message"]
    return CallEvent.model_validate(payload)


@router.post("/api/vapi/webhook")
async def vapi_webhook(
    request: Request, x_vapi_signature: str | None = Header(default=None)
) -> dict[str, object]:
    """Apply a call lifecycle event."""
    container: AppContainer = request.app.state.container
    body = await request.body()
    if x_vapi_signature is not None and not verify_signature(
        container.settings.vapi_webhook_secret, body, x_vapi_signature
    ):
        logger.error("Rejected voice webhook with invalid signature")
        raise HTTPException(
            status_code=http_status.HTTP_401_UNAUTHORIZED, detail="Invalid signature"
        )

    try:
        event = _parse_call_event(body)
    except (ValueError, PydanticValidationError) as exc:
        logger.warning("Unparseable voice webhook body: %s", exc)
        raise HTTPException(
            status_code=http_status.HTTP_400_BAD_REQUEST, detail="Invalid payload"
        ) from exc

    logger.info("Received voice event %s", event.type)
    if event.resolve_correlation() is None:
        # A 200 stops the platform from retrying an event we can never process.
        logger.error("Voice event %s is missing correlation metadata", event.type)
        return {"received": True, "warning": "Missing metadata"}

    result = await container.aggregator.handle_event(event)
    return {"received": True, "result": result.value}


@router.get("/api/vapi/webhook")
async def vapi_webhook_health() -> dict[str, str]:
    """Health check used when registering the webhook."""
    return {
        "status": "ok",
        "service": "vapi-webhook",
        "timestamp": datetime.now(tz=UTC).isoformat(),
    }


@router.post("/api/webhooks/image-to-prompt")
async def image_to_prompt_webhook(
    event: ImagePromptEvent,
    request: Request,
    background_tasks: BackgroundTasks,
    session_id: UUID | None = None,
) -> dict[str, bool]:
    """Store the image description produced for a session."""
    if session_id is None:
        raise HTTPException(
            status_code=http_status.HTTP_400_BAD_REQUEST,
            detail="Missing session_id parameter",
        )
    container: AppContainer = request.app.state.container
    logger.info(
        "Image task %s for session %s: %s", event.task_id, session_id, event.status
    )

    if event.status == "COMPLETED":
        prompt = event.prompt
        if prompt:
            background_tasks.add_task(
                container.workflow_service.record_image_description, session_id, prompt
            )
        else:
            logger.warning("Image task completed without text for %s", session_id)
    elif event.status == "FAILED":
        # The workflow continues from the text description alone.
        logger.error("Image task failed for session %s: %s", session_id, event.error)
    return {"received": True}


@router.get("/api/webhooks/image-to-prompt")
async def image_to_prompt_health() -> dict[str, str]:
    return {
        "status": "ok",
        "service": "image-to-prompt-webhook",
        "timestamp": datetime.now(tz=UTC).isoformat(),
    }
