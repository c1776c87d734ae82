"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from autoquote.api.sessions import router as sessions_router
from autoquote.api.webhooks import router as webhooks_router
from autoquote.app_logging import configure_logging
from autoquote.containers import AppContainer
from autoquote.errors import (
    AutoQuoteError,
    ForbiddenError,
    NotFoundError,
    ReportNotReadyError,
    ValidationError,
)

_STATUS_CODES: dict[type[AutoQuoteError], int] = {
    ValidationError: 422,
    NotFoundError: 404,
    ForbiddenError: 403,
    ReportNotReadyError: 409,
}


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Starting in %s (demo mode: %s, outbound calls: %s)",
            container.settings.environment,
            container.settings.demo_mode,
            container.settings.allow_outbound_calls,
        )
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(sessions_router)
    app.include_router(webhooks_router)

    @app.exception_handler(AutoQuoteError)
    async def handle_domain_error(
        request: Request, exc: AutoQuoteError
    ) -> JSONResponse:
        for error_type, status_code in _STATUS_CODES.items():
            if isinstance(exc, error_type):
                return JSONResponse(
                    status_code=status_code, content={"error": str(exc)}
                )
        logger.exception(
            "Unhandled orchestrator error", extra={"path": request.url.path}
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
