"""FastAPI application factory."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from home_scan.api.analysis import router as analysis_router
from home_scan.api.images import router as images_router
from home_scan.api.sessions import router as sessions_router
from home_scan.app_logging import configure_logging
from home_scan.containers import AppContainer
from home_scan.domain.errors import (
    AnalysisInProgressError,
    NotFoundError,
    ServiceUnavailableError,
    ValidationFailedError,
)
from home_scan.services.session_store import run_expiry_sweeper

_ERROR_STATUS: dict[type[Exception], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ValidationFailedError: status.HTTP_400_BAD_REQUEST,
    AnalysisInProgressError: status.HTTP_409_CONFLICT,
    ServiceUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        sweeper = asyncio.create_task(
            run_expiry_sweeper(
                state_container.store,
                state_container.settings.session_sweep_interval_seconds,
            )
        )
        yield
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    for error_type, status_code in _ERROR_STATUS.items():
        app.add_exception_handler(error_type, _error_handler(status_code))

    app.include_router(sessions_router)
    app.include_router(images_router)
    app.include_router(analysis_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    logger.info(
        "Application configured: environment=%s assessor=%s storage=%s",
        container.settings.environment,
        container.settings.assessor,
        container.settings.storage_backend,
    )
    return app


def _error_handler(
    status_code: int,
) -> Callable[[Request, Exception], Awaitable[JSONResponse]]:
    async def handle(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    return handle
