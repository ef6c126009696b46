"""Session endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Query, Request, Response, status

from home_scan.api.models import CreateSessionRequest, UpdateSessionRequest
from home_scan.domain.errors import NotFoundError, ValidationFailedError
from home_scan.domain.sessions import Session
from home_scan.services.images import SESSION_NOT_FOUND

if TYPE_CHECKING:
    from home_scan.containers import AppContainer

_logger = logging.getLogger(__name__)

router = APIRouter(prefix="/session", tags=["session"])

SESSION_ID_REQUIRED = "Session ID is required"
# Session ids become storage path prefixes.
_FORBIDDEN_ID_PARTS = ("/", "\\", "..")


@router.post("", response_model=Session)
async def create_session(
    body: CreateSessionRequest, request: Request, response: Response
) -> Session:
    """Create a session, or return the live one with the same id."""
    if not body.id:
        raise ValidationFailedError(SESSION_ID_REQUIRED)
    if any(part in body.id for part in _FORBIDDEN_ID_PARTS):
        raise ValidationFailedError("Invalid session ID")
    container: AppContainer = request.app.state.container
    existing = container.store.get(body.id)
    if existing is not None:
        return existing
    response.status_code = status.HTTP_201_CREATED
    _logger.info("Session created: id=%s", body.id)
    return container.store.create(body.id)


@router.get("", response_model=Session)
async def get_session(
    request: Request, session_id: str | None = Query(default=None, alias="id")
) -> Session:
    """Return a live session."""
    if not session_id:
        raise ValidationFailedError(SESSION_ID_REQUIRED)
    container: AppContainer = request.app.state.container
    session = container.store.get(session_id)
    if session is None:
        raise NotFoundError(SESSION_NOT_FOUND)
    return session


@router.patch("", response_model=Session)
async def update_session(body: UpdateSessionRequest, request: Request) -> Session:
    """Update the location or status of a session."""
    if not body.id:
        raise ValidationFailedError(SESSION_ID_REQUIRED)
    changes: dict[str, object] = {}
    if body.location is not None:
        changes["location"] = body.location.to_location()
    if body.analysis_status is not None:
        changes["analysis_status"] = body.analysis_status
    container: AppContainer = request.app.state.container
    session = container.store.update(body.id, changes)
    if session is None:
        raise NotFoundError(SESSION_NOT_FOUND)
    return session


@router.delete("")
async def delete_session(
    request: Request, session_id: str | None = Query(default=None, alias="id")
) -> dict[str, str]:
    """Delete a session and its stored images."""
    if not session_id:
        raise ValidationFailedError(SESSION_ID_REQUIRED)
    container: AppContainer = request.app.state.container
    await container.image_service.delete_session(session_id)
    return {"status": "deleted"}
