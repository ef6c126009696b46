"""Analysis and results endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Request

from home_scan.api.models import AnalysisResponse, AnalyzeRequest
from home_scan.domain.errors import NotFoundError, ValidationFailedError
from home_scan.domain.results import ResultsSummary
from home_scan.services.grouping import summarize_results
from home_scan.services.images import SESSION_NOT_FOUND

if TYPE_CHECKING:
    from home_scan.containers import AppContainer

router = APIRouter(tags=["analysis"])


@router.post("/analyze", response_model=AnalysisResponse)
async def analyze(body: AnalyzeRequest, request: Request) -> AnalysisResponse:
    """Analyze every pending image of a session."""
    container: AppContainer = request.app.state.container
    run = await container.coordinator.analyze(_require_session_id(body))
    return AnalysisResponse.from_run(run)


@router.post("/analyze/retry", response_model=AnalysisResponse)
async def retry_analysis(body: AnalyzeRequest, request: Request) -> AnalysisResponse:
    """Re-run analysis for images that failed or were skipped."""
    container: AppContainer = request.app.state.container
    run = await container.coordinator.retry_failed(_require_session_id(body))
    return AnalysisResponse.from_run(run)


@router.get("/results/{session_id}", response_model=ResultsSummary)
async def results(session_id: str, request: Request) -> ResultsSummary:
    """Return grouped findings and aggregate risk for a session."""
    container: AppContainer = request.app.state.container
    session = container.store.get(session_id)
    if session is None:
        raise NotFoundError(SESSION_NOT_FOUND)
    return summarize_results(session)


def _require_session_id(body: AnalyzeRequest) -> str:
    if not body.session_id:
        raise ValidationFailedError("Session ID is required")
    return body.session_id
