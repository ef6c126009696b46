"""Derived result views served to clients."""

from pydantic import BaseModel

from home_scan.domain.analysis import RiskLevel
from home_scan.domain.reports import SecurityReport
from home_scan.domain.sessions import Image, Session


class GroupedResult(BaseModel):
    """A primary image with its related close-ups and combined risk."""

    primary_image: Image
    related_images: list[Image]
    combined_risk_score: float
    combined_risk_level: RiskLevel


class ResultsSummary(BaseModel):
    """Everything the results view needs for one session."""

    session: Session
    overall_risk_score: float
    overall_risk_level: RiskLevel
    grouped_results: list[GroupedResult]
    all_recommendations: list[str]
    completed_count: int
    error_count: int
    pending_count: int
    skipped_count: int
    security_report: SecurityReport | None = None
