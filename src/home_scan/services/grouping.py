"""Group images into inspection areas and roll up their risk."""

from home_scan.domain.analysis import RiskLevel
from home_scan.domain.reports import ExposureRisk, SecurityReport
from home_scan.domain.results import GroupedResult, ResultsSummary
from home_scan.domain.sessions import AnalysisStatus, Image, Session
from home_scan.services.scoring import (
    NEUTRAL_SCORE,
    calculate_overall_risk_score,
    classify_risk_level,
    dedupe,
)

EXPOSURE_SCORES: dict[ExposureRisk, float] = {
    ExposureRisk.VERY_LOW: 9.0,
    ExposureRisk.LOW: 7.0,
    ExposureRisk.MEDIUM: 5.0,
    ExposureRisk.HIGH: 3.0,
    ExposureRisk.VERY_HIGH: 1.0,
}


def group_images_by_parent(images: list[Image]) -> list[GroupedResult]:
    """Build one group per primary image, then one per orphaned image.

    Related images keep their upload order. An image whose declared parent
    is not a primary image in the list becomes its own group, so every
    image lands in exactly one group.
    """
    primary_ids = {image.id for image in images if image.is_primary}
    groups: list[GroupedResult] = []
    for primary in images:
        if not primary.is_primary:
            continue
        related = [image for image in images if image.parent_image_id == primary.id]
        groups.append(_group(primary, related))

    for image in images:
        if not image.is_primary and image.parent_image_id not in primary_ids:
            groups.append(_group(image, []))
    return groups


def calculate_group_risk(images: list[Image]) -> tuple[float, RiskLevel]:
    """Return the weighted score and level of the scored images in a group."""
    analyses = [image.analysis for image in images if image.analysis is not None]
    if not analyses:
        return NEUTRAL_SCORE, RiskLevel.MEDIUM
    score = calculate_overall_risk_score(analyses)
    return score, classify_risk_level(score)


def overall_risk_from_report(report: SecurityReport) -> tuple[float, RiskLevel]:
    """Map the report's exposure rating onto the numeric risk scale."""
    score = EXPOSURE_SCORES[report.header.overall_exposure_risk]
    return score, classify_risk_level(score)


def collect_recommendations(images: list[Image]) -> list[str]:
    """Return every per-image recommendation once, in first-seen order."""
    return dedupe(
        recommendation
        for image in images
        if image.analysis is not None
        for recommendation in image.analysis.recommendations
    )


def summarize_results(session: Session) -> ResultsSummary:
    """Assemble grouped results, overall risk and status counts."""
    if session.security_report is not None:
        overall_score, overall_level = overall_risk_from_report(
            session.security_report
        )
    else:
        overall_score, overall_level = calculate_group_risk(session.images)

    statuses = [image.analysis_status for image in session.images]
    return ResultsSummary(
        session=session,
        overall_risk_score=overall_score,
        overall_risk_level=overall_level,
        grouped_results=group_images_by_parent(session.images),
        all_recommendations=collect_recommendations(session.images),
        completed_count=statuses.count(AnalysisStatus.COMPLETE),
        error_count=statuses.count(AnalysisStatus.ERROR),
        pending_count=(
            statuses.count(AnalysisStatus.PENDING)
            + statuses.count(AnalysisStatus.ANALYZING)
        ),
        skipped_count=statuses.count(AnalysisStatus.SKIPPED),
        security_report=session.security_report,
    )


def _group(primary: Image, related: list[Image]) -> GroupedResult:
    score, level = calculate_group_risk([primary, *related])
    return GroupedResult(
        primary_image=primary,
        related_images=related,
        combined_risk_score=score,
        combined_risk_level=level,
    )
