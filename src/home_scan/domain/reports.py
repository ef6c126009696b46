"""Structured security report produced by the language model path."""

from enum import Enum

from pydantic import BaseModel, Field


class ExposureRisk(str, Enum):
    """Five-level exposure classification."""

    VERY_LOW = "Very Low"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    VERY_HIGH = "Very High"


class ConfidenceLevel(str, Enum):
    """Confidence attached to an exposure rating."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class EffortCostLevel(str, Enum):
    """Effort or cost of a recommendation."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class SecurityReportHeader(BaseModel):
    """Overall rating and summary."""

    overall_exposure_risk: ExposureRisk
    overall_confidence: ConfidenceLevel
    summary: str
    date: str
    areas_analyzed: int


class AreaAnalysis(BaseModel):
    """Assessment of one inspected area."""

    area: str
    exposure_risk: ExposureRisk
    confidence: ConfidenceLevel
    notes: str
    recommendation: str
    effort: EffortCostLevel
    cost: EffortCostLevel


class PrioritizedRecommendation(BaseModel):
    """Recommendation with a 1-based priority."""

    recommendation: str
    effort: EffortCostLevel
    cost: EffortCostLevel
    priority: int = Field(ge=1)


class SecurityReport(BaseModel):
    """Normalized security report shared by a whole analysis batch."""

    header: SecurityReportHeader
    areas: list[AreaAnalysis] = Field(default_factory=list)
    prioritized_recommendations: list[PrioritizedRecommendation] = Field(
        default_factory=list
    )
    conclusion: str
    limitations: list[str] = Field(default_factory=list)


class LanguageModelAnalysis(BaseModel):
    """Outcome of a single-image language model call."""

    raw_response: str = ""
    parsed_report: SecurityReport | None = None
    processing_time_ms: int = 0
    error: str | None = None
