"""Models for vision signals and heuristic risk analysis."""

from enum import Enum

from pydantic import BaseModel, Field


class RiskLevel(str, Enum):
    """Qualitative risk band derived from a numeric score."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Tag(BaseModel):
    """Tag detected by the vision service."""

    name: str
    confidence: float = 0.0


class BoundingBox(BaseModel):
    """Pixel rectangle of a detected object."""

    x: float
    y: float
    w: float
    h: float


class DetectedObject(BaseModel):
    """Object detected by the vision service."""

    name: str
    confidence: float = 0.0
    bounding_box: BoundingBox | None = None


class VisionSignals(BaseModel):
    """Raw per-image signals used as scoring input."""

    tags: list[Tag] = Field(default_factory=list)
    caption: str = ""
    detected_objects: list[DetectedObject] = Field(default_factory=list)


class ImageAnalysis(BaseModel):
    """Heuristic per-image security assessment."""

    tags: list[Tag] = Field(default_factory=list)
    caption: str = ""
    detected_objects: list[DetectedObject] = Field(default_factory=list)
    risk_score: float = Field(ge=1.0, le=10.0)
    risk_level: RiskLevel
    risk_notes: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
