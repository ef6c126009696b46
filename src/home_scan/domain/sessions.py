"""Domain models for scan sessions and uploaded images."""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from home_scan.domain.analysis import ImageAnalysis
from home_scan.domain.reports import LanguageModelAnalysis, SecurityReport


class AnalysisStatus(str, Enum):
    """Lifecycle status of a session or an image.

    ``SKIPPED`` only applies to images: the batch call succeeded but the
    image was beyond the per-call cap and has no findings of its own.
    """

    PENDING = "pending"
    ANALYZING = "analyzing"
    COMPLETE = "complete"
    SKIPPED = "skipped"
    ERROR = "error"


class Coordinates(BaseModel):
    """Latitude/longitude pair."""

    lat: float
    lng: float


class Location(BaseModel):
    """Where the inspected property is."""

    suburb: str | None = None
    city: str | None = None
    coordinates: Coordinates | None = None
    source: Literal["auto", "manual"] = "manual"
    risk_factor: float = Field(default=1.0, gt=0.0, le=10.0, allow_inf_nan=False)


class Image(BaseModel):
    """Uploaded photo within a session."""

    id: str
    session_id: str
    parent_image_id: str | None = None
    original_filename: str
    storage_path: str
    thumbnail_path: str
    uploaded_at: datetime
    analysis_status: AnalysisStatus = AnalysisStatus.PENDING
    analysis: ImageAnalysis | None = None
    llm_analysis: LanguageModelAnalysis | None = None

    @property
    def is_primary(self) -> bool:
        """Return true when the image anchors its own area."""
        return self.parent_image_id is None


class Session(BaseModel):
    """Bounded-lifetime unit of work holding images and the report."""

    id: str
    created_at: datetime
    expires_at: datetime
    location: Location | None = None
    images: list[Image] = Field(default_factory=list)
    analysis_status: AnalysisStatus = AnalysisStatus.PENDING
    security_report: SecurityReport | None = None

    def find_image(self, image_id: str) -> Image | None:
        """Return the image with the given id, if present."""
        for image in self.images:
            if image.id == image_id:
                return image
        return None
