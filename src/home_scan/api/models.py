"""Request and response bodies for the HTTP API."""

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from home_scan.domain.errors import ValidationFailedError
from home_scan.domain.sessions import AnalysisStatus, Coordinates, Location, Session
from home_scan.services.analysis import AnalysisRun


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LocationPayload(CamelModel):
    """Location as sent by clients."""

    suburb: str | None = None
    city: str | None = None
    coordinates: Coordinates | None = None
    source: str = "manual"
    risk_factor: float = 1.0

    def to_location(self) -> Location:
        """Convert to the domain location.

        Raises ``ValidationFailedError`` naming the first rejected field.
        """
        try:
            return Location.model_validate(self.model_dump())
        except ValidationError as exc:
            error = exc.errors()[0]
            field_name = ".".join(str(part) for part in error["loc"])
            raise ValidationFailedError(
                f"Invalid location {field_name}: {error['msg']}"
            ) from exc


class CreateSessionRequest(CamelModel):
    """Body for creating a session."""

    id: str | None = None


class UpdateSessionRequest(CamelModel):
    """Body for a partial session update."""

    id: str | None = None
    location: LocationPayload | None = None
    analysis_status: AnalysisStatus | None = None


class AnalyzeRequest(CamelModel):
    """Body naming the session to analyze."""

    session_id: str | None = None


class RelateRequest(CamelModel):
    """Body naming the new parent of an image."""

    parent_image_id: str | None = None


class UploadResponse(BaseModel):
    """Identifiers and URLs of a stored upload."""

    image_id: str
    thumbnail_url: str
    original_url: str


class RemovalResponse(BaseModel):
    """Images removed by a delete."""

    removed_image_ids: list[str]
    remaining_images: int


class RunSummary(BaseModel):
    """Per-image outcome of one analysis batch."""

    analyzed_image_ids: list[str]
    load_failed_image_ids: list[str]
    assessment_failed_image_ids: list[str]
    skipped_image_ids: list[str]
    findings_produced: bool


class AnalysisResponse(BaseModel):
    """Session state after an analysis batch."""

    session: Session
    run: RunSummary

    @classmethod
    def from_run(cls, run: AnalysisRun) -> "AnalysisResponse":
        """Build the response from a finished run."""
        return cls(
            session=run.session,
            run=RunSummary(
                analyzed_image_ids=run.analyzed_image_ids,
                load_failed_image_ids=run.load_failed_image_ids,
                assessment_failed_image_ids=run.assessment_failed_image_ids,
                skipped_image_ids=run.skipped_image_ids,
                findings_produced=run.findings_produced,
            ),
        )
