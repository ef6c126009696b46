"""Pluggable risk assessment strategies for a batch of images."""

import base64
import logging
import time
from dataclasses import dataclass, field
from typing import Protocol

from home_scan.domain.analysis import ImageAnalysis, VisionSignals
from home_scan.domain.reports import LanguageModelAnalysis, SecurityReport
from home_scan.services.reports import normalize_report
from home_scan.services.scoring import calculate_risk_score

_logger = logging.getLogger(__name__)

SECURITY_AUDITOR_PROMPT = """You are a home security auditor that helps \
homeowners evaluate the physical security exposure of their property from \
photos of doors, windows, yards, lighting, fences, garages and other \
exterior features.

Act like a professional property security inspector. Identify observable \
vulnerabilities only: access points, visibility limitations, lighting gaps, \
approach paths and perimeter weaknesses. Do not speculate about unseen \
areas, individuals, intent or criminal behaviour.

Assess visible vulnerabilities first, then weigh deterrence, convenience and \
the balance between security and usability. If images are unclear, state the \
limitations plainly and note which additional photos would help.

Exposure risk values: Very Low, Low, Medium, High, Very High.
Confidence values: High, Medium, Low.
Effort and cost values: Low, Medium, High.

Keep the tone direct, practical and proportionate. No fear-based language, \
no exaggeration, no brand bias.

Respond with valid JSON only, no markdown, using exactly this structure:

{
  "header": {
    "overallExposureRisk": "Very Low|Low|Medium|High|Very High",
    "overallConfidence": "High|Medium|Low",
    "summary": "One-line overview of general exposure and key issue",
    "date": "DD/MM/YYYY",
    "areasAnalyzed": 0
  },
  "areas": [
    {
      "area": "Front Door, Windows, Garage, Perimeter, Lighting, ...",
      "exposureRisk": "Very Low|Low|Medium|High|Very High",
      "confidence": "High|Medium|Low",
      "notes": "Concise observation summary",
      "recommendation": "Specific improvement suggestion",
      "effort": "Low|Medium|High",
      "cost": "Low|Medium|High"
    }
  ],
  "prioritizedRecommendations": [
    {
      "recommendation": "Specific actionable recommendation",
      "effort": "Low|Medium|High",
      "cost": "Low|Medium|High",
      "priority": 1
    }
  ],
  "conclusion": "Closing summary with key action items",
  "limitations": ["Assessment limitations due to image quality or visibility"]
}"""


@dataclass(frozen=True)
class ImageInput:
    """Image bytes handed to an assessor."""

    image_id: str
    data: bytes


@dataclass
class AssessmentOutcome:
    """Result of assessing one batch."""

    report: SecurityReport | None = None
    analyses: dict[str, ImageAnalysis] = field(default_factory=dict)
    failed_image_ids: set[str] = field(default_factory=set)

    @property
    def produced(self) -> bool:
        """Return true when the batch yielded any findings."""
        return self.report is not None or bool(self.analyses)


class RiskAssessor(Protocol):
    """Strategy that turns image bytes into risk findings."""

    async def assess(
        self, images: list[ImageInput], location_risk_factor: float = 1.0
    ) -> AssessmentOutcome:
        """Assess a batch of images."""


class SecurityReportClient(Protocol):
    """Interface for multimodal language model calls."""

    async def generate_report(  # noqa: PLR0913
        self,
        *,
        model: str,
        system_prompt: str,
        prompt: str,
        image_data_urls: list[str],
        temperature: float,
        max_output_tokens: int,
    ) -> str:
        """Return the raw text produced by the model."""


class ImageTaggingClient(Protocol):
    """Interface for vision services that tag and caption images."""

    async def analyze(self, image_bytes: bytes) -> VisionSignals:
        """Return tags, caption and detected objects for an image."""


@dataclass
class LanguageModelAssessor(RiskAssessor):
    """Produces one shared security report for a whole batch."""

    client: SecurityReportClient
    model: str
    temperature: float = 0.3
    max_output_tokens: int = 3000

    async def assess(
        self, images: list[ImageInput], location_risk_factor: float = 1.0
    ) -> AssessmentOutcome:
        """Send every image in one call and normalize the reply."""
        if not images:
            return AssessmentOutcome()
        prompt = (
            f"Analyze these {len(images)} property images for security "
            "vulnerabilities and provide a comprehensive professional security "
            "assessment covering all visible areas."
        )
        raw = await self.client.generate_report(
            model=self.model,
            system_prompt=SECURITY_AUDITOR_PROMPT,
            prompt=prompt,
            image_data_urls=[to_data_url(image.data) for image in images],
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
        )
        return AssessmentOutcome(report=normalize_report(raw))

    async def analyze_image(self, image_bytes: bytes) -> LanguageModelAnalysis:
        """Assess a single image, recording upstream failures in the result."""
        started = time.monotonic()
        try:
            raw = await self.client.generate_report(
                model=self.model,
                system_prompt=SECURITY_AUDITOR_PROMPT,
                prompt=(
                    "Analyze this property image for security vulnerabilities "
                    "and provide a professional security assessment."
                ),
                image_data_urls=[to_data_url(image_bytes)],
                temperature=self.temperature,
                max_output_tokens=self.max_output_tokens,
            )
        except Exception as exc:
            _logger.exception("Single image language model analysis failed")
            return LanguageModelAnalysis(
                processing_time_ms=_elapsed_ms(started),
                error=str(exc) or type(exc).__name__,
            )
        return LanguageModelAnalysis(
            raw_response=raw,
            parsed_report=normalize_report(raw),
            processing_time_ms=_elapsed_ms(started),
        )


@dataclass
class HeuristicAssessor(RiskAssessor):
    """Scores each image from vision-service tags with the keyword engine."""

    client: ImageTaggingClient

    async def assess(
        self, images: list[ImageInput], location_risk_factor: float = 1.0
    ) -> AssessmentOutcome:
        """Tag and score each image; failures are tracked per image."""
        outcome = AssessmentOutcome()
        for image in images:
            try:
                signals = await self.client.analyze(image.data)
            except Exception:
                _logger.exception(
                    "Vision analysis failed", extra={"image_id": image.image_id}
                )
                outcome.failed_image_ids.add(image.image_id)
                continue
            outcome.analyses[image.image_id] = calculate_risk_score(
                signals.tags,
                signals.caption,
                signals.detected_objects,
                location_risk_factor,
            )
        return outcome


def to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = _detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    return "image/jpeg"


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
