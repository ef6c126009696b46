"""Shared test fixtures."""

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from home_scan.config import Settings
from home_scan.containers import AppContainer
from home_scan.domain.analysis import Tag, VisionSignals
from home_scan.domain.errors import ValidationFailedError
from home_scan.domain.sessions import AnalysisStatus, Image
from home_scan.services.analysis import AnalysisCoordinator
from home_scan.services.assessment import (
    ImageTaggingClient,
    LanguageModelAssessor,
    SecurityReportClient,
)
from home_scan.services.images import (
    ImageProcessor,
    ImageService,
    ImageStorage,
    ProcessedImage,
)
from home_scan.services.session_store import InMemorySessionStore

START = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)

REPORT_PAYLOAD: dict[str, object] = {
    "header": {
        "overallExposureRisk": "High",
        "overallConfidence": "Medium",
        "summary": "Rear access is poorly lit and the side gate does not latch.",
        "date": "01/03/2025",
        "areasAnalyzed": 2,
    },
    "areas": [
        {
            "area": "Side Gate",
            "exposureRisk": "High",
            "confidence": "High",
            "notes": "Gate latch is broken and the gate swings open.",
            "recommendation": "Replace the latch with a lockable gravity latch.",
            "effort": "Low",
            "cost": "Low",
        },
        {
            "area": "Back Door",
            "exposureRisk": "Medium",
            "confidence": "Medium",
            "notes": "Solid door but no deadbolt visible.",
            "recommendation": "Fit a keyed deadbolt.",
            "effort": "Medium",
            "cost": "Medium",
        },
    ],
    "prioritizedRecommendations": [
        {
            "recommendation": "Repair the side gate latch",
            "effort": "Low",
            "cost": "Low",
            "priority": 1,
        },
        {
            "recommendation": "Install a deadbolt on the back door",
            "effort": "Medium",
            "cost": "Medium",
            "priority": 2,
        },
    ],
    "conclusion": "Fix the gate first, then the back door.",
    "limitations": ["Night-time lighting could not be assessed."],
}
REPORT_JSON = json.dumps(REPORT_PAYLOAD)


@dataclass
class MutableClock:
    """Clock that only moves when told to."""

    now: datetime = START

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class InMemoryImageStorage(ImageStorage):
    """In-memory blob storage for tests."""

    files: dict[str, bytes] = field(default_factory=dict)
    failing_paths: set[str] = field(default_factory=set)
    deleted: list[str] = field(default_factory=list)

    async def save(self, path: str, data: bytes) -> None:
        self.files[path] = data

    async def load(self, path: str) -> bytes | None:
        if path in self.failing_paths:
            raise OSError(f"storage unavailable: {path}")
        return self.files.get(path)

    async def delete(self, path: str) -> None:
        self.deleted.append(path)
        self.files.pop(path, None)


@dataclass
class FakeImageProcessor(ImageProcessor):
    """Processor that tags bytes instead of decoding them."""

    def process(self, data: bytes) -> ProcessedImage:
        if data.startswith(b"corrupt"):
            raise ValidationFailedError("Invalid or corrupted image file")
        return ProcessedImage(original=b"jpeg:" + data, thumbnail=b"thumb:" + data)


@dataclass
class FakeReportClient(SecurityReportClient):
    """Fake language model client returning a fixed reply."""

    reply: str = REPORT_JSON
    error: Exception | None = None
    calls: list[dict[str, object]] = field(default_factory=list)

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
        self.calls.append(
            {
                "model": model,
                "prompt": prompt,
                "image_data_urls": image_data_urls,
                "temperature": temperature,
                "max_output_tokens": max_output_tokens,
            }
        )
        if self.error is not None:
            raise self.error
        return self.reply


@dataclass
class FakeTaggingClient(ImageTaggingClient):
    """Fake vision client keyed by image bytes."""

    signals: dict[bytes, VisionSignals] = field(default_factory=dict)
    failing: set[bytes] = field(default_factory=set)
    calls: list[bytes] = field(default_factory=list)

    async def analyze(self, image_bytes: bytes) -> VisionSignals:
        self.calls.append(image_bytes)
        if image_bytes in self.failing:
            raise RuntimeError("vision service unavailable")
        return self.signals.get(
            image_bytes,
            VisionSignals(
                tags=[Tag(name="door", confidence=0.9)],
                caption="a steel door with a deadbolt",
            ),
        )


def make_image(
    image_id: str,
    session_id: str = "s1",
    parent_image_id: str | None = None,
    status: AnalysisStatus = AnalysisStatus.PENDING,
) -> Image:
    """Build an image record with conventional storage paths."""
    return Image(
        id=image_id,
        session_id=session_id,
        parent_image_id=parent_image_id,
        original_filename=f"{image_id}.jpg",
        storage_path=f"{session_id}/{image_id}.jpg",
        thumbnail_path=f"{session_id}/{image_id}_thumb.jpg",
        uploaded_at=START,
        analysis_status=status,
    )


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def store(clock: MutableClock) -> InMemorySessionStore:
    return InMemorySessionStore(clock=clock)


@pytest.fixture
def storage() -> InMemoryImageStorage:
    return InMemoryImageStorage()


@pytest.fixture
def report_client() -> FakeReportClient:
    return FakeReportClient()


@pytest.fixture
def language_model_assessor(report_client: FakeReportClient) -> LanguageModelAssessor:
    return LanguageModelAssessor(client=report_client, model="gpt-4o")


@pytest.fixture
def image_service(
    store: InMemorySessionStore, storage: InMemoryImageStorage
) -> ImageService:
    return ImageService(store=store, storage=storage, processor=FakeImageProcessor())


@pytest.fixture
def coordinator(
    store: InMemorySessionStore,
    storage: InMemoryImageStorage,
    language_model_assessor: LanguageModelAssessor,
) -> AnalysisCoordinator:
    return AnalysisCoordinator(
        store=store,
        storage=storage,
        assessor=language_model_assessor,
        image_analyzer=language_model_assessor,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key="openai-key",
        storage_backend="local",
        environment="test",
    )


@pytest.fixture
def container(
    settings: Settings,
    store: InMemorySessionStore,
    image_service: ImageService,
    coordinator: AnalysisCoordinator,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        store=store,
        image_service=image_service,
        coordinator=coordinator,
        close_resources=close_resources,
    )
