"""Dependency container wiring for the application."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from supabase import create_client

from home_scan.adapters.azure_vision_client import HttpxAzureVisionClient
from home_scan.adapters.local_image_storage import LocalImageStorage
from home_scan.adapters.openai_report_client import OpenAIReportClient
from home_scan.adapters.pillow_image_processor import PillowImageProcessor
from home_scan.adapters.supabase_image_storage import SupabaseImageStorage
from home_scan.config import Settings
from home_scan.services.analysis import AnalysisCoordinator
from home_scan.services.assessment import (
    HeuristicAssessor,
    LanguageModelAssessor,
    RiskAssessor,
)
from home_scan.services.images import ImageService, ImageStorage
from home_scan.services.session_store import InMemorySessionStore, SessionStore

_logger = logging.getLogger(__name__)


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    store: SessionStore
    image_service: ImageService
    coordinator: AnalysisCoordinator
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    store = InMemorySessionStore(
        ttl=timedelta(hours=resolved_settings.session_expiry_hours)
    )
    storage = _build_storage(resolved_settings)
    image_service = ImageService(
        store=store,
        storage=storage,
        processor=PillowImageProcessor(),
        max_images_per_session=resolved_settings.max_images_per_session,
        max_image_size_bytes=resolved_settings.max_image_size_bytes,
    )

    report_client = None
    image_analyzer = None
    if resolved_settings.openai_api_key:
        report_client = OpenAIReportClient.create(
            resolved_settings.openai_api_key, resolved_settings.openai_base_url
        )
        image_analyzer = LanguageModelAssessor(
            client=report_client,
            model=resolved_settings.openai_model,
            temperature=resolved_settings.openai_temperature,
            max_output_tokens=resolved_settings.openai_max_output_tokens,
        )

    vision_client = None
    assessor: RiskAssessor | None = None
    vision_endpoint = resolved_settings.azure_vision_endpoint
    vision_key = resolved_settings.azure_vision_key
    if resolved_settings.assessor == "heuristic":
        if vision_endpoint and vision_key:
            vision_client = HttpxAzureVisionClient.create(vision_endpoint, vision_key)
            assessor = HeuristicAssessor(client=vision_client)
    else:
        assessor = image_analyzer
    if assessor is None:
        _logger.warning(
            "Risk assessor not configured, analysis is disabled: assessor=%s",
            resolved_settings.assessor,
        )

    coordinator = AnalysisCoordinator(
        store=store,
        storage=storage,
        assessor=assessor,
        image_analyzer=image_analyzer,
        max_images_per_assessment=resolved_settings.max_images_per_assessment,
        load_concurrency=resolved_settings.buffer_load_concurrency,
    )

    async def close_resources() -> None:
        if report_client is not None:
            await report_client.close()
        if vision_client is not None:
            await vision_client.close()

    return AppContainer(
        settings=resolved_settings,
        store=store,
        image_service=image_service,
        coordinator=coordinator,
        close_resources=close_resources,
    )


def _build_storage(settings: Settings) -> ImageStorage:
    if settings.storage_backend == "supabase":
        if not settings.supabase_url or not settings.supabase_service_key:
            raise ValueError(
                "Supabase storage requires SUPABASE_URL and SUPABASE_SERVICE_KEY"
            )
        client = create_client(settings.supabase_url, settings.supabase_service_key)
        return SupabaseImageStorage(client=client, bucket=settings.supabase_bucket)
    return LocalImageStorage.create(settings.storage_dir)
