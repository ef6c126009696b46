"""Application configuration."""

import os
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    session_expiry_hours: float = 24
    session_sweep_interval_seconds: float = 3600
    max_images_per_session: int = 30
    max_image_size_bytes: int = 10 * 1024 * 1024
    max_images_per_assessment: int = 10
    buffer_load_concurrency: int = 5
    assessor: Literal["llm", "heuristic"] = "llm"
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    openai_model: str = "gpt-4o"
    openai_temperature: float = 0.3
    openai_max_output_tokens: int = 3000
    azure_vision_endpoint: str | None = None
    azure_vision_key: str | None = None
    storage_backend: Literal["local", "supabase"] = "local"
    storage_dir: str | None = None
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    supabase_bucket: str = "home-scan-images"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
