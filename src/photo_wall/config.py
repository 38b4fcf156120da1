"""Application configuration."""

import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    max_photos: int = Field(default=50, ge=1)
    max_concurrent_uploads: int = Field(default=4, ge=1)
    max_image_bytes: int = Field(default=3 * 1024 * 1024, ge=1)
    persist_debounce_seconds: float = 1.0
    persistence_enabled: bool = True
    data_file: str = "photos.json"
    upload_dir: str = "uploads"
    image_url_prefix: str = "/uploads"
    viewer_queue_size: int = Field(default=100, ge=1)
    cors_allow_origins: str = "*"
    openai_api_key: str | None = None
    openai_moderation_model: str = "omni-moderation-latest"
    moderation_fail_open: bool = True
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3000
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_cors_origins(raw: str | None) -> list[str]:
    """Parse allowed CORS origins from env."""
    if raw is None:
        return ["*"]
    cleaned = raw.strip()
    if cleaned in {"", "*"}:
        return ["*"]
    origins: list[str] = []
    for chunk in cleaned.split(","):
        value = chunk.strip().rstrip("/")
        if value and value not in origins:
            origins.append(value)
    return origins or ["*"]
