"""Environment-based configuration for WasteLens."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from WASTELENS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="WASTELENS_",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8083

    # Authentication (None = disabled)
    api_key: str | None = None

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)
    queue_timeout: float = Field(default=5.0, gt=0)
    classify_timeout: float = Field(default=10.0, gt=0)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=10_485_760, ge=1)

    # Heuristic
    sample_target: int = Field(default=8000, ge=1)
    jitter: float = Field(default=0.1, ge=0.0, lt=1.0)
    jitter_seed: int | None = None

    # Optional label file (one category per line); defaults used when unset
    classes_file: Path | None = None


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
