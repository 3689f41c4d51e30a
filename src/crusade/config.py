"""Application settings for the crusade engine and its HTTP API."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings read from the environment (``CRUSADE_*``) or a ``.env`` file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", env_prefix="CRUSADE_")

    data_dir: Path = Field(default=Path("campaigns"), description="Where campaign snapshots live")
    backup_ring_size: int = Field(default=10, ge=1, description="Snapshots kept per campaign")
    autosave_interval_seconds: float = Field(
        default=300.0,
        gt=0.0,
        description="Real-time seconds between automatic snapshots of open campaigns",
    )
    edition: str = Field(default="10th", description="Rules edition used for new campaigns")
    log_level: str = Field(default="INFO", description="Root logging level")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"],
        description="Origins allowed to call the HTTP API",
    )


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    settings = Settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    return settings
