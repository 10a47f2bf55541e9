"""Runtime settings, read from ``PROFILE_ENGINE_*`` environment variables or ``.env``."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PROFILE_ENGINE_",
        env_file=".env",
        extra="ignore",
    )

    db_path: Path = Path.cwd() / ".profile_engine" / "profiles.db"
    # Seconds before a single store call is abandoned as transient.
    store_timeout: float = Field(default=5.0, gt=0)
    backfill_batch_size: int = Field(default=100, ge=1)
    backfill_concurrency: int = Field(default=1, ge=1)
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
