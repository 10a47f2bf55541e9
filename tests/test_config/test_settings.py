"""Tests for environment-driven settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from profile_engine.config import Settings


def test_defaults() -> None:
    settings = Settings(_env_file=None)
    assert settings.db_path.name == "profiles.db"
    assert settings.store_timeout == 5.0
    assert settings.backfill_batch_size == 100
    assert settings.backfill_concurrency == 1


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PROFILE_ENGINE_DB_PATH", str(tmp_path / "env.db"))
    monkeypatch.setenv("PROFILE_ENGINE_BACKFILL_CONCURRENCY", "8")
    monkeypatch.setenv("PROFILE_ENGINE_STORE_TIMEOUT", "0.5")
    settings = Settings(_env_file=None)
    assert settings.db_path == tmp_path / "env.db"
    assert settings.backfill_concurrency == 8
    assert settings.store_timeout == 0.5


def test_rejects_invalid_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROFILE_ENGINE_BACKFILL_BATCH_SIZE", "0")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)
