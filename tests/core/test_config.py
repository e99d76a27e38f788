from __future__ import annotations

import pytest

from assessment_service.core.config import load_settings

_VARS = (
    "APP_ENV",
    "LOG_LEVEL",
    "LOG_JSON",
    "PORT",
    "DATABASE_URL",
    "REDIS_URL",
    "LEADERBOARD_CACHE_TTL",
    "SWEEP_INTERVAL_SECONDS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


# ---- valid values ----


def test_load_settings_defaults() -> None:
    settings = load_settings()
    assert settings.app_env == "dev"
    assert settings.log_level == "info"
    assert settings.log_json is False
    assert settings.port == 8000
    assert settings.database_url is None
    assert settings.redis_url is None
    assert settings.leaderboard_cache_ttl == 30
    assert settings.sweep_interval_seconds == 30
    assert settings.is_dev


def test_load_settings_respects_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.setenv("LOG_LEVEL", "error")
    monkeypatch.setenv("LOG_JSON", "true")
    monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://db/assessments")
    monkeypatch.setenv("LEADERBOARD_CACHE_TTL", "120")
    monkeypatch.setenv("SWEEP_INTERVAL_SECONDS", "5")
    settings = load_settings()
    assert settings.is_prod
    assert settings.log_level == "error"
    assert settings.log_json is True
    assert settings.database_url == "postgresql+asyncpg://db/assessments"
    assert settings.leaderboard_cache_ttl == 120
    assert settings.sweep_interval_seconds == 5


def test_load_settings_normalizes_case_and_whitespace(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("APP_ENV", "  TEST ")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    settings = load_settings()
    assert settings.app_env == "test"
    assert settings.log_level == "debug"


def test_blank_urls_mean_not_configured(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "   ")
    monkeypatch.setenv("REDIS_URL", "")
    settings = load_settings()
    assert settings.database_url is None
    assert settings.redis_url is None


# ---- invalid values ----


def test_rejects_invalid_app_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "staging")
    with pytest.raises(ValueError, match="APP_ENV must be dev|test|prod"):
        load_settings()


def test_rejects_invalid_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    with pytest.raises(ValueError, match="LOG_LEVEL"):
        load_settings()


def test_rejects_invalid_log_json(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_JSON", "yes")
    with pytest.raises(ValueError, match="LOG_JSON"):
        load_settings()


def test_rejects_non_integer_ttl(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LEADERBOARD_CACHE_TTL", "soon")
    with pytest.raises(ValueError, match="LEADERBOARD_CACHE_TTL must be an integer"):
        load_settings()


def test_rejects_zero_sweep_interval(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SWEEP_INTERVAL_SECONDS", "0")
    with pytest.raises(ValueError, match="SWEEP_INTERVAL_SECONDS must be >= 1"):
        load_settings()
