from __future__ import annotations

import os

import pytest

from config.settings import RetrySettings, ScreenshotSettings, Settings
from utils.exceptions import ConfigurationError


def test_defaults() -> None:
    settings = Settings()

    assert settings.categorization.cache_ttl_days == 30
    assert settings.screenshot.rate_limit_max_retries == 3
    assert settings.screenshot.http_max_retries == 1
    assert settings.scraper.max_results_per_selector == 5


def test_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("PIPELINE_RETRY_METADATA_MAX_ATTEMPTS", "2")
    monkeypatch.setenv("SCREENSHOT_RATE_LIMIT_DELAY_MS", "10")

    assert RetrySettings().metadata_max_attempts == 2
    assert ScreenshotSettings().rate_limit_delay_ms == 10


def test_invalid_env_raises_configuration_error(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("SCRAPER_TIMEOUT", "soon")

    with pytest.raises(ConfigurationError) as excinfo:
        Settings.load_from_env_file(tmp_path / "missing.env")

    assert excinfo.value.message == "Invalid pipeline settings"
    assert excinfo.value.details["errors"]


def test_load_from_env_file(tmp_path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("CATEGORIZATION_CACHE_TTL_DAYS=7\n", encoding="utf-8")
    os.environ.pop("CATEGORIZATION_CACHE_TTL_DAYS", None)

    try:
        settings = Settings.load_from_env_file(env_file)
    finally:
        os.environ.pop("CATEGORIZATION_CACHE_TTL_DAYS", None)

    assert settings.categorization.cache_ttl_days == 7
