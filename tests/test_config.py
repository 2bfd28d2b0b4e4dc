"""Tests for environment-driven settings."""

import os

from config import Settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        for var in (
            "OPENWEATHER_API_KEY",
            "CACHED_ZIP_CODES",
            "REFRESH_INTERVAL_SECONDS",
            "RETRY_DEADLINE_SECONDS",
            "BACKGROUND_JOBS_ENABLED",
            "ZIP_STORAGE_DIR",
            "ENVIRONMENT",
        ):
            monkeypatch.delenv(var, raising=False)

        s = Settings()

        assert s.openweather_api_key is None
        assert s.cached_zip_codes == []
        assert s.refresh_interval_seconds == 300
        assert s.cache_sweep_interval_seconds == 120
        assert s.retry_deadline_seconds is None
        assert s.background_jobs_enabled is True
        assert s.is_production is False
        assert s.zip_storage_file == os.path.join("./data", "zip-codes.json")
        assert s.validate() == ["OPENWEATHER_API_KEY"]

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("OPENWEATHER_API_KEY", "abc123")
        monkeypatch.setenv("CACHED_ZIP_CODES", "75454, 10001,,")
        monkeypatch.setenv("REFRESH_INTERVAL_SECONDS", "60")
        monkeypatch.setenv("RETRY_DEADLINE_SECONDS", "12.5")
        monkeypatch.setenv("BACKGROUND_JOBS_ENABLED", "false")
        monkeypatch.setenv("ENVIRONMENT", "production")

        s = Settings()

        assert s.cached_zip_codes == ["75454", "10001"]
        assert s.refresh_interval_seconds == 60
        assert s.retry_deadline_seconds == 12.5
        assert s.background_jobs_enabled is False
        assert s.is_production is True
        assert s.validate() == []

    def test_invalid_numbers_fall_back(self, monkeypatch):
        monkeypatch.setenv("REFRESH_INTERVAL_SECONDS", "soon")
        monkeypatch.setenv("RETRY_DEADLINE_SECONDS", "never")

        s = Settings()

        assert s.refresh_interval_seconds == 300
        assert s.retry_deadline_seconds is None
