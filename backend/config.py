"""Centralized configuration — all env vars in one place."""

import os


def _env_int(name: str, default: int) -> int:
    """Read an integer env var, returning default on missing/invalid values."""
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str) -> float | None:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _env_list(name: str) -> list[str]:
    """Read a comma-delimited list, dropping blanks."""
    return [x.strip() for x in os.getenv(name, "").split(",") if x.strip()]


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        self.cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
        self.git_sha: str = os.getenv("GIT_SHA", "unknown")
        self.environment: str = os.getenv("ENVIRONMENT", "local")
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

        # Upstream providers
        self.nws_base_url: str = os.getenv("NWS_BASE_URL", "https://api.weather.gov")
        self.nws_user_agent: str = os.getenv(
            "NWS_USER_AGENT", "ZipWeather/1.0 (contact@example.com)"
        )
        self.geocoder_base_url: str = os.getenv(
            "GEOCODER_BASE_URL", "https://api.zippopotam.us/us"
        )
        self.uv_base_url: str = os.getenv(
            "UV_BASE_URL", "https://api.openweathermap.org/data/3.0"
        )
        self.openweather_api_key: str | None = os.getenv("OPENWEATHER_API_KEY") or None
        self.http_timeout_seconds: int = _env_int("HTTP_TIMEOUT_SECONDS", 30)
        self.retry_deadline_seconds: float | None = _env_float("RETRY_DEADLINE_SECONDS")

        # Tracked ZIP codes and background jobs
        self.zip_storage_dir: str = os.getenv("ZIP_STORAGE_DIR", "./data")
        self.cached_zip_codes: list[str] = _env_list("CACHED_ZIP_CODES")
        self.refresh_interval_seconds: int = _env_int("REFRESH_INTERVAL_SECONDS", 300)
        self.cache_sweep_interval_seconds: int = _env_int("CACHE_SWEEP_INTERVAL_SECONDS", 120)
        self.background_jobs_enabled: bool = (
            os.getenv("BACKGROUND_JOBS_ENABLED", "true").lower() not in ("0", "false", "no")
        )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def zip_storage_file(self) -> str:
        return os.path.join(self.zip_storage_dir, "zip-codes.json")

    def validate(self) -> list[str]:
        """Return list of missing optional env vars (features that stay disabled)."""
        optional = ["OPENWEATHER_API_KEY"]
        return [var for var in optional if not getattr(self, _attr_for(var))]


settings = Settings()


def _attr_for(env_var: str) -> str:
    """Map env var name to Settings attribute name."""
    mapping = {
        "OPENWEATHER_API_KEY": "openweather_api_key",
    }
    return mapping.get(env_var, env_var.lower())
