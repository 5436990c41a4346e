"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

RATE_LIMIT_BACKENDS = ("postgres", "memory")


class ConfigError(RuntimeError):
    """Raised when a configuration value is present but unusable."""


@dataclass(frozen=True)
class Settings:
    google_maps_api_key: str
    database_url: str
    port: int = 8080
    rate_limit_backend: str = "postgres"
    rate_limit_default_limit: int = 100
    rate_limit_default_window: int = 60


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    google_maps_api_key = os.getenv("GOOGLE_MAPS_API_KEY", "")
    database_url = os.getenv("DATABASE_URL", "")
    port = _get_int_env("PORT", 8080)
    rate_limit_backend = os.getenv("RATE_LIMIT_BACKEND", "postgres").strip().lower() or "postgres"
    rate_limit_default_limit = _get_int_env("RATE_LIMIT_DEFAULT_LIMIT", 100)
    rate_limit_default_window = _get_int_env("RATE_LIMIT_DEFAULT_WINDOW", 60)

    if rate_limit_backend not in RATE_LIMIT_BACKENDS:
        raise ConfigError(
            f"RATE_LIMIT_BACKEND must be one of {', '.join(RATE_LIMIT_BACKENDS)}, got {rate_limit_backend!r}"
        )

    if not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")
    if not google_maps_api_key:
        logger.warning("GOOGLE_MAPS_API_KEY is not configured; Google Places requests will fail.")

    return Settings(
        google_maps_api_key=google_maps_api_key,
        database_url=database_url,
        port=port,
        rate_limit_backend=rate_limit_backend,
        rate_limit_default_limit=rate_limit_default_limit,
        rate_limit_default_window=rate_limit_default_window,
    )
