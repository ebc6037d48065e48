"""MapDash Application Configuration.

Centralized configuration management for the MapDash route planning backend
using Pydantic settings. Handles environment variables, routing API keys,
history storage selection and overlay rendering defaults.

Environment variables are loaded from .env file in development and from the
system environment in production.
"""

from typing import Dict, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Overlay stroke colors per travel mode. Modes without an entry fall back to
# the walking color.
ROUTE_MODE_COLORS: Dict[str, str] = {
    "driving": "#1890ff",
    "walking": "#52c41a",
}


class Settings(BaseSettings):
    """Application settings - single source of truth for configuration."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # App
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    # Routing backend (AMap Web Service API)
    AMAP_SERVICE_KEY: str = Field(default="")
    AMAP_API_URL: str = "https://restapi.amap.com"
    ROUTING_TIMEOUT_S: float = 15.0
    ROUTING_MAX_RETRIES: int = 2

    # History storage
    HISTORY_BACKEND: str = "file"  # memory, file or redis
    HISTORY_DIR: str = ".mapdash"
    REDIS_URL: str = "redis://localhost:6379/0"
    ROUTE_HISTORY_KEY: str = "route_search_history_v1"
    ROUTE_HISTORY_LIMIT: int = 12
    PLACE_HISTORY_KEY: str = "place_search_history_v1"
    PLACE_HISTORY_LIMIT: int = 10

    # Overlay rendering
    OVERLAY_RETRY_DELAY_S: float = 1.0
    OVERLAY_FIT_PADDING: int = 50

    @field_validator("HISTORY_BACKEND")
    @classmethod
    def validate_history_backend(cls, v: str) -> str:
        """Restrict history storage to the supported backends."""
        v = v.strip().lower()
        if v not in ("memory", "file", "redis"):
            raise ValueError(f"Unsupported history backend: {v}")
        return v

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
