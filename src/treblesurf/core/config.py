"""Client configuration using pydantic-settings."""
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOCAL_API_URL = "http://localhost:8080"
PRODUCTION_API_URL = "https://treblesurf.com"

_MINUTE = 60
_HOUR = 60 * _MINUTE
_DAY = 24 * _HOUR


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Execution environment - selects the API base URL
    environment: Literal["local", "production"] = Field(
        default="production", validation_alias="TREBLESURF_ENV",
    )

    # Trust a locally stored session when the local backend is unreachable.
    # Development convenience only: there is no server-side revocation check.
    offline_dev_mode: bool = Field(default=False, validation_alias="TREBLESURF_OFFLINE_DEV")

    local_url: str = Field(default=LOCAL_API_URL, validation_alias="TREBLESURF_LOCAL_URL")
    production_url: str = Field(
        default=PRODUCTION_API_URL, validation_alias="TREBLESURF_PRODUCTION_URL",
    )
    request_timeout: float = Field(default=30.0, validation_alias="TREBLESURF_TIMEOUT")

    # Cache TTLs (seconds)
    conditions_ttl_seconds: float = Field(
        default=30 * _MINUTE, validation_alias="TREBLESURF_CONDITIONS_TTL",
    )
    forecast_ttl_seconds: float = Field(
        default=30 * _MINUTE, validation_alias="TREBLESURF_FORECAST_TTL",
    )
    region_spots_ttl_seconds: float = Field(
        default=4 * _DAY, validation_alias="TREBLESURF_REGION_SPOTS_TTL",
    )
    buoy_ttl_seconds: float = Field(default=5 * _MINUTE, validation_alias="TREBLESURF_BUOY_TTL")
    surf_reports_ttl_seconds: float = Field(
        default=15 * _MINUTE, validation_alias="TREBLESURF_SURF_REPORTS_TTL",
    )
    swell_prediction_ttl_seconds: float = Field(
        default=30 * _MINUTE, validation_alias="TREBLESURF_SWELL_PREDICTION_TTL",
    )
    # Images are immutable per key, so they only age out
    image_ttl_seconds: float = Field(default=30 * _DAY, validation_alias="TREBLESURF_IMAGE_TTL")
    image_memory_limit: int = Field(
        default=10, ge=0, validation_alias="TREBLESURF_IMAGE_MEMORY_LIMIT",
    )

    # Local persistence
    data_dir: Path = Field(
        default=Path.home() / ".treblesurf", validation_alias="TREBLESURF_DATA_DIR",
    )
    credential_key: str | None = Field(
        default=None, validation_alias="TREBLESURF_CREDENTIAL_KEY",
    )

    debounce_seconds: float = Field(default=0.5, validation_alias="TREBLESURF_DEBOUNCE")

    @model_validator(mode="after")
    def validate_offline_dev_mode(self) -> "Settings":
        """
        Prevent the offline session fallback outside the local environment.

        The fallback trusts a stored session id without contacting the backend,
        so it must never be reachable from a production configuration.
        """
        if self.offline_dev_mode and self.environment != "local":
            raise ValueError(
                "TREBLESURF_OFFLINE_DEV can only be enabled when TREBLESURF_ENV=local. "
                "The offline fallback skips server-side session validation.",
            )
        return self

    @property
    def is_local(self) -> bool:
        """True when talking to a local development backend."""
        return self.environment == "local"

    @property
    def api_base_url(self) -> str:
        """Base URL for all API requests, chosen from the execution environment."""
        url = self.local_url if self.is_local else self.production_url
        return url.rstrip("/")

    @property
    def credentials_path(self) -> Path:
        """Encrypted credential file."""
        return self.data_dir / "credentials.bin"

    @property
    def credential_key_path(self) -> Path:
        """Generated Fernet key, used when TREBLESURF_CREDENTIAL_KEY is unset."""
        return self.data_dir / "credentials.key"

    @property
    def image_cache_dir(self) -> Path:
        """Directory holding the disk tier of the image cache."""
        return self.data_dir / "ImageCache"

    @property
    def preferences_path(self) -> Path:
        """Plain JSON file with user preference flags."""
        return self.data_dir / "preferences.json"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
