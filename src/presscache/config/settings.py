"""
Application settings and configuration management.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode

from presscache import __version__


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = Field(default="presscache")
    app_version: str = Field(default=__version__)
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # Storage
    cache_dir: Path = Field(default=Path("./cache"))
    images_dir: Path | None = Field(default=None)  # Defaults to cache_dir/images
    url_map_path: Path | None = Field(default=None)  # Defaults to cache_dir/url-to-filename-map.json
    record_map_path: Path | None = Field(default=None)  # Defaults to cache_dir/image-record-map.json
    placeholder_path: Path | None = Field(default=None)  # Built-in SVG when unset

    # Fetching
    fetch_timeout: float = Field(default=5.0, gt=0)
    warm_timeout: float = Field(default=10.0, gt=0)
    retry_delay: float = Field(default=0.5, ge=0)
    max_concurrent_fetches: int = Field(default=5, ge=1)
    max_image_bytes: int = Field(default=10 * 1024 * 1024, ge=1)

    # Scheduling
    default_tier: str = Field(default="stable")
    scheduler_timezone: str = Field(default="America/New_York")
    business_hours_start: int = Field(default=9, ge=0, le=23)
    business_hours_end: int = Field(default=17, ge=0, le=23)
    business_days: Annotated[list[int], NoDecode] = Field(default=[1, 2, 3, 4, 5])
    background_refresh_enabled: bool = Field(
        default=True,
        description="Run the refresh worker and proactive refresher in the API server; "
        "when off, stale entries are served without being queued",
    )

    # Server
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8765)

    @field_validator("business_days", mode="before")
    @classmethod
    def parse_business_days(cls, v: str | list[int]) -> list[int]:
        """Parse business days from comma-separated string or list."""
        if isinstance(v, str):
            return [int(day.strip()) for day in v.split(",") if day.strip()]
        return v

    @field_validator(
        "cache_dir",
        "images_dir",
        "url_map_path",
        "record_map_path",
        "placeholder_path",
        mode="before",
    )
    @classmethod
    def ensure_path(cls, v: str | Path | None) -> Path | None:
        """Ensure directory and file paths are Path objects."""
        if isinstance(v, str):
            return Path(v) if v else None
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("default_tier")
    @classmethod
    def validate_default_tier(cls, v: str) -> str:
        """Validate the default content tier."""
        valid_tiers = ["critical", "important", "stable"]
        if v.lower() not in valid_tiers:
            raise ValueError(f"Invalid default tier: {v}")
        return v.lower()

    @model_validator(mode="after")
    def fill_derived_paths(self) -> Settings:
        """Derive image and mapping paths from ``cache_dir`` when unset."""
        if self.images_dir is None:
            self.images_dir = self.cache_dir / "images"
        if self.url_map_path is None:
            self.url_map_path = self.cache_dir / "url-to-filename-map.json"
        if self.record_map_path is None:
            self.record_map_path = self.cache_dir / "image-record-map.json"
        return self

    def scheduler_config_data(self) -> dict[str, object]:
        """Scheduler configuration assembled from the flat settings fields."""
        return {
            "timezone": self.scheduler_timezone,
            "business_hours": {
                "start": self.business_hours_start,
                "end": self.business_hours_end,
            },
            "business_days": self.business_days,
        }

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "PRESSCACHE_",
        "case_sensitive": False,
        "validate_assignment": False,
    }


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()

