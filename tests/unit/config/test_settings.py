"""
Tests for application settings.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from presscache.config import settings as settings_module
from presscache.config.settings import Settings
from presscache.models.schedule import SchedulerConfig


class TestSettingsDefaults:
    """Tests for default values and derived paths."""

    def test_defaults(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test defaults match the documented configuration."""
        monkeypatch.chdir(tmp_path)
        settings = Settings()

        assert settings.fetch_timeout == 5.0
        assert settings.warm_timeout == 10.0
        assert settings.retry_delay == 0.5
        assert settings.default_tier == "stable"
        assert settings.scheduler_timezone == "America/New_York"
        assert settings.business_days == [1, 2, 3, 4, 5]
        assert settings.port == 8765

    def test_derived_paths(self, tmp_path: Path) -> None:
        """Test image and mapping paths default to cache_dir children."""
        settings = Settings(cache_dir=tmp_path)

        assert settings.images_dir == tmp_path / "images"
        assert settings.url_map_path == tmp_path / "url-to-filename-map.json"
        assert settings.record_map_path == tmp_path / "image-record-map.json"

    def test_explicit_paths_win(self, tmp_path: Path) -> None:
        """Test explicitly configured paths are kept."""
        settings = Settings(cache_dir=tmp_path, images_dir=str(tmp_path / "img"))

        assert settings.images_dir == tmp_path / "img"


class TestSettingsEnvironment:
    """Tests for environment variable loading."""

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test PRESSCACHE_ variables are read."""
        monkeypatch.setenv("PRESSCACHE_CACHE_DIR", str(tmp_path))
        monkeypatch.setenv("PRESSCACHE_FETCH_TIMEOUT", "2.5")
        monkeypatch.setenv("PRESSCACHE_DEFAULT_TIER", "CRITICAL")

        settings = Settings()

        assert settings.cache_dir == tmp_path
        assert settings.fetch_timeout == 2.5
        assert settings.default_tier == "critical"

    def test_business_days_comma_separated(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test business days parse from a comma-separated string."""
        monkeypatch.setenv("PRESSCACHE_BUSINESS_DAYS", "0, 6")

        assert Settings().business_days == [0, 6]

    def test_invalid_environment_fails_only_when_loaded(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test a bad variable surfaces from get_settings, not at import."""
        monkeypatch.setenv("PRESSCACHE_PORT", "not-a-port")

        assert not hasattr(settings_module, "settings")
        with pytest.raises(ValidationError):
            settings_module.get_settings()


class TestSettingsValidation:
    """Tests for validation errors."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"log_level": "LOUD"},
            {"default_tier": "urgent"},
            {"fetch_timeout": 0},
            {"max_concurrent_fetches": 0},
            {"business_hours_start": 24},
        ],
    )
    def test_invalid_values(self, kwargs: dict) -> None:
        """Test invalid settings are rejected."""
        with pytest.raises(ValidationError):
            Settings(**kwargs)

    def test_log_level_normalised(self) -> None:
        """Test log levels are upper-cased."""
        assert Settings(log_level="debug").log_level == "DEBUG"


class TestSchedulerConfigData:
    """Tests for the scheduler configuration built from settings."""

    def test_builds_valid_config(self) -> None:
        """Test flat settings fields form a SchedulerConfig."""
        settings = Settings(
            scheduler_timezone="Europe/Berlin",
            business_hours_start=7,
            business_hours_end=19,
            business_days=[1, 2, 3],
        )

        config = SchedulerConfig.model_validate(settings.scheduler_config_data())

        assert config.timezone == "Europe/Berlin"
        assert config.business_hours.start == 7
        assert config.business_hours.end == 19
        assert config.business_days == frozenset({1, 2, 3})
