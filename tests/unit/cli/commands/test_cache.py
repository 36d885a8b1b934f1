"""
Unit tests for cache CLI commands.

Covers `presscache cache warm` input handling (arguments, URL files and
record exports), tier and limit validation, exit codes, and the `status`
and `purge` commands.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import typer
from typer.testing import CliRunner

from presscache.cli.commands import cache as cache_module
from presscache.models.cache import CacheStats, WarmResult
from presscache.services.image_cache import ImageCacheService
from tests.factories.image_factory import ImageTestData

# Create test apps that wrap each command
test_warm_app = typer.Typer()
test_warm_app.command(name="warm")(cache_module.warm)

test_status_app = typer.Typer()
test_status_app.command(name="status")(cache_module.status)

test_purge_app = typer.Typer()
test_purge_app.command(name="purge")(cache_module.purge)

runner = CliRunner()


# ═══════════════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def mock_image_cache_service() -> MagicMock:
    """Create a mock ImageCacheService."""
    service = MagicMock()
    service.warm = AsyncMock(
        return_value=WarmResult(downloaded=2, skipped=1, failed=0, total=3)
    )
    service.get_stats = AsyncMock(
        return_value=CacheStats(
            entry_count=12,
            missing_count=1,
            orphan_count=2,
            total_size_bytes=3 * 1024 * 1024,
            oldest_fetch=datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc),
            newest_fetch=datetime(2024, 1, 10, 15, 30, tzinfo=timezone.utc),
        )
    )
    service.purge = AsyncMock(return_value=2048)
    service.store.directory = Path("/tmp/presscache/images")
    return service


def _patched(service: object):
    return patch.object(cache_module, "_build_cache_service", return_value=service)


# ═══════════════════════════════════════════════════════════════════════════
# warm
# ═══════════════════════════════════════════════════════════════════════════


class TestWarmCommand:
    """Tests for `cache warm`."""

    def test_warm_urls_from_arguments(self, mock_image_cache_service: MagicMock) -> None:
        """Test URLs given as arguments are warmed."""
        with _patched(mock_image_cache_service):
            result = runner.invoke(test_warm_app, ImageTestData.VALID_URLS)

        assert result.exit_code == 0
        assert "Cache Warm Summary" in result.stdout
        args, kwargs = mock_image_cache_service.warm.call_args
        assert args[0] == ImageTestData.VALID_URLS
        assert args[1] == "stable"
        assert kwargs["dry_run"] is False
        assert kwargs["limit"] is None

    def test_warm_from_url_file(
        self, mock_image_cache_service: MagicMock, tmp_path: Path
    ) -> None:
        """Test blank lines and comments in the URL file are ignored."""
        url_file = tmp_path / "urls.txt"
        url_file.write_text(
            "# homepage\nhttps://a.example/1.jpg\n\n  https://a.example/2.jpg  \n"
        )

        with _patched(mock_image_cache_service):
            result = runner.invoke(test_warm_app, ["--file", str(url_file)])

        assert result.exit_code == 0
        args, _ = mock_image_cache_service.warm.call_args
        assert args[0] == ["https://a.example/1.jpg", "https://a.example/2.jpg"]

    def test_warm_from_records_export(
        self, mock_image_cache_service: MagicMock, tmp_path: Path
    ) -> None:
        """Test image URLs are extracted from a records export."""
        export = {
            "records": [
                {
                    "id": "rec1",
                    "fields": {
                        "Title": "Budget vote",
                        "Photo": [
                            {
                                "url": "https://dl.airtable.com/full.jpg",
                                "type": "image/jpeg",
                                "thumbnails": {
                                    "large": {"url": "https://dl.airtable.com/large.jpg"}
                                },
                            }
                        ],
                    },
                },
                {"id": "rec2", "fields": {"Logo": "https://b.example/logo.png"}},
            ]
        }
        records_file = tmp_path / "records.json"
        records_file.write_text(json.dumps(export))

        with _patched(mock_image_cache_service):
            result = runner.invoke(
                test_warm_app, ["--records", str(records_file), "--tier", "important"]
            )

        assert result.exit_code == 0
        args, _ = mock_image_cache_service.warm.call_args
        assert args[0] == ["https://dl.airtable.com/large.jpg", "https://b.example/logo.png"]
        assert args[1] == "important"

    def test_warm_dry_run_and_limit(self, mock_image_cache_service: MagicMock) -> None:
        """Test --dry-run, --limit and --delay are passed through."""
        with _patched(mock_image_cache_service):
            result = runner.invoke(
                test_warm_app,
                [ImageTestData.SOURCE_URL, "--dry-run", "--limit", "5", "--delay", "1.5"],
            )

        assert result.exit_code == 0
        assert "Dry run" in result.stdout
        _, kwargs = mock_image_cache_service.warm.call_args
        assert kwargs["dry_run"] is True
        assert kwargs["limit"] == 5
        assert kwargs["delay"] == 1.5

    def test_warm_failures_exit_1(self, mock_image_cache_service: MagicMock) -> None:
        """Test any failed download gives exit code 1."""
        mock_image_cache_service.warm.return_value = WarmResult(
            downloaded=1, skipped=0, failed=1, total=2
        )

        with _patched(mock_image_cache_service):
            result = runner.invoke(test_warm_app, ImageTestData.VALID_URLS[:2])

        assert result.exit_code == 1

    def test_invalid_tier_exit_2(self) -> None:
        """Test an unknown tier is rejected before any work."""
        result = runner.invoke(test_warm_app, [ImageTestData.SOURCE_URL, "--tier", "urgent"])

        assert result.exit_code == 2
        assert "Invalid --tier" in result.stdout

    def test_invalid_limit_exit_2(self) -> None:
        """Test a non-positive limit is rejected."""
        result = runner.invoke(test_warm_app, [ImageTestData.SOURCE_URL, "--limit", "0"])

        assert result.exit_code == 2

    def test_no_urls_exit_2(self) -> None:
        """Test running without any input is an error."""
        result = runner.invoke(test_warm_app, [])

        assert result.exit_code == 2
        assert "No URLs given" in result.stdout

    def test_malformed_records_exit_2(self, tmp_path: Path) -> None:
        """Test an unreadable records export is an input error."""
        records_file = tmp_path / "records.json"
        records_file.write_text("{broken")

        result = runner.invoke(test_warm_app, ["--records", str(records_file)])

        assert result.exit_code == 2
        assert "Could not read input" in result.stdout

    def test_warm_with_real_service(
        self, image_cache_service: ImageCacheService, mock_fetcher: AsyncMock
    ) -> None:
        """Test warming through the real service downloads each URL."""
        with _patched(image_cache_service):
            result = runner.invoke(
                test_warm_app, [*ImageTestData.VALID_URLS, "--delay", "0"]
            )

        assert result.exit_code == 0
        assert mock_fetcher.fetch.await_count == len(ImageTestData.VALID_URLS)
        assert len(image_cache_service.mapping) == len(ImageTestData.VALID_URLS)


# ═══════════════════════════════════════════════════════════════════════════
# status / purge
# ═══════════════════════════════════════════════════════════════════════════


class TestStatusCommand:
    """Tests for `cache status`."""

    def test_status_table(self, mock_image_cache_service: MagicMock) -> None:
        """Test the status table shows counts and size."""
        with _patched(mock_image_cache_service):
            result = runner.invoke(test_status_app, [])

        assert result.exit_code == 0
        assert "Image Cache Status" in result.stdout
        assert "12" in result.stdout
        assert "3.0 MB" in result.stdout
        assert "2024-01-10 09:00" in result.stdout


class TestPurgeCommand:
    """Tests for `cache purge`."""

    def test_purge_with_yes(self, mock_image_cache_service: MagicMock) -> None:
        """Test --yes skips the prompt."""
        with _patched(mock_image_cache_service):
            result = runner.invoke(test_purge_app, ["--yes"])

        assert result.exit_code == 0
        assert "freed 2.0 KB" in result.stdout
        mock_image_cache_service.purge.assert_awaited_once()

    def test_purge_confirmed(self, mock_image_cache_service: MagicMock) -> None:
        """Test answering yes at the prompt purges."""
        with _patched(mock_image_cache_service):
            result = runner.invoke(test_purge_app, [], input="y\n")

        assert result.exit_code == 0
        mock_image_cache_service.purge.assert_awaited_once()

    def test_purge_cancelled(self, mock_image_cache_service: MagicMock) -> None:
        """Test declining the prompt leaves the cache alone."""
        with _patched(mock_image_cache_service):
            result = runner.invoke(test_purge_app, [], input="n\n")

        assert result.exit_code == 1
        assert "Purge cancelled" in result.stdout
        mock_image_cache_service.purge.assert_not_called()


class TestFormatSize:
    """Tests for format_size."""

    @pytest.mark.parametrize(
        ("size", "expected"),
        [
            (512, "512 B"),
            (2048, "2.0 KB"),
            (5 * 1024 * 1024, "5.0 MB"),
            (3 * 1024 * 1024 * 1024, "3.0 GB"),
        ],
    )
    def test_format_size(self, size: int, expected: str) -> None:
        """Test byte counts are rendered with the right unit."""
        assert cache_module.format_size(size) == expected
