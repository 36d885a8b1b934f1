"""
Tests for CLI main functionality.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from presscache import __version__
from presscache.cli.commands import schedule as schedule_module
from presscache.cli.main import app
from presscache.services.scheduler import PublicationScheduler


@pytest.fixture
def runner():
    """CLI test runner."""
    return CliRunner()


def test_cli_version(runner):
    """Test version flag."""
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"presscache v{__version__}" in result.stdout


def test_cli_help(runner):
    """Test help command."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "Durable image cache" in result.stdout


def test_cli_version_command(runner):
    """Test explicit version command."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "presscache" in result.stdout
    assert "Version" in result.stdout


def test_cli_invalid_subcommand(runner):
    """Test an unknown subcommand fails."""
    result = runner.invoke(app, ["invalid-command"])
    assert result.exit_code != 0


def test_cli_cache_help(runner):
    """Test the cache command group is registered."""
    result = runner.invoke(app, ["cache", "--help"])
    assert result.exit_code == 0
    assert "warm" in result.stdout
    assert "purge" in result.stdout


def test_cli_schedule(runner):
    """Test the schedule command prints the tier table."""
    with patch.object(schedule_module, "container") as mock_container:
        mock_container.scheduler = PublicationScheduler()
        result = runner.invoke(app, ["schedule"])

    assert result.exit_code == 0
    assert "America/New_York" in result.stdout
    assert "Content Tiers" in result.stdout
    assert "Critical Content" in result.stdout


def test_cli_serve_uses_settings(runner):
    """Test serve starts uvicorn with the configured host and port."""
    with patch("uvicorn.run") as mock_run:
        result = runner.invoke(app, ["serve", "--port", "9000"])

    assert result.exit_code == 0
    args, kwargs = mock_run.call_args
    assert args[0] == "presscache.api.main:app"
    assert kwargs["port"] == 9000
    assert kwargs["reload"] is False


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [(0, "-"), (1800, "30m"), (3600, "1h"), (5400, "1h 30m")],
)
def test_format_duration(seconds, expected):
    """Test durations are rendered compactly."""
    assert schedule_module._format_duration(seconds) == expected
