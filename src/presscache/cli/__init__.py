"""
CLI interface module for presscache.

Provides Typer-based command-line interface for serving the image proxy,
warming and inspecting the cache, and showing the refresh schedule.
"""

from __future__ import annotations

__all__: list[str] = []
