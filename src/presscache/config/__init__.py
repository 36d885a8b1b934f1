"""
Configuration management module for presscache.

Handles application settings, environment variables, cache locations and
scheduler defaults.
"""

from __future__ import annotations

__all__: list[str] = []
