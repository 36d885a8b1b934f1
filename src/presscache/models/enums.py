"""
Enums for presscache models.

Defines enumeration types used across the application for consistent
type safety and validation.
"""

from __future__ import annotations

from enum import Enum


class ContentTier(str, Enum):
    """How often a piece of content is expected to change.

    Assigned by the caller per refresh decision; never stored per entry.
    """

    CRITICAL = "critical"
    IMPORTANT = "important"
    STABLE = "stable"


class CacheStatus(str, Enum):
    """Outcome of an image resolution, reported in the ``X-Cache`` header."""

    HIT = "HIT"
    STALE = "STALE"
    MISS = "MISS"
    PLACEHOLDER = "PLACEHOLDER"
