"""
Data models module for presscache.

Defines Pydantic models for cache entries, resolution results, scheduling
configuration and cache statistics.
"""

from __future__ import annotations

from .cache import CacheEntry, CacheStats, ResolvedImage, WarmResult
from .enums import CacheStatus, ContentTier
from .schedule import (
    DEFAULT_TIER_POLICIES,
    BusinessHours,
    SchedulerConfig,
    SchedulerConfigUpdate,
    TierPolicy,
)

__all__ = [
    "BusinessHours",
    "CacheEntry",
    "CacheStats",
    "CacheStatus",
    "ContentTier",
    "DEFAULT_TIER_POLICIES",
    "ResolvedImage",
    "SchedulerConfig",
    "SchedulerConfigUpdate",
    "TierPolicy",
    "WarmResult",
]
