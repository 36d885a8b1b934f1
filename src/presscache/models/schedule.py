"""
Scheduling models for publication-aware cache refresh.

Defines the scheduler configuration accepted from callers (timezone, business
hours and business days) and the per-tier refresh policy table.
"""

from __future__ import annotations

from datetime import timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .enums import ContentTier


class BusinessHours(BaseModel):
    """Local-time hour window treated as business hours, ``[start, end)``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    start: int = Field(..., ge=0, le=23, description="First business hour (0-23)")
    end: int = Field(..., ge=0, le=23, description="Hour business ends (0-23)")

    @model_validator(mode="after")
    def validate_window(self) -> BusinessHours:
        """Validate the window is non-empty and does not wrap midnight."""
        if self.start >= self.end:
            raise ValueError(
                f"Business hours start ({self.start}) must be before end ({self.end})"
            )
        return self


class SchedulerConfig(BaseModel):
    """Process-wide scheduling configuration.

    Accepts both snake_case field names and the camelCase names used by the
    content source's tooling (``businessHours``, ``businessDays``). Weekday
    numbers use 0 = Sunday through 6 = Saturday.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    timezone: str = Field(
        default="America/New_York", description="IANA timezone name"
    )
    business_hours: BusinessHours = Field(
        default_factory=lambda: BusinessHours(start=9, end=17),
        alias="businessHours",
    )
    business_days: frozenset[int] = Field(
        default=frozenset({1, 2, 3, 4, 5}),
        alias="businessDays",
        description="Weekday numbers, 0 = Sunday",
    )

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Validate the timezone is a known IANA name."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @field_validator("business_days")
    @classmethod
    def validate_business_days(cls, v: frozenset[int]) -> frozenset[int]:
        """Validate weekday numbers are in 0-6."""
        invalid = sorted(day for day in v if day < 0 or day > 6)
        if invalid:
            raise ValueError(f"Business days must be 0-6, got: {invalid}")
        return v

    @property
    def zone(self) -> ZoneInfo:
        """The configured timezone."""
        return ZoneInfo(self.timezone)


class SchedulerConfigUpdate(SchedulerConfig):
    """Replacement configuration supplied by a caller.

    Unlike ``SchedulerConfig``, every field is required: a partial object
    would silently reset the omitted fields to their defaults.
    """

    timezone: str = Field(..., description="IANA timezone name")
    business_hours: BusinessHours = Field(..., alias="businessHours")
    business_days: frozenset[int] = Field(
        ..., alias="businessDays", description="Weekday numbers, 0 = Sunday"
    )

    def to_config(self) -> SchedulerConfig:
        """Return the equivalent plain ``SchedulerConfig``."""
        return SchedulerConfig.model_validate(self.model_dump())


class TierPolicy(BaseModel):
    """Refresh cadence and cache lifetime for one content tier.

    The cache expiry must outlast both refresh intervals, otherwise entries
    would go stale before the proactive refresh reaches them.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    business_hours_interval: timedelta
    off_hours_interval: timedelta
    cache_expiry: timedelta

    @model_validator(mode="after")
    def validate_expiry_outlasts_intervals(self) -> TierPolicy:
        """Validate intervals are positive and shorter than the expiry."""
        if self.business_hours_interval <= timedelta(0) or self.off_hours_interval <= timedelta(0):
            raise ValueError(f"Refresh intervals for '{self.name}' must be positive")
        longest = max(self.business_hours_interval, self.off_hours_interval)
        if self.cache_expiry <= longest:
            raise ValueError(
                f"Cache expiry for '{self.name}' ({self.cache_expiry}) must be "
                f"greater than its longest refresh interval ({longest})"
            )
        return self


DEFAULT_TIER_POLICIES: dict[str, TierPolicy] = {
    # Homepage, breaking news
    ContentTier.CRITICAL.value: TierPolicy(
        name="Critical Content",
        business_hours_interval=timedelta(minutes=30),
        off_hours_interval=timedelta(hours=1),
        cache_expiry=timedelta(minutes=90),
    ),
    # Articles, featured content
    ContentTier.IMPORTANT.value: TierPolicy(
        name="Important Content",
        business_hours_interval=timedelta(hours=1),
        off_hours_interval=timedelta(hours=2),
        cache_expiry=timedelta(hours=3),
    ),
    # Team pages, quotes
    ContentTier.STABLE.value: TierPolicy(
        name="Stable Content",
        business_hours_interval=timedelta(hours=3),
        off_hours_interval=timedelta(hours=6),
        cache_expiry=timedelta(hours=8),
    ),
}
