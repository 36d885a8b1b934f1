"""
Publication-aware refresh scheduling.

The scheduler answers timing questions for the image cache: whether the
newsroom is currently in business hours, how often a content tier should be
refreshed right now, and how long a cached copy stays fresh. It holds no
cache state.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from presscache.models.enums import ContentTier
from presscache.models.schedule import (
    DEFAULT_TIER_POLICIES,
    SchedulerConfig,
    SchedulerConfigUpdate,
    TierPolicy,
)

logger = logging.getLogger(__name__)

# Shortest sleep handed to the refresh loop
_MIN_WAKEUP = timedelta(seconds=1)


def _utc(now: datetime | None) -> datetime:
    """Normalize ``now`` to an aware UTC datetime (naive input is UTC)."""
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def sunday_based_weekday(day: date) -> int:
    """Weekday number with 0 = Sunday through 6 = Saturday."""
    return (day.weekday() + 1) % 7


class PublicationScheduler:
    """Tier- and business-hours-aware refresh timing.

    One instance owns the process-wide scheduling configuration; replace it
    with ``update_config``.

    Parameters
    ----------
    config : SchedulerConfig | None
        Initial configuration (defaults to America/New_York, 9-17, Mon-Fri).
    tiers : Mapping[str, TierPolicy] | None
        Tier policy table (defaults to ``DEFAULT_TIER_POLICIES``). Must
        contain a ``stable`` entry, which unknown tiers fall back to.
    """

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        tiers: Mapping[str, TierPolicy] | None = None,
    ) -> None:
        self._config = config or SchedulerConfig()
        self._tiers: dict[str, TierPolicy] = dict(tiers or DEFAULT_TIER_POLICIES)
        if ContentTier.STABLE.value not in self._tiers:
            raise ValueError("Tier table must define a 'stable' tier")

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def config(self) -> SchedulerConfig:
        """Current scheduling configuration."""
        return self._config

    @property
    def tiers(self) -> dict[str, TierPolicy]:
        """Copy of the tier policy table."""
        return dict(self._tiers)

    def update_config(self, config: SchedulerConfig | Mapping[str, Any]) -> SchedulerConfig:
        """Replace the scheduling configuration.

        Parameters
        ----------
        config : SchedulerConfig | Mapping[str, Any]
            New configuration, or a mapping validated into one. A mapping
            must carry ``timezone``, ``businessHours`` and ``businessDays``.

        Returns
        -------
        SchedulerConfig
            The configuration now in effect.

        Raises
        ------
        pydantic.ValidationError
            If a mapping does not describe a complete, valid configuration.
            The previous configuration stays in effect.
        """
        if not isinstance(config, SchedulerConfig):
            config = SchedulerConfigUpdate.model_validate(dict(config))
        if isinstance(config, SchedulerConfigUpdate):
            config = config.to_config()
        self._config = config
        logger.info(
            "Scheduler config updated: timezone=%s hours=%d-%d days=%s",
            config.timezone,
            config.business_hours.start,
            config.business_hours.end,
            sorted(config.business_days),
        )
        return config

    def policy_for(self, tier: ContentTier | str) -> TierPolicy:
        """Return the policy for ``tier``, falling back to ``stable``."""
        key = tier.value if isinstance(tier, ContentTier) else str(tier).lower()
        policy = self._tiers.get(key)
        if policy is None:
            logger.warning("Unknown content tier: %s, using 'stable' tier", tier)
            policy = self._tiers[ContentTier.STABLE.value]
        return policy

    # ------------------------------------------------------------------
    # Business hours
    # ------------------------------------------------------------------

    def _local(self, now: datetime | None) -> tuple[datetime, datetime]:
        now_utc = _utc(now)
        return now_utc, now_utc.astimezone(self._config.zone)

    def _window_start(self, day: date) -> datetime:
        return datetime.combine(
            day, time(self._config.business_hours.start), tzinfo=self._config.zone
        )

    def _window_end(self, day: date) -> datetime:
        return datetime.combine(
            day, time(self._config.business_hours.end), tzinfo=self._config.zone
        )

    def is_business_hours(self, now: datetime | None = None) -> bool:
        """Whether ``now`` falls inside business hours in the configured zone."""
        _, local = self._local(now)
        hours = self._config.business_hours
        return (
            sunday_based_weekday(local.date()) in self._config.business_days
            and hours.start <= local.hour < hours.end
        )

    def get_time_until_business_hours(self, now: datetime | None = None) -> timedelta:
        """Time until the next business-hours window opens.

        Zero while inside business hours, and zero when no business days are
        configured.
        """
        if self.is_business_hours(now) or not self._config.business_days:
            return timedelta(0)

        now_utc, local = self._local(now)
        for offset in range(8):
            day = local.date() + timedelta(days=offset)
            if sunday_based_weekday(day) not in self._config.business_days:
                continue
            start_utc = self._window_start(day).astimezone(timezone.utc)
            if start_utc > now_utc:
                return start_utc - now_utc
        # Unreachable with at least one business day configured
        return timedelta(0)

    def get_time_until_business_hours_end(self, now: datetime | None = None) -> timedelta:
        """Time until the current business-hours window closes, zero outside it."""
        if not self.is_business_hours(now):
            return timedelta(0)
        now_utc, local = self._local(now)
        return self._window_end(local.date()).astimezone(timezone.utc) - now_utc

    # ------------------------------------------------------------------
    # Tier timing
    # ------------------------------------------------------------------

    def get_refresh_interval(
        self, tier: ContentTier | str, now: datetime | None = None
    ) -> timedelta:
        """Refresh interval for ``tier`` at ``now``.

        The business-hours interval applies inside the window and the
        off-hours interval outside it.
        """
        policy = self.policy_for(tier)
        if self.is_business_hours(now):
            return policy.business_hours_interval
        return policy.off_hours_interval

    def get_cache_expiry(self, tier: ContentTier | str) -> timedelta:
        """Age after which a cached copy of ``tier`` content is stale."""
        return self.policy_for(tier).cache_expiry

    def next_wakeup(self, tier: ContentTier | str, now: datetime | None = None) -> timedelta:
        """How long the refresh loop should sleep before its next pass.

        Normally the tier's current refresh interval, cut short at the next
        business-hours boundary so the cadence switches on time.
        """
        interval = self.get_refresh_interval(tier, now)
        if self.is_business_hours(now):
            boundary = self.get_time_until_business_hours_end(now)
        else:
            boundary = self.get_time_until_business_hours(now)
        if boundary > timedelta(0):
            interval = min(interval, boundary)
        return max(interval, _MIN_WAKEUP)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def describe(self, now: datetime | None = None) -> dict[str, Any]:
        """Snapshot of the scheduling context.

        Returns
        -------
        dict[str, Any]
            JSON-serialisable summary: configuration, local time, whether
            business hours are active, time to the next boundary and the
            effective timing of every tier.
        """
        _, local = self._local(now)
        in_hours = self.is_business_hours(now)
        return {
            "timezone": self._config.timezone,
            "local_time": local.isoformat(),
            "weekday": sunday_based_weekday(local.date()),
            "is_business_hours": in_hours,
            "business_hours": {
                "start": self._config.business_hours.start,
                "end": self._config.business_hours.end,
            },
            "business_days": sorted(self._config.business_days),
            "seconds_until_business_hours": int(
                self.get_time_until_business_hours(now).total_seconds()
            ),
            "seconds_until_business_hours_end": int(
                self.get_time_until_business_hours_end(now).total_seconds()
            ),
            "tiers": {
                key: {
                    "name": policy.name,
                    "refresh_interval_seconds": int(
                        (
                            policy.business_hours_interval
                            if in_hours
                            else policy.off_hours_interval
                        ).total_seconds()
                    ),
                    "cache_expiry_seconds": int(policy.cache_expiry.total_seconds()),
                }
                for key, policy in self._tiers.items()
            },
        }

    def log_scheduling_context(self, now: datetime | None = None) -> None:
        """Log the current scheduling context at INFO."""
        context = self.describe(now)
        logger.info(
            "Scheduling context: %s local=%s business_hours=%s",
            context["timezone"],
            context["local_time"],
            context["is_business_hours"],
        )
