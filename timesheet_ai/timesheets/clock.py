"""Time source for relative date resolution.

"this week" and "last 5 workdays" depend on the current date in the tenant's
timezone; the plan builder asks a Clock instead of reading ambient time.
"""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger


def get_zone(name: str | None) -> ZoneInfo:
    """ZoneInfo for an IANA name, UTC when missing or unknown."""
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{name}', using UTC")
        return ZoneInfo("UTC")


class Clock:
    """Wall clock."""

    def now(self, tz_name: str | None = None) -> datetime:
        return datetime.now(timezone.utc).astimezone(get_zone(tz_name))

    def today(self, tz_name: str | None = None) -> date:
        return self.now(tz_name).date()


class FixedClock(Clock):
    """Clock frozen at a given instant (naive values are taken as UTC)."""

    def __init__(self, instant: datetime):
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self.instant = instant

    def now(self, tz_name: str | None = None) -> datetime:
        return self.instant.astimezone(get_zone(tz_name))
