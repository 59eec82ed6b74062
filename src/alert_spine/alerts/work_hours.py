"""Work-hours helper for alert definitions (e.g. page only during office hours)."""

from __future__ import annotations

from collections.abc import Container
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

# Days count from Sunday = 0
DEFAULT_WORK_DAYS = range(1, 6)
DEFAULT_WORK_HOURS = range(9, 17)
DEFAULT_WORK_TIMEZONE = "America/Los_Angeles"


def is_work_hour(
    time: datetime | None = None,
    *,
    hours: Container[int] = DEFAULT_WORK_HOURS,
    days: Container[int] = DEFAULT_WORK_DAYS,
    timezone: str = DEFAULT_WORK_TIMEZONE,
) -> bool:
    """True when ``time`` (default: now) falls in a work hour of a work day.

    Naive datetimes are taken as UTC.
    """
    if time is None:
        time = datetime.now(UTC)
    elif time.tzinfo is None:
        time = time.replace(tzinfo=UTC)
    local = time.astimezone(ZoneInfo(timezone))
    return local.isoweekday() % 7 in days and local.hour in hours


__all__ = ["is_work_hour", "DEFAULT_WORK_DAYS", "DEFAULT_WORK_HOURS", "DEFAULT_WORK_TIMEZONE"]
