"""Smart defaults for the collection date and earliest collection time."""

from __future__ import annotations

import datetime as dt
from typing import Optional
from zoneinfo import ZoneInfo

from ..config import COLLECTION_TIMEZONE
from ..models.booking import DEFAULT_EARLIEST_TIME

SAME_DAY_CUTOFF_HOUR = 13


def _local(now: Optional[dt.datetime], timezone: str) -> dt.datetime:
    """Wall-clock time in the collection timezone.

    A naive datetime is taken to be local already.
    """
    tz = ZoneInfo(timezone)
    if now is None:
        return dt.datetime.now(tz)
    if now.tzinfo is None:
        return now
    return now.astimezone(tz)


def smart_date(now: Optional[dt.datetime] = None, timezone: str = COLLECTION_TIMEZONE) -> dt.date:
    """Next collection day a booking made now can still get.

    From 13:00 local time the same-day slot is gone, so the next day is
    used. Weekends are skipped.
    """
    local = _local(now, timezone)
    target = local.date()
    if local.hour >= SAME_DAY_CUTOFF_HOUR:
        target += dt.timedelta(days=1)
    while target.weekday() >= 5:
        target += dt.timedelta(days=1)
    return target


def smart_earliest_time(now: Optional[dt.datetime] = None, timezone: str = COLLECTION_TIMEZONE) -> str:
    """Earliest collection time that has not already started."""
    hour = _local(now, timezone).hour
    if 12 <= hour < 17:
        return f"{hour + 1}:00"
    return DEFAULT_EARLIEST_TIME
