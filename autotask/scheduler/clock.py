"""Wall clock in the scheduler's timezone."""

from __future__ import annotations

import zoneinfo
from datetime import datetime


def make_clock(timezone: str = ""):
    """Return a zero-arg callable yielding the current time.

    An empty *timezone* means the host's local time.
    """
    if not timezone:
        return lambda: datetime.now().astimezone()
    tz = zoneinfo.ZoneInfo(timezone)
    return lambda: datetime.now(tz)


def format_time_of_day(now: datetime) -> str:
    """Truncate to whole seconds and render as ``HH:MM:SS``."""
    return now.strftime("%H:%M:%S")
