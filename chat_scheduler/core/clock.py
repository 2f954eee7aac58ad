"""Wall-clock helpers.

The scheduling core works with naive datetimes expressed in the owner's
local timezone; conversation state timestamps are UTC-aware.
"""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from chat_scheduler.config import settings


def utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def local_now(tz_name: Optional[str] = None) -> datetime:
    """Current local time in the calendar timezone, without tzinfo."""
    zone = ZoneInfo(tz_name or settings.timezone)
    return datetime.now(zone).replace(tzinfo=None, microsecond=0)
