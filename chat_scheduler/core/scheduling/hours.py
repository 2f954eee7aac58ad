"""Working-hours lookups.

Working hours map a weekday abbreviation to ``"HH:MM-HH:MM"`` or
``"closed"``::

    {"seg": "09:00-18:00", ..., "sab": "closed", "dom": "closed"}
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

logger = logging.getLogger(__name__)

# Indexed by date.weekday() (Monday = 0)
DAY_KEYS = ("seg", "ter", "qua", "qui", "sex", "sab", "dom")

CLOSED = "closed"

DEFAULT_WORKING_HOURS = {
    "seg": "09:00-17:00",
    "ter": "09:00-17:00",
    "qua": "09:00-17:00",
    "qui": "09:00-17:00",
    "sex": "09:00-17:00",
    "sab": CLOSED,
    "dom": CLOSED,
}


def parse_range(value: Optional[str]) -> Optional[tuple[time, time]]:
    """Parse ``"HH:MM-HH:MM"``; None for closed, missing or malformed."""
    if not value or value.strip().lower() == CLOSED:
        return None

    try:
        opens, closes = (part.strip() for part in value.split("-", 1))
        return time.fromisoformat(opens), time.fromisoformat(closes)
    except ValueError:
        logger.warning(f"Ignoring malformed working hours range: {value!r}")
        return None


def day_window(working_hours: dict, day: date) -> Optional[tuple[datetime, datetime]]:
    """Open and close instants for a calendar day, or None when closed."""
    hours = parse_range(working_hours.get(DAY_KEYS[day.weekday()]))
    if hours is None:
        return None

    opens, closes = hours
    return datetime.combine(day, opens), datetime.combine(day, closes)


def fits_working_hours(start: datetime, duration_minutes: int, working_hours: dict) -> bool:
    """
    Check an appointment against the day's working hours.

    The start must fall in [open, close) and the appointment must end no
    later than close.
    """
    window = day_window(working_hours, start.date())
    if window is None:
        return False

    opens, closes = window
    end = start + timedelta(minutes=duration_minutes)
    return opens <= start < closes and end <= closes
