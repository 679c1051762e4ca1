from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta


_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])?\s*$")


def parse_time_of_day(value: str | None) -> time | None:
    """Parse "HH:MM" (24-hour) or "H:MM AM/PM"; anything else returns None."""
    if not value or not isinstance(value, str):
        return None
    match = _TIME_RE.match(value)
    if not match:
        return None
    hour = int(match.group(1))
    minute = int(match.group(2))
    marker = match.group(3)
    if minute > 59:
        return None
    if marker:
        if not 1 <= hour <= 12:
            return None
        if marker.lower() == "pm" and hour != 12:
            hour += 12
        elif marker.lower() == "am" and hour == 12:
            hour = 0
    elif hour > 23:
        return None
    return time(hour, minute)


def minutes_since_midnight(value: time | datetime) -> int:
    return value.hour * 60 + value.minute


def whole_minutes(delta: timedelta) -> int:
    """Minutes in ``delta``, truncated toward zero."""
    return int(delta / timedelta(minutes=1))


def format_duration(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes}m"
    hours, remainder = divmod(minutes, 60)
    if remainder == 0:
        return f"{hours}h"
    return f"{hours}h {remainder}m"


def describe_period(hours: int) -> str:
    if hours == 24:
        return "day"
    if hours == 168:
        return "week"
    if hours == 720:
        return "month"
    if hours < 24:
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    days = hours // 24
    return f"{days} day" if days == 1 else f"{days} days"


def as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def add_months(start: date, months: int) -> date:
    """Add months to a date while preserving month-end behavior."""
    year = start.year + (start.month - 1 + months) // 12
    month = (start.month - 1 + months) % 12 + 1
    day = min(start.day, _days_in_month(year, month))
    return date(year, month, day)


def _days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - timedelta(days=1)).day
