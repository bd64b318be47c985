"""
Date-range helpers for activity queries.

All ranges are inclusive on both ends and expressed in UTC.
"""

from __future__ import annotations

import calendar
import re
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

_CUSTOM_RANGE = re.compile(r"^(\d{4}-\d{2}-\d{2})_(\d{4}-\d{2}-\d{2})$")
_DURATION = re.compile(r"^(\d+)([dmy])$")

DateRange = Tuple[datetime, datetime]


def month_bounds(year: int, month: int) -> DateRange:
    """First and last instant of a calendar month."""
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}. Month must be between 1 and 12.")

    last_day = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    end = datetime(year, month, last_day, 23, 59, 59, 999999, tzinfo=timezone.utc)
    return start, end


def previous_month(today: datetime) -> Tuple[int, int]:
    if today.month == 1:
        return today.year - 1, 12
    return today.year, today.month - 1


def month_name(month: int) -> str:
    return MONTH_NAMES[month - 1]


def _shift_months(value: datetime, months: int) -> datetime:
    index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def parse_timeframe(text: str, *, now: Optional[datetime] = None) -> Optional[DateRange]:
    """
    Parse a user-supplied timeframe.

    Supported:
    - "7d", "30d", "1m", "1y"  -> from the start of that day until now
    - "YYYY-MM-DD_YYYY-MM-DD"  -> whole days, end date inclusive

    Returns None when the text is not understood or the range is inverted.
    """
    if not text:
        return None

    now = now or datetime.now(timezone.utc)
    raw = text.strip()

    custom = _CUSTOM_RANGE.match(raw)
    if custom:
        try:
            start = datetime.strptime(custom.group(1), "%Y-%m-%d").replace(tzinfo=timezone.utc)
            end = datetime.strptime(custom.group(2), "%Y-%m-%d").replace(tzinfo=timezone.utc)
        except ValueError:
            return None
        end = end + timedelta(days=1) - timedelta(microseconds=1)
        if start > end:
            return None
        return start, end

    duration = _DURATION.match(raw)
    if not duration:
        return None

    value = int(duration.group(1))
    unit = duration.group(2)

    try:
        if unit == "d":
            start = now - timedelta(days=value)
        elif unit == "m":
            start = _shift_months(now, value)
        else:
            start = _shift_months(now, value * 12)
    except (OverflowError, ValueError):
        # Reaches past the smallest representable date.
        return None

    start = start.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, now


def in_range(moment: Optional[datetime], bounds: DateRange) -> bool:
    if moment is None:
        return False
    start, end = bounds
    return start <= moment <= end
