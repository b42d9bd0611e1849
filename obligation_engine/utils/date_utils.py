"""Date manipulation utilities"""

import calendar
from datetime import date, datetime, timezone
from typing import Callable

# Time source injected into every entry point; returns an aware datetime
Clock = Callable[[], datetime]


def system_clock() -> datetime:
    """Wall-clock time in UTC"""
    return datetime.now(timezone.utc)


def utc_today(clock: Clock) -> date:
    """Today's date at UTC midnight, so time of day never shifts day counts"""
    now = clock()
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.date()


def parse_date(value: date | str | None) -> date | None:
    """Coerce a date or ISO string to a date; anything unparseable becomes None"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def add_months(from_date: date, months: int) -> date:
    """Shift by calendar months, clamping the day to the target month's length"""
    month_index = from_date.month - 1 + months
    year = from_date.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, clamp_day(year, month, from_date.day))


def clamp_day(year: int, month: int, day: int) -> int:
    """Clamp a day-of-month (e.g. 31) to the last day of the given month"""
    return max(1, min(day, calendar.monthrange(year, month)[1]))


def month_start(day: date) -> date:
    return day.replace(day=1)
