from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterator

from dateutil.relativedelta import relativedelta

# Sunday-first indexing, matching how schedules are stored.
WEEKDAY_TO_INDEX = {
    "Sun": 0,
    "Mon": 1,
    "Tue": 2,
    "Wed": 3,
    "Thu": 4,
    "Fri": 5,
    "Sat": 6,
}

_FULL_NAME_TO_ABBREV = {
    "sunday": "Sun",
    "monday": "Mon",
    "tuesday": "Tue",
    "wednesday": "Wed",
    "thursday": "Thu",
    "friday": "Fri",
    "saturday": "Sat",
}

DEFAULT_GROUP_WEEKS = 12
DEFAULT_WINDOW_MONTHS = 3


def weekday_index(name: str) -> int | None:
    """Return the Sun=0..Sat=6 index for a weekday name, or None if unknown.

    Accepts three-letter abbreviations ("Mon") and full names ("Monday"),
    case-insensitively.
    """
    text = str(name or "").strip().lower()
    if not text:
        return None
    abbrev = _FULL_NAME_TO_ABBREV.get(text)
    if abbrev is None and len(text) == 3:
        abbrev = text.capitalize()
    return WEEKDAY_TO_INDEX.get(abbrev) if abbrev else None


def weekday_of(day: date) -> int:
    return (day.weekday() + 1) % 7


def schedule_day_indexes(day_names) -> set[int]:
    indexes = set()
    for name in day_names or ():
        idx = weekday_index(name)
        if idx is not None:
            indexes.add(idx)
    return indexes


def days_in_range(start: date, end: date) -> Iterator[date]:
    """Yield every date from start to end inclusive; nothing when start > end."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def week_bucket_key(day: date) -> date:
    """Monday of the ISO week containing day."""
    return day - timedelta(days=day.weekday())


def parse_date(value: str | date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Expected ISO date string, got: {value!r}")
    text = value.strip()
    if "T" in text:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    return datetime.strptime(text, "%Y-%m-%d").date()


def parse_hhmm(value: str) -> str:
    text = str(value or "").strip()
    try:
        parsed = datetime.strptime(text, "%H:%M").time()
    except ValueError as exc:
        raise ValueError(f"Expected time in HH:MM format, got: {value!r}") from exc
    return parsed.strftime("%H:%M")


def time_from_hhmm(value: str) -> time:
    return datetime.strptime(parse_hhmm(value), "%H:%M").time()


def add_months(day: date, months: int) -> date:
    return day + relativedelta(months=months)


def months_between(start: date, end: date) -> int:
    """Whole calendar months from start to end (negative when end < start).

    Month ends are clamped like `add_months`, so 2024-01-31 to 2024-02-29 is
    one whole month.
    """
    delta = relativedelta(end, start)
    return delta.years * 12 + delta.months


def default_end_date(start: date, weeks: int = DEFAULT_GROUP_WEEKS) -> date:
    return start + timedelta(weeks=weeks)


def default_window(today: date, months: int = DEFAULT_WINDOW_MONTHS) -> tuple[date, date]:
    """Generation window used when an owner has no explicit end date.

    `today` is supplied by the caller so that nothing here reads the clock.
    """
    return today, add_months(today, months)
