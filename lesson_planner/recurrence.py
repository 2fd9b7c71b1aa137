"""Expansion of weekly schedules into dated lesson occurrences."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterable

from lesson_planner.calendar_utils import (
    days_in_range,
    parse_hhmm,
    schedule_day_indexes,
    weekday_of,
)
from lesson_planner.classes import LessonOccurrence, WeeklySchedule

log = logging.getLogger(__name__)

DEFAULT_TOPIC_PREFIX = "Lesson"


def _usable_schedule(schedule: WeeklySchedule) -> tuple[set[int], str, str] | None:
    day_indexes = schedule_day_indexes(schedule.days)
    if not day_indexes:
        if schedule.days:
            log.warning(f"Schedule has no recognizable weekdays: {list(schedule.days)!r}")
        return None
    try:
        start_time = parse_hhmm(schedule.start_time)
        end_time = parse_hhmm(schedule.end_time)
    except ValueError as exc:
        log.warning(f"Ignoring schedule with malformed times: {exc}")
        return None
    if start_time >= end_time:
        log.warning(
            f"Ignoring schedule whose start time {start_time} is not before end time {end_time}"
        )
        return None
    return day_indexes, start_time, end_time


def _number_occurrences(
    dates: Iterable[date],
    *,
    owner_id: str,
    start_time: str,
    end_time: str,
    topic_prefix: str,
) -> list[LessonOccurrence]:
    return [
        LessonOccurrence(
            owner_id=owner_id,
            date=lesson_date,
            start_time=start_time,
            end_time=end_time,
            sequence_index=idx,
            topic_label=f"{topic_prefix} {idx}",
        )
        for idx, lesson_date in enumerate(dates, start=1)
    ]


def generate(
    schedule: WeeklySchedule,
    start_date: date,
    end_date: date,
    owner_id: str,
    topic_prefix: str = DEFAULT_TOPIC_PREFIX,
) -> list[LessonOccurrence]:
    """Expand a weekly schedule over [start_date, end_date].

    Returns an empty list rather than raising when the schedule has no usable
    weekdays, its times are malformed, or the range is inverted.
    """
    if start_date > end_date:
        return []
    usable = _usable_schedule(schedule)
    if usable is None:
        return []
    day_indexes, start_time, end_time = usable

    matching = (
        day for day in days_in_range(start_date, end_date) if weekday_of(day) in day_indexes
    )
    return _number_occurrences(
        matching,
        owner_id=owner_id,
        start_time=start_time,
        end_time=end_time,
        topic_prefix=topic_prefix,
    )


def generate_count(
    schedule: WeeklySchedule,
    start_date: date,
    count: int,
    owner_id: str,
    topic_prefix: str = DEFAULT_TOPIC_PREFIX,
) -> list[LessonOccurrence]:
    """First `count` occurrences on or after start_date (lesson-package bookings)."""
    if count <= 0:
        return []
    usable = _usable_schedule(schedule)
    if usable is None:
        return []
    day_indexes, start_time, end_time = usable

    dates: list[date] = []
    current = start_date
    while len(dates) < count:
        if weekday_of(current) in day_indexes:
            dates.append(current)
        current += timedelta(days=1)
    return _number_occurrences(
        dates,
        owner_id=owner_id,
        start_time=start_time,
        end_time=end_time,
        topic_prefix=topic_prefix,
    )


def count_occurrences(schedule_days: Iterable[str], start_date: date, end_date: date) -> int:
    day_indexes = schedule_day_indexes(schedule_days)
    if not day_indexes or start_date > end_date:
        return 0
    return sum(1 for day in days_in_range(start_date, end_date) if weekday_of(day) in day_indexes)
