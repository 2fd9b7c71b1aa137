"""Time spans of lessons and events, and the overlap rule shared by all of them."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date, datetime, time, timezone
from typing import Any

from lesson_planner.calendar_utils import parse_date, time_from_hhmm
from lesson_planner.classes import (
    DEFAULT_POLICY,
    Interval,
    LessonOccurrence,
    SchedulingPolicy,
    SourceKind,
)

log = logging.getLogger(__name__)

ALL_DAY_START = time(0, 0, 0)
ALL_DAY_END = time(23, 59, 59)

_FIELD_ALIASES = {
    "source_id": ("source_id", "sourceId", "id"),
    "date": ("date", "lesson_date", "lessonDate"),
    "start_time": ("start_time", "startTime"),
    "end_time": ("end_time", "endTime"),
    "is_all_day": ("is_all_day", "isAllDay"),
    "label": ("label", "topic", "event_name", "eventName", "name"),
}


def overlaps(a: Interval, b: Interval) -> bool:
    """Half-open overlap: intervals that only touch at an endpoint do not overlap."""
    return a.start < b.end and b.start < a.end


def all_day_interval(
    day: date,
    *,
    source_id: str | None,
    source_kind: SourceKind,
    label: str = "",
) -> Interval:
    return Interval(
        start=datetime.combine(day, ALL_DAY_START),
        end=datetime.combine(day, ALL_DAY_END),
        source_id=source_id,
        source_kind=source_kind,
        label=label,
    )


def interval_for_occurrence(
    occurrence: LessonOccurrence, *, source_id: str | None = None
) -> Interval:
    return Interval(
        start=datetime.combine(occurrence.date, time_from_hhmm(occurrence.start_time)),
        end=datetime.combine(occurrence.date, time_from_hhmm(occurrence.end_time)),
        source_id=source_id,
        source_kind=SourceKind.LESSON,
        label=occurrence.topic_label,
    )


def _field(record: Any, name: str) -> Any:
    for alias in _FIELD_ALIASES[name]:
        if isinstance(record, Mapping):
            value = record.get(alias)
        else:
            value = getattr(record, alias, None)
        if value is not None and value != "":
            return value
    return None


def _naive(moment: datetime) -> datetime:
    # Offset-aware values are compared as UTC wall-clock times.
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.replace(tzinfo=None)


def _has_own_date(value: Any) -> bool:
    return isinstance(value, datetime) or (isinstance(value, str) and "T" in value)


def _moment(day: date | None, value: Any) -> datetime:
    """Combine a record's date with a start/end value (HH:MM or full datetime)."""
    if isinstance(value, datetime):
        return _naive(value)
    if isinstance(value, time):
        return datetime.combine(day, value.replace(tzinfo=None))
    text = str(value).strip()
    if "T" in text:
        return _naive(datetime.fromisoformat(text.replace("Z", "+00:00")))
    return datetime.combine(day, time_from_hhmm(text))


def interval_from_record(
    record: Any,
    source_kind: SourceKind,
    policy: SchedulingPolicy | None = None,
) -> tuple[Interval | None, list[str]]:
    """Build the interval of a persisted lesson or event record.

    A missing or unusable end time is replaced by the policy's default
    duration and reported in the returned warnings. Records without a usable
    date or start yield no interval.
    """
    policy = policy or DEFAULT_POLICY
    warnings: list[str] = []
    source_id = _field(record, "source_id")
    source_id = str(source_id) if source_id is not None else None
    label = str(_field(record, "label") or "")
    kind_name = source_kind.value

    raw_start = _field(record, "start_time")
    raw_date = _field(record, "date")
    try:
        if raw_date is not None:
            day = parse_date(raw_date)
        elif _has_own_date(raw_start):
            day = _moment(None, raw_start).date()
        else:
            raise ValueError("missing date")
    except ValueError as exc:
        message = f"Skipping {kind_name} {source_id!r}: unusable date ({exc})."
        log.warning(message)
        return None, [message]

    if bool(_field(record, "is_all_day")):
        return (
            all_day_interval(day, source_id=source_id, source_kind=source_kind, label=label),
            warnings,
        )

    if raw_start is None:
        message = f"Skipping {kind_name} {source_id!r}: missing start time."
        log.warning(message)
        return None, [message]
    try:
        start = _moment(day, raw_start)
    except ValueError as exc:
        message = f"Skipping {kind_name} {source_id!r}: unusable start time ({exc})."
        log.warning(message)
        return None, [message]

    raw_end = _field(record, "end_time")
    end = None
    if raw_end is not None:
        try:
            end = _moment(day, raw_end)
        except ValueError:
            end = None
    if end is None or end <= start:
        end = start + policy.default_duration
        minutes = int(policy.default_duration.total_seconds() // 60)
        message = (
            f"{kind_name.capitalize()} {source_id!r} on {day.isoformat()} has no usable "
            f"end time ({raw_end!r}); assuming {minutes} minutes."
        )
        log.warning(message)
        warnings.append(message)

    return (
        Interval(
            start=start,
            end=end,
            source_id=source_id,
            source_kind=source_kind,
            label=label,
        ),
        warnings,
    )
