from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Mapping

from lesson_planner.calendar_utils import time_from_hhmm


class Frequency(enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    FOUR_WEEKLY = "four_weekly"
    # Fee-split plans only; not an aggregation policy.
    MONTHLY = "monthly"


class InstallmentStatus(enum.Enum):
    UNPAID = "Unpaid"
    PAID = "Paid"


class SourceKind(enum.Enum):
    LESSON = "lesson"
    EVENT = "event"


class Decision(enum.Enum):
    DELETE = "delete"
    RESCHEDULE = "reschedule"


@dataclass(frozen=True)
class WeeklySchedule:
    """A set of weekdays plus one daily time window."""
    days: tuple[str, ...]
    start_time: str
    end_time: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "WeeklySchedule":
        days = raw.get("days") or []
        if isinstance(days, str):
            days = [days]
        return cls(
            days=tuple(str(day) for day in days),
            start_time=str(raw.get("start_time", raw.get("startTime", "")) or ""),
            end_time=str(raw.get("end_time", raw.get("endTime", "")) or ""),
        )


@dataclass(frozen=True)
class LessonOccurrence:
    owner_id: str
    date: date
    start_time: str
    end_time: str
    sequence_index: int
    topic_label: str

    def to_json(self) -> dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "date": self.date.isoformat(),
            "start_time": self.start_time,
            "end_time": self.end_time,
            "sequence_index": self.sequence_index,
            "topic_label": self.topic_label,
        }


@dataclass(frozen=True)
class Installment:
    number: int
    amount: Decimal
    due_date: date
    frequency: Frequency
    status: InstallmentStatus = InstallmentStatus.UNPAID
    occurrences: tuple[LessonOccurrence, ...] = ()

    def with_status(self, status: InstallmentStatus) -> "Installment":
        return replace(self, status=status)

    def to_json(self) -> dict[str, Any]:
        return {
            "number": self.number,
            "amount": str(self.amount),
            "due_date": self.due_date.isoformat(),
            "status": self.status.value,
            "frequency": self.frequency.value,
            "sequence_indices": [o.sequence_index for o in self.occurrences],
        }


@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime
    source_id: str | None
    source_kind: SourceKind
    label: str = ""

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def to_json(self) -> dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "source_id": self.source_id,
            "source_kind": self.source_kind.value,
            "label": self.label,
        }


@dataclass(frozen=True)
class ConflictRecord:
    candidate: Interval
    existing: Interval


@dataclass(frozen=True)
class ResolutionPlan:
    to_delete: tuple[str, ...] = ()
    rescheduled: Interval | None = None
    unresolved: tuple[ConflictRecord, ...] = ()

    @property
    def is_blocking(self) -> bool:
        return bool(self.unresolved)


@dataclass(frozen=True)
class SchedulingPolicy:
    """Business-hours settings shared by the interval model and the planner."""
    day_start: time = time(8, 0)
    day_end: time = time(22, 0)
    default_duration: timedelta = field(default=timedelta(hours=1))
    fallback_offset: timedelta = field(default=timedelta(hours=2))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "SchedulingPolicy":
        if not raw:
            return cls()
        if not isinstance(raw, Mapping):
            raise ValueError("`policy` must be a mapping when provided.")
        defaults = cls()
        default_minutes = int(
            raw.get(
                "default_duration_minutes",
                defaults.default_duration.total_seconds() // 60,
            )
        )
        fallback_minutes = int(
            raw.get(
                "fallback_offset_minutes",
                defaults.fallback_offset.total_seconds() // 60,
            )
        )
        if default_minutes <= 0:
            raise ValueError("`policy.default_duration_minutes` must be positive.")
        policy = cls(
            day_start=(
                time_from_hhmm(raw["day_start"]) if raw.get("day_start") else defaults.day_start
            ),
            day_end=(
                time_from_hhmm(raw["day_end"]) if raw.get("day_end") else defaults.day_end
            ),
            default_duration=timedelta(minutes=default_minutes),
            fallback_offset=timedelta(minutes=max(0, fallback_minutes)),
        )
        if policy.day_start >= policy.day_end:
            raise ValueError("`policy.day_start` must be earlier than `policy.day_end`.")
        return policy

    def to_json(self) -> dict[str, Any]:
        return {
            "day_start": self.day_start.strftime("%H:%M"),
            "day_end": self.day_end.strftime("%H:%M"),
            "default_duration_minutes": int(self.default_duration.total_seconds() // 60),
            "fallback_offset_minutes": int(self.fallback_offset.total_seconds() // 60),
        }


DEFAULT_POLICY = SchedulingPolicy()
