"""Lesson recurrence, installment billing and conflict planning."""

from importlib.metadata import PackageNotFoundError, version

from lesson_planner.attempt import AttemptState, AttemptStateError, SchedulingAttempt
from lesson_planner.billing import aggregate, mark_paid, split_fee
from lesson_planner.classes import (
  ConflictRecord,
  Decision,
  Frequency,
  Installment,
  InstallmentStatus,
  Interval,
  LessonOccurrence,
  ResolutionPlan,
  SchedulingPolicy,
  SourceKind,
  WeeklySchedule,
)
from lesson_planner.conflicts import detect, find_conflicts, plan
from lesson_planner.recurrence import count_occurrences, generate, generate_count

try:
  __version__ = version("lesson-planner")
except PackageNotFoundError:
  __version__ = "unknown"

__all__ = [
  "AttemptState",
  "AttemptStateError",
  "ConflictRecord",
  "Decision",
  "Frequency",
  "Installment",
  "InstallmentStatus",
  "Interval",
  "LessonOccurrence",
  "ResolutionPlan",
  "SchedulingAttempt",
  "SchedulingPolicy",
  "SourceKind",
  "WeeklySchedule",
  "aggregate",
  "count_occurrences",
  "detect",
  "find_conflicts",
  "generate",
  "generate_count",
  "mark_paid",
  "plan",
  "split_fee",
]
