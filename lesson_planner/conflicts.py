"""Conflict detection against existing lessons/events, and resolution planning."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Iterable, Mapping, Sequence

from lesson_planner.classes import (
    DEFAULT_POLICY,
    ConflictRecord,
    Decision,
    Interval,
    ResolutionPlan,
    SchedulingPolicy,
    SourceKind,
)
from lesson_planner.intervals import interval_from_record, overlaps

log = logging.getLogger(__name__)


def find_conflicts(
    candidate: Interval,
    existing_lessons: Iterable[Any],
    existing_events: Iterable[Any],
    exclude_source_id: str | None = None,
    policy: SchedulingPolicy | None = None,
) -> tuple[list[ConflictRecord], list[str]]:
    """Return conflicts with the candidate plus data-quality warnings.

    Lessons are scanned before events, each in the order supplied. Records
    whose source id equals `exclude_source_id` are ignored, which lets an
    item be edited in place without conflicting with its stored self.
    """
    exclude = str(exclude_source_id) if exclude_source_id is not None else None
    conflicts: list[ConflictRecord] = []
    warnings: list[str] = []

    sources = (
        (SourceKind.LESSON, existing_lessons or ()),
        (SourceKind.EVENT, existing_events or ()),
    )
    for source_kind, records in sources:
        for record in records:
            existing, record_warnings = interval_from_record(record, source_kind, policy)
            warnings.extend(record_warnings)
            if existing is None:
                continue
            if exclude is not None and existing.source_id == exclude:
                continue
            if overlaps(candidate, existing):
                conflicts.append(ConflictRecord(candidate=candidate, existing=existing))

    if conflicts:
        log.info(
            f"Candidate {candidate.label or candidate.source_id!r} "
            f"({candidate.start.isoformat()} - {candidate.end.isoformat()}) "
            f"conflicts with {len(conflicts)} item(s)"
        )
    return conflicts, warnings


def detect(
    candidate: Interval,
    existing_lessons: Iterable[Any],
    existing_events: Iterable[Any],
    exclude_source_id: str | None = None,
    policy: SchedulingPolicy | None = None,
) -> list[ConflictRecord]:
    conflicts, _ = find_conflicts(
        candidate,
        existing_lessons,
        existing_events,
        exclude_source_id=exclude_source_id,
        policy=policy,
    )
    return conflicts


def _coerce_decision(value: Any) -> Decision | None:
    if isinstance(value, Decision):
        return value
    if value is None:
        return None
    try:
        return Decision(str(value).strip().lower())
    except ValueError:
        return None


def probe_reschedule(
    candidate: Interval,
    conflicting: Sequence[Interval],
    policy: SchedulingPolicy | None = None,
) -> Interval:
    """Single-probe slot for a candidate that must move away from `conflicting`.

    The probe starts when the latest conflicting item ends. If that is at or
    past the end of the business day, it starts `fallback_offset` before the
    earliest conflicting item instead. Starts before the business day are
    pushed to its opening. The candidate's duration is kept. The probed slot
    is not checked against any other item.
    """
    policy = policy or DEFAULT_POLICY
    duration = candidate.duration

    start = max(item.end for item in conflicting)
    if start.time() >= policy.day_end:
        start = min(item.start for item in conflicting) - policy.fallback_offset
    if start.time() < policy.day_start:
        start = datetime.combine(start.date(), policy.day_start)

    return replace(candidate, start=start, end=start + duration)


def plan(
    conflicts: Sequence[ConflictRecord],
    decisions: Mapping[str, Decision | str],
    policy: SchedulingPolicy | None = None,
) -> ResolutionPlan:
    to_delete: list[str] = []
    to_reschedule: list[ConflictRecord] = []
    unresolved: list[ConflictRecord] = []

    for conflict in conflicts:
        source_id = conflict.existing.source_id
        decision = _coerce_decision(decisions.get(source_id)) if source_id is not None else None
        if decision is Decision.DELETE:
            if source_id not in to_delete:
                to_delete.append(source_id)
        elif decision is Decision.RESCHEDULE:
            to_reschedule.append(conflict)
        else:
            unresolved.append(conflict)

    rescheduled = None
    if to_reschedule:
        rescheduled = probe_reschedule(
            to_reschedule[0].candidate,
            [conflict.existing for conflict in to_reschedule],
            policy,
        )
        log.info(
            f"Rescheduling candidate to {rescheduled.start.isoformat()} - "
            f"{rescheduled.end.isoformat()}"
        )
    if unresolved:
        log.debug(f"{len(unresolved)} conflict(s) left without a decision")

    return ResolutionPlan(
        to_delete=tuple(to_delete),
        rescheduled=rescheduled,
        unresolved=tuple(unresolved),
    )
