from __future__ import annotations

import enum
import logging
from typing import Any, Iterable, Mapping

from lesson_planner.classes import (
    ConflictRecord,
    Decision,
    Interval,
    ResolutionPlan,
    SchedulingPolicy,
)
from lesson_planner.conflicts import find_conflicts, plan

log = logging.getLogger(__name__)


class AttemptState(enum.Enum):
    IDLE = "idle"
    CANDIDATE_BUILT = "candidate_built"
    NO_CONFLICTS = "no_conflicts"
    CONFLICTS_FOUND = "conflicts_found"
    PLAN_BUILT = "plan_built"
    COMMITTED = "committed"
    ABANDONED = "abandoned"


TERMINAL_STATES = {AttemptState.COMMITTED, AttemptState.ABANDONED}


class AttemptStateError(RuntimeError):
    pass


class SchedulingAttempt:
    """Tracks one create/edit of a lesson or event through conflict checks.

    Every plan must be followed by another `check` before the attempt can be
    committed, since a rescheduled slot may still collide with other items.
    """

    def __init__(self, candidate: Interval | None = None, *, policy: SchedulingPolicy | None = None):
        self.policy = policy
        self.state = AttemptState.IDLE
        self.candidate: Interval | None = None
        self.conflicts: list[ConflictRecord] = []
        self.warnings: list[str] = []
        self.last_plan: ResolutionPlan | None = None
        if candidate is not None:
            self.build(candidate)

    def _require(self, *allowed: AttemptState) -> None:
        if self.state not in allowed:
            names = ", ".join(state.name for state in allowed)
            raise AttemptStateError(
                f"Cannot do this while attempt is {self.state.name}; expected one of: {names}"
            )

    def build(self, candidate: Interval) -> None:
        self._require(AttemptState.IDLE, AttemptState.CANDIDATE_BUILT)
        self.candidate = candidate
        self.state = AttemptState.CANDIDATE_BUILT

    def check(
        self,
        existing_lessons: Iterable[Any],
        existing_events: Iterable[Any],
        exclude_source_id: str | None = None,
    ) -> list[ConflictRecord]:
        self._require(
            AttemptState.CANDIDATE_BUILT,
            AttemptState.PLAN_BUILT,
            AttemptState.CONFLICTS_FOUND,
            AttemptState.NO_CONFLICTS,
        )
        self.conflicts, self.warnings = find_conflicts(
            self.candidate,
            existing_lessons,
            existing_events,
            exclude_source_id=exclude_source_id,
            policy=self.policy,
        )
        self.state = AttemptState.CONFLICTS_FOUND if self.conflicts else AttemptState.NO_CONFLICTS
        return self.conflicts

    @property
    def awaiting_decisions(self) -> bool:
        return self.state is AttemptState.CONFLICTS_FOUND

    def decide(self, decisions: Mapping[str, Decision | str]) -> ResolutionPlan:
        self._require(AttemptState.CONFLICTS_FOUND)
        resolution = plan(self.conflicts, decisions, self.policy)
        if resolution.is_blocking:
            # Undecided conflicts keep the attempt waiting for the user.
            return resolution
        if resolution.rescheduled is not None:
            self.candidate = resolution.rescheduled
        self.last_plan = resolution
        self.state = AttemptState.PLAN_BUILT
        return resolution

    def commit(self) -> Interval:
        self._require(AttemptState.NO_CONFLICTS)
        self.state = AttemptState.COMMITTED
        log.info(f"Committed {self.candidate.source_kind.value} {self.candidate.source_id!r}")
        return self.candidate

    def abandon(self) -> None:
        if self.state in TERMINAL_STATES:
            raise AttemptStateError(f"Attempt already {self.state.name}")
        self.state = AttemptState.ABANDONED
