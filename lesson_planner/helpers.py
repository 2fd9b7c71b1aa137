#!env python

import argparse
import logging
import os
import sys
from datetime import datetime

from lesson_planner.calendar_utils import parse_date, time_from_hhmm
from lesson_planner.classes import Interval, SourceKind
from lesson_planner.lesson_plan import (
  build_lesson_calendar,
  check_candidate,
  load_lesson_plan,
  normalize_lesson_plan,
)

# Configure logging to actually output
logging.basicConfig()
log = logging.getLogger(__name__)
log.setLevel(os.environ.get("LESSON_PLANNER_LOG_LEVEL", "INFO").upper())


def build_calendar(plan_path, output_dir) -> int:
  result = build_lesson_calendar(plan_path=plan_path, output_dir=output_dir)
  for owner in result.calendar_json["owners"]:
    log.info(
      f"{owner['id']}: {len(owner['occurrences'])} lesson(s), "
      f"{len(owner['installments'])} installment(s)"
    )
  for name, path in result.output_paths.items():
    log.info(f"  - {name}: {path}")
  return 0


def check_conflicts(plan_path, day, start, end, exclude=None, kind="lesson", label="") -> int:
  plan = normalize_lesson_plan(load_lesson_plan(plan_path))
  lesson_date = parse_date(day)
  candidate = Interval(
    start=datetime.combine(lesson_date, time_from_hhmm(start)),
    end=datetime.combine(lesson_date, time_from_hhmm(end)),
    source_id=exclude,
    source_kind=SourceKind(kind),
    label=label,
  )
  if candidate.start >= candidate.end:
    log.error("Start time must be before end time")
    return 2

  conflicts, warnings = check_candidate(plan, candidate, exclude_source_id=exclude)
  for warning in warnings:
    log.warning(warning)
  if not conflicts:
    log.info("No conflicts found")
    return 0

  log.info(f"Found {len(conflicts)} conflict(s):")
  for conflict in conflicts:
    existing = conflict.existing
    log.info(
      f"  - {existing.source_kind.value} {existing.source_id} \"{existing.label}\" "
      f"{existing.start:%Y-%m-%d %H:%M} - {existing.end:%H:%M}"
    )
  return 1


def main(argv=None):

  # Mapping of short CLI names to helper functions
  HELPERS = {
    "build": "build_calendar",
    "check": "check_conflicts",
  }

  parser = argparse.ArgumentParser(
    description="Lesson schedule, installment and conflict helpers"
  )

  parser.add_argument(
    "helper",
    choices=HELPERS.keys(),
    help="Helper function to run"
  )

  parser.add_argument(
    "plan",
    help="Path to a lesson plan YAML file"
  )

  parser.add_argument(
    "--output-dir",
    default="build",
    help="Directory for calendar.json and normalized_plan.yaml (build)"
  )

  parser.add_argument("--date", help="Candidate date, YYYY-MM-DD (check)")
  parser.add_argument("--start", help="Candidate start time, HH:MM (check)")
  parser.add_argument("--end", help="Candidate end time, HH:MM (check)")
  parser.add_argument(
    "--kind",
    choices=[kind.value for kind in SourceKind],
    default=SourceKind.LESSON.value,
    help="Whether the candidate is a lesson or an event (check)"
  )
  parser.add_argument("--label", default="", help="Candidate label (check)")
  parser.add_argument(
    "--exclude",
    help="Source id of the record being edited, ignored during the check"
  )

  args = parser.parse_args(argv)

  if HELPERS[args.helper] == "check_conflicts":
    missing = [flag for flag in ("date", "start", "end") if not getattr(args, flag)]
    if missing:
      parser.error(f"--{', --'.join(missing)} required for 'check'")
    return check_conflicts(
      args.plan,
      args.date,
      args.start,
      args.end,
      exclude=args.exclude,
      kind=args.kind,
      label=args.label,
    )

  return build_calendar(args.plan, args.output_dir)


if __name__ == "__main__":
  sys.exit(main())
