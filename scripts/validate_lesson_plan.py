#!/usr/bin/env python3
"""Validate a lesson plan YAML/JSON file against the repository schema.

Structural problems are reported from the JSON Schema; a plan that passes the
schema is then normalized so that semantic problems (bad dates, unknown billing
frequencies, duplicate ids) surface before anything is generated.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from lesson_planner.lesson_plan import (
    load_schema,
    normalize_lesson_plan,
    validate_plan_document,
)


def _load_yaml_or_json(path: Path):
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(text)
    import yaml

    return yaml.safe_load(text)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Validate a lesson plan file against the bundled lesson plan schema."
    )
    parser.add_argument("plan", help="Path to plan YAML/JSON file to validate.")
    parser.add_argument(
        "--schema",
        default=None,
        help="Path to JSON Schema YAML/JSON file (default: the schema shipped with lesson_planner).",
    )
    args = parser.parse_args()

    plan_path = Path(args.plan)
    try:
        plan = _load_yaml_or_json(plan_path)
        schema = load_schema(args.schema)
    except json.JSONDecodeError as exc:
        print(f"JSON parse error: {exc}", file=sys.stderr)
        return 2
    except (FileNotFoundError, RuntimeError) as exc:
        print(str(exc), file=sys.stderr)
        return 2

    errors = validate_plan_document(plan, schema)
    if errors:
        print(f"INVALID: {plan_path}")
        print(f"{len(errors)} validation error(s):")
        for message in errors:
            print(f"- {message}")
        return 1

    try:
        normalized = normalize_lesson_plan(plan)
    except ValueError as exc:
        print(f"INVALID: {plan_path}")
        print(f"- {exc}")
        return 1

    print(f"VALID: {plan_path} ({len(normalized['owners'])} owner(s))")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
