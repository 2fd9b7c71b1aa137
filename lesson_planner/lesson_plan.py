from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from lesson_planner.billing import aggregate, split_fee
from lesson_planner.calendar_utils import (
    default_end_date,
    parse_date,
    parse_hhmm,
    schedule_day_indexes,
)
from lesson_planner.classes import (
    ConflictRecord,
    Frequency,
    Interval,
    SchedulingPolicy,
    WeeklySchedule,
)
from lesson_planner.conflicts import find_conflicts
from lesson_planner.recurrence import DEFAULT_TOPIC_PREFIX, generate, generate_count

log = logging.getLogger(__name__)

OWNER_KINDS = ("groups", "students")
DEFAULT_SCHEMA_PATH = Path(__file__).parent / "schemas" / "lesson_plan.schema.yaml"


@dataclass
class CalendarBuildResult:
    normalized_plan: dict[str, Any]
    calendar_json: dict[str, Any]
    warnings: list[str]
    output_paths: dict[str, Path]


def _load_yaml_module():
    try:
        import yaml
    except ModuleNotFoundError as exc:
        raise RuntimeError(
            "PyYAML is required for lesson-plan workflows. "
            "Install dependencies (e.g., `uv sync --dev`)."
        ) from exc
    return yaml


def _load_jsonschema_module():
    try:
        import jsonschema
    except ModuleNotFoundError as exc:
        raise RuntimeError(
            "jsonschema is required to validate lesson plans. "
            "Install dependencies (e.g., `uv sync --dev`)."
        ) from exc
    return jsonschema


def load_schema(schema_path: str | Path | None = None) -> dict[str, Any]:
    path = Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(text)
    return _load_yaml_module().safe_load(text)


def _path_to_string(error_path) -> str:
    parts = []
    for part in error_path:
        if isinstance(part, int):
            parts.append(f"[{part}]")
        else:
            parts.append(f".{part}")
    return "$" + "".join(parts)


def validate_plan_document(raw_plan: Any, schema: dict[str, Any] | None = None) -> list[str]:
    """Return schema violations as `$.path: message` strings (empty when valid)."""
    jsonschema = _load_jsonschema_module()
    schema = schema if schema is not None else load_schema()
    # YAML gives date objects; the schema describes the ISO strings they came from.
    document = json.loads(json.dumps(raw_plan, default=str))
    validator = jsonschema.Draft202012Validator(schema)
    messages = []
    for error in sorted(validator.iter_errors(document), key=lambda e: list(map(str, e.path))):
        message = f"{_path_to_string(error.path)}: {error.message}"
        context = jsonschema.exceptions.best_match(error.context) if error.context else None
        if context is not None:
            message += f" ({context.message})"
        messages.append(message)
    return messages


def _parse_price(value: Any, *, owner_id: str) -> Decimal:
    try:
        return Decimal(str(value if value is not None else 0))
    except InvalidOperation as exc:
        raise ValueError(f"Owner '{owner_id}' has an invalid price: {value!r}") from exc


def load_lesson_plan(plan_path: str | Path) -> dict[str, Any]:
    yaml = _load_yaml_module()
    raw = yaml.safe_load(Path(plan_path).read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("Lesson plan must be a mapping/object at the top level.")
    return raw


def _normalize_schedule(raw: Any, *, owner_id: str) -> dict[str, Any]:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Owner '{owner_id}' has a `schedule` that is not a mapping.")
    schedule = WeeklySchedule.from_mapping(raw)
    # Keep unparseable times as given; generation degrades to no lessons.
    times = {}
    for key, value in (("start_time", schedule.start_time), ("end_time", schedule.end_time)):
        try:
            times[key] = parse_hhmm(value)
        except ValueError:
            times[key] = value
    return {
        "days": list(schedule.days),
        "day_indexes": sorted(schedule_day_indexes(schedule.days)),
        "start_time": times["start_time"],
        "end_time": times["end_time"],
    }


def _normalize_owner(raw: dict[str, Any], *, kind: str) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise ValueError(f"Each entry in `{kind}` must be a mapping.")
    owner_id = str(raw.get("id") or "").strip()
    if not owner_id:
        raise ValueError(f"Each entry in `{kind}` requires an `id`.")

    if "start_date" not in raw:
        raise ValueError(f"Owner '{owner_id}' requires a `start_date`.")
    start_date = parse_date(raw["start_date"])

    number_of_lessons = raw.get("number_of_lessons")
    if number_of_lessons is not None:
        number_of_lessons = int(number_of_lessons)
        if number_of_lessons < 0:
            raise ValueError(f"Owner '{owner_id}' has a negative `number_of_lessons`.")

    end_date_raw = raw.get("end_date")
    if end_date_raw is not None:
        end_date = parse_date(end_date_raw)
    elif number_of_lessons is None:
        end_date = default_end_date(start_date)
    else:
        end_date = None

    frequency_raw = str(raw.get("billing_frequency", "daily")).strip().lower().replace("-", "_")
    try:
        frequency = Frequency(frequency_raw)
    except ValueError as exc:
        raise ValueError(
            f"Owner '{owner_id}' has unknown `billing_frequency`: {raw.get('billing_frequency')!r}"
        ) from exc

    total_fee = raw.get("total_fee")
    if frequency is Frequency.MONTHLY and total_fee is None:
        raise ValueError(f"Owner '{owner_id}' uses monthly billing and requires `total_fee`.")

    return {
        "id": owner_id,
        "kind": kind,
        "name": str(raw.get("name", owner_id)),
        "schedule": _normalize_schedule(raw.get("schedule"), owner_id=owner_id),
        "start_date": start_date,
        "end_date": end_date,
        "number_of_lessons": number_of_lessons,
        "price_per_lesson": _parse_price(raw.get("price_per_lesson"), owner_id=owner_id),
        "total_fee": (
            _parse_price(total_fee, owner_id=owner_id) if total_fee is not None else None
        ),
        "billing_frequency": frequency,
        "topic_prefix": str(raw.get("topic_prefix") or DEFAULT_TOPIC_PREFIX),
    }


def normalize_lesson_plan(raw_plan: dict[str, Any]) -> dict[str, Any]:
    plan = copy.deepcopy(raw_plan)

    owners: list[dict[str, Any]] = []
    seen_ids: set[str] = set()
    for kind in OWNER_KINDS:
        entries = plan.get(kind) or []
        if not isinstance(entries, list):
            raise ValueError(f"`{kind}` must be a list when provided.")
        for entry in entries:
            owner = _normalize_owner(entry, kind=kind)
            if owner["id"] in seen_ids:
                raise ValueError(f"Duplicate owner id '{owner['id']}'.")
            seen_ids.add(owner["id"])
            owners.append(owner)

    for key in ("lessons", "events"):
        if not isinstance(plan.get(key) or [], list):
            raise ValueError(f"`{key}` must be a list when provided.")

    return {
        "version": str(plan.get("version", "1.0")),
        "policy": SchedulingPolicy.from_mapping(plan.get("policy")),
        "owners": owners,
        "lessons": list(plan.get("lessons") or []),
        "events": list(plan.get("events") or []),
    }


def _owner_schedule(owner: dict[str, Any]) -> WeeklySchedule:
    schedule = owner["schedule"]
    return WeeklySchedule(
        days=tuple(schedule["days"]),
        start_time=schedule["start_time"],
        end_time=schedule["end_time"],
    )


def build_schedule(plan: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    warnings: list[str] = []
    owners_json: list[dict[str, Any]] = []

    for owner in plan["owners"]:
        owner_id = owner["id"]
        schedule = _owner_schedule(owner)
        if owner["end_date"] is not None:
            occurrences = generate(
                schedule,
                owner["start_date"],
                owner["end_date"],
                owner_id,
                topic_prefix=owner["topic_prefix"],
            )
            intended = owner["start_date"] <= owner["end_date"]
        else:
            occurrences = generate_count(
                schedule,
                owner["start_date"],
                owner["number_of_lessons"],
                owner_id,
                topic_prefix=owner["topic_prefix"],
            )
            intended = owner["number_of_lessons"] > 0

        if intended and not occurrences:
            warnings.append(
                f"Owner '{owner_id}' has no lessons in its window; check its schedule "
                f"(days={schedule.days!r}, {schedule.start_time}-{schedule.end_time})."
            )

        if owner["billing_frequency"] is Frequency.MONTHLY:
            last_date = occurrences[-1].date if occurrences else owner["end_date"]
            installments = split_fee(
                owner["total_fee"],
                owner["start_date"],
                last_date or owner["start_date"],
            )
        else:
            installments = aggregate(
                occurrences,
                owner["price_per_lesson"],
                owner["billing_frequency"],
            )
            if owner["price_per_lesson"] <= 0 and occurrences:
                warnings.append(
                    f"Owner '{owner_id}' has a non-positive price; installments are zero or negative."
                )

        end_date = occurrences[-1].date if occurrences else owner["end_date"]
        owners_json.append(
            {
                "id": owner_id,
                "kind": owner["kind"],
                "name": owner["name"],
                "start_date": owner["start_date"].isoformat(),
                "end_date": end_date.isoformat() if end_date else None,
                "billing_frequency": owner["billing_frequency"].value,
                "occurrences": [occurrence.to_json() for occurrence in occurrences],
                "installments": [installment.to_json() for installment in installments],
            }
        )

    calendar = {
        "version": plan["version"],
        "policy": plan["policy"].to_json(),
        "owners": owners_json,
    }
    return calendar, warnings


def check_candidate(
    plan: dict[str, Any],
    candidate: Interval,
    exclude_source_id: str | None = None,
) -> tuple[list[ConflictRecord], list[str]]:
    return find_conflicts(
        candidate,
        plan["lessons"],
        plan["events"],
        exclude_source_id=exclude_source_id,
        policy=plan["policy"],
    )


def _serializable_plan(normalized: dict[str, Any]) -> dict[str, Any]:
    def _iso(value: date | None) -> str | None:
        return value.isoformat() if value else None

    return {
        "version": normalized["version"],
        "policy": normalized["policy"].to_json(),
        "owners": [
            {
                **owner,
                "start_date": _iso(owner["start_date"]),
                "end_date": _iso(owner["end_date"]),
                "price_per_lesson": str(owner["price_per_lesson"]),
                "total_fee": str(owner["total_fee"]) if owner["total_fee"] is not None else None,
                "billing_frequency": owner["billing_frequency"].value,
            }
            for owner in normalized["owners"]
        ],
        "lessons": json.loads(json.dumps(normalized["lessons"], default=str)),
        "events": json.loads(json.dumps(normalized["events"], default=str)),
    }


def build_lesson_calendar(
    *,
    plan_path: str | Path,
    output_dir: str | Path,
) -> CalendarBuildResult:
    raw = load_lesson_plan(plan_path)
    normalized = normalize_lesson_plan(raw)
    calendar_json, warnings = build_schedule(normalized)
    for warning in warnings:
        log.warning(warning)

    output_root = Path(output_dir)
    output_root.mkdir(parents=True, exist_ok=True)
    json_path = output_root / "calendar.json"
    normalized_path = output_root / "normalized_plan.yaml"

    yaml = _load_yaml_module()
    json_path.write_text(json.dumps(calendar_json, indent=2) + "\n", encoding="utf-8")
    normalized_path.write_text(
        yaml.safe_dump(
            _serializable_plan(normalized),
            sort_keys=False,
            allow_unicode=False,
        ),
        encoding="utf-8",
    )

    return CalendarBuildResult(
        normalized_plan=normalized,
        calendar_json=calendar_json,
        warnings=warnings,
        output_paths={
            "calendar_json": json_path,
            "normalized_plan": normalized_path,
        },
    )
