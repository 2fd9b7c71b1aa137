from __future__ import annotations

import types
from datetime import date

import pytest

from lesson_planner.calendar_utils import (
    add_months,
    days_in_range,
    default_end_date,
    default_window,
    months_between,
    parse_date,
    parse_hhmm,
    schedule_day_indexes,
    week_bucket_key,
    weekday_index,
    weekday_of,
)


def test_weekday_index_uses_sunday_first_convention():
    assert weekday_index("Sun") == 0
    assert weekday_index("Mon") == 1
    assert weekday_index("Sat") == 6


def test_weekday_index_accepts_full_names_and_any_case():
    assert weekday_index("monday") == 1
    assert weekday_index("WEDNESDAY") == 3
    assert weekday_index("thu") == 4


def test_weekday_index_returns_none_for_unknown_names():
    assert weekday_index("Funday") is None
    assert weekday_index("") is None
    assert weekday_index(None) is None


def test_schedule_day_indexes_drops_unknown_and_duplicate_names():
    assert schedule_day_indexes(["Mon", "mon", "Monday", "Blursday", "Fri"]) == {1, 5}


def test_weekday_of_matches_weekday_index():
    # 2024-01-07 is a Sunday, 2024-01-13 a Saturday.
    assert weekday_of(date(2024, 1, 7)) == 0
    assert weekday_of(date(2024, 1, 13)) == 6
    assert weekday_of(date(2024, 1, 1)) == weekday_index("Mon")


def test_days_in_range_is_lazy_and_inclusive():
    days = days_in_range(date(2024, 1, 30), date(2024, 2, 2))
    assert isinstance(days, types.GeneratorType)
    assert list(days) == [
        date(2024, 1, 30),
        date(2024, 1, 31),
        date(2024, 2, 1),
        date(2024, 2, 2),
    ]


def test_days_in_range_is_empty_when_start_after_end():
    assert list(days_in_range(date(2024, 1, 3), date(2024, 1, 1))) == []


def test_week_bucket_key_is_monday_of_iso_week():
    assert week_bucket_key(date(2024, 1, 1)) == date(2024, 1, 1)
    assert week_bucket_key(date(2024, 1, 3)) == date(2024, 1, 1)
    # Sunday belongs to the week that started the previous Monday.
    assert week_bucket_key(date(2024, 1, 7)) == date(2024, 1, 1)
    assert week_bucket_key(date(2024, 1, 8)) == date(2024, 1, 8)


def test_parse_helpers_normalize_inputs():
    assert parse_date("2024-02-05") == date(2024, 2, 5)
    assert parse_date("2024-02-05T09:30:00Z") == date(2024, 2, 5)
    assert parse_date(date(2024, 2, 5)) == date(2024, 2, 5)
    assert parse_hhmm("9:05") == "09:05"
    with pytest.raises(ValueError, match="HH:MM"):
        parse_hhmm("9am")
    with pytest.raises(ValueError):
        parse_date(20240205)


def test_month_arithmetic_clamps_to_month_length():
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2023, 11, 30), 3) == date(2024, 2, 29)
    assert months_between(date(2024, 1, 15), date(2024, 4, 14)) == 2
    assert months_between(date(2024, 1, 15), date(2024, 4, 15)) == 3
    assert months_between(date(2024, 1, 15), date(2024, 1, 20)) == 0


def test_months_between_counts_month_ends_as_whole_months():
    assert months_between(date(2024, 1, 31), date(2024, 2, 29)) == 1
    assert months_between(date(2023, 1, 31), date(2023, 2, 28)) == 1
    assert months_between(date(2024, 3, 31), date(2024, 4, 30)) == 1
    assert months_between(date(2024, 1, 31), date(2024, 3, 30)) == 1
    assert months_between(date(2024, 3, 20), date(2024, 1, 15)) == -2


def test_default_dates_are_computed_from_caller_supplied_day():
    assert default_end_date(date(2024, 1, 1)) == date(2024, 3, 25)
    assert default_window(date(2024, 11, 30)) == (date(2024, 11, 30), date(2025, 2, 28))
