from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from lesson_planner.billing import aggregate, mark_paid, split_fee
from lesson_planner.classes import Frequency, InstallmentStatus, WeeklySchedule
from lesson_planner.recurrence import generate

MON_WED = WeeklySchedule(days=("Mon", "Wed"), start_time="09:00", end_time="10:00")


def _lessons(start: date, end: date):
    return generate(MON_WED, start, end, owner_id="grp-a1")


def test_daily_billing_creates_one_installment_per_lesson():
    occurrences = _lessons(date(2024, 1, 1), date(2024, 1, 15))[:5]
    installments = aggregate(occurrences, 100, Frequency.DAILY)

    assert len(installments) == 5
    assert [i.amount for i in installments] == [Decimal("100")] * 5
    assert [i.due_date for i in installments] == [o.date for o in occurrences]
    assert [i.number for i in installments] == [1, 2, 3, 4, 5]
    assert all(i.status is InstallmentStatus.UNPAID for i in installments)


def test_weekly_billing_sums_lessons_per_iso_week():
    occurrences = _lessons(date(2024, 1, 1), date(2024, 1, 14))
    installments = aggregate(occurrences, 50, "weekly")

    assert [i.amount for i in installments] == [Decimal("100"), Decimal("100")]
    assert [i.due_date for i in installments] == [date(2024, 1, 3), date(2024, 1, 10)]
    assert all(i.frequency is Frequency.WEEKLY for i in installments)


def test_four_weekly_billing_is_anchored_to_first_lesson():
    occurrences = _lessons(date(2024, 1, 1), date(2024, 2, 29))
    installments = aggregate(occurrences, 10, Frequency.FOUR_WEEKLY)

    assert [len(i.occurrences) for i in installments] == [8, 8, 2]
    assert [i.due_date for i in installments] == [
        date(2024, 1, 24),
        date(2024, 2, 21),
        date(2024, 2, 28),
    ]
    assert [i.amount for i in installments] == [Decimal("80"), Decimal("80"), Decimal("20")]


def test_four_weekly_periods_shift_with_the_first_lesson():
    base = aggregate(_lessons(date(2024, 1, 1), date(2024, 2, 29)), 10, "four_weekly")
    shifted = aggregate(_lessons(date(2024, 1, 8), date(2024, 3, 7)), 10, "four_weekly")

    assert [len(i.occurrences) for i in shifted] == [len(i.occurrences) for i in base]
    assert [i.due_date for i in shifted] == [i.due_date + timedelta(days=7) for i in base]


def test_four_weekly_first_period_is_full_for_mid_week_start():
    occurrences = _lessons(date(2024, 1, 3), date(2024, 2, 29))
    installments = aggregate(occurrences, 10, Frequency.FOUR_WEEKLY)

    assert len(installments[0].occurrences) == 8
    assert installments[0].due_date == date(2024, 1, 29)


@pytest.mark.parametrize("frequency", list(Frequency)[:3])
def test_installments_partition_the_occurrences(frequency):
    occurrences = _lessons(date(2024, 1, 1), date(2024, 4, 30))
    price = Decimal("37.50")
    installments = aggregate(occurrences, price, frequency)

    covered = [o for i in installments for o in i.occurrences]
    assert covered == occurrences
    assert sum(i.amount for i in installments) == price * len(occurrences)
    assert [i.number for i in installments] == list(range(1, len(installments) + 1))
    due_dates = [i.due_date for i in installments]
    assert due_dates == sorted(due_dates)


def test_aggregate_handles_empty_input_and_zero_price():
    assert aggregate([], 100, Frequency.WEEKLY) == []

    installments = aggregate(_lessons(date(2024, 1, 1), date(2024, 1, 7)), 0, "daily")
    assert [i.amount for i in installments] == [Decimal("0"), Decimal("0")]


def test_aggregate_rejects_frequencies_it_cannot_bucket():
    occurrences = _lessons(date(2024, 1, 1), date(2024, 1, 7))
    with pytest.raises(ValueError, match="monthly"):
        aggregate(occurrences, 10, Frequency.MONTHLY)
    with pytest.raises(ValueError, match="Unknown billing frequency"):
        aggregate(occurrences, 10, "fortnightly")


def test_split_fee_spreads_remainder_onto_last_installment():
    installments = split_fee(1000, date(2024, 1, 15), date(2024, 4, 14))

    assert [i.amount for i in installments] == [
        Decimal("333.33"),
        Decimal("333.33"),
        Decimal("333.34"),
    ]
    assert [i.due_date for i in installments] == [
        date(2024, 1, 15),
        date(2024, 2, 15),
        date(2024, 3, 15),
    ]
    assert sum(i.amount for i in installments) == Decimal("1000")
    assert all(i.frequency is Frequency.MONTHLY for i in installments)


def test_split_fee_clamps_due_dates_to_month_end():
    installments = split_fee("900", date(2024, 1, 31), date(2024, 3, 31))
    assert [i.due_date for i in installments] == [
        date(2024, 1, 31),
        date(2024, 2, 29),
        date(2024, 3, 31),
    ]


def test_split_fee_counts_month_end_to_month_end_as_two_installments():
    installments = split_fee(600, date(2024, 1, 31), date(2024, 2, 29))

    assert [i.amount for i in installments] == [Decimal("300.00"), Decimal("300.00")]
    assert [i.due_date for i in installments] == [date(2024, 1, 31), date(2024, 2, 29)]


def test_split_fee_returns_nothing_for_empty_plans():
    assert split_fee(0, date(2024, 1, 1), date(2024, 6, 1)) == []
    assert split_fee(500, date(2024, 6, 1), date(2024, 1, 1)) == []


def test_mark_paid_returns_updated_copy():
    installments = aggregate(_lessons(date(2024, 1, 1), date(2024, 1, 7)), 10, "daily")
    updated = mark_paid(installments, 2)

    assert updated[1].status is InstallmentStatus.PAID
    assert installments[1].status is InstallmentStatus.UNPAID
    with pytest.raises(KeyError):
        mark_paid(installments, 9)
