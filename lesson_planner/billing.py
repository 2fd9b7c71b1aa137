"""Grouping of lesson occurrences into billing installments."""

from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_DOWN, Decimal
from typing import Any, Callable, Iterable, Sequence

from lesson_planner.calendar_utils import add_months, months_between, week_bucket_key
from lesson_planner.classes import (
    Frequency,
    Installment,
    InstallmentStatus,
    LessonOccurrence,
)

log = logging.getLogger(__name__)

CENT = Decimal("0.01")
WEEKS_PER_FOUR_WEEKLY_PERIOD = 4


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _coerce_frequency(frequency: Frequency | str) -> Frequency:
    if isinstance(frequency, Frequency):
        return frequency
    try:
        return Frequency(str(frequency).strip().lower().replace("-", "_"))
    except ValueError as exc:
        raise ValueError(f"Unknown billing frequency: {frequency!r}") from exc


def _bucket_function(
    frequency: Frequency, first_date: date
) -> Callable[[int, LessonOccurrence], Any]:
    if frequency is Frequency.DAILY:
        return lambda position, occurrence: position
    if frequency is Frequency.WEEKLY:
        return lambda position, occurrence: week_bucket_key(occurrence.date)
    if frequency is Frequency.FOUR_WEEKLY:
        # Periods start at the first lesson, not at calendar-month boundaries.
        return lambda position, occurrence: (
            (occurrence.date - first_date).days // 7
        ) // WEEKS_PER_FOUR_WEEKLY_PERIOD
    raise ValueError(f"Frequency {frequency.value!r} cannot be used to aggregate occurrences.")


def aggregate(
    occurrences: Iterable[LessonOccurrence],
    price_per_occurrence: Decimal | int | float | str,
    frequency: Frequency | str,
) -> list[Installment]:
    """Group occurrences into installments under a billing frequency.

    Each installment's amount is `len(bucket) * price_per_occurrence` and its
    due date is the date of the last occurrence in the bucket. The price is
    not validated here.
    """
    frequency = _coerce_frequency(frequency)
    ordered = sorted(occurrences, key=lambda o: (o.date, o.start_time, o.sequence_index))
    if not ordered:
        return []
    price = _to_decimal(price_per_occurrence)
    bucket_of = _bucket_function(frequency, ordered[0].date)

    buckets: dict[Any, list[LessonOccurrence]] = {}
    for position, occurrence in enumerate(ordered):
        buckets.setdefault(bucket_of(position, occurrence), []).append(occurrence)

    installments: list[Installment] = []
    for number, bucket in enumerate(buckets.values(), start=1):
        installments.append(
            Installment(
                number=number,
                amount=price * len(bucket),
                due_date=bucket[-1].date,
                frequency=frequency,
                occurrences=tuple(bucket),
            )
        )
    return installments


def split_fee(
    total_fee: Decimal | int | float | str,
    start_date: date,
    end_date: date,
) -> list[Installment]:
    """Split a fixed course fee into monthly installments.

    One installment per started month between start_date and end_date, due on
    the same day of each month. Amounts are rounded down to cents and the
    remainder is added to the final installment, so they always sum to the fee.
    """
    fee = _to_decimal(total_fee)
    if fee <= 0 or end_date < start_date:
        return []
    count = months_between(start_date, end_date) + 1
    share = (fee / count).quantize(CENT, rounding=ROUND_DOWN)
    remainder = fee - share * count

    installments = []
    for idx in range(count):
        amount = share + remainder if idx == count - 1 else share
        installments.append(
            Installment(
                number=idx + 1,
                amount=amount,
                due_date=add_months(start_date, idx),
                frequency=Frequency.MONTHLY,
            )
        )
    return installments


def mark_paid(installments: Sequence[Installment], number: int) -> list[Installment]:
    updated = list(installments)
    for idx, installment in enumerate(updated):
        if installment.number == number:
            updated[idx] = installment.with_status(InstallmentStatus.PAID)
            log.debug(f"Installment {number} marked as paid")
            return updated
    raise KeyError(f"No installment numbered {number}")
