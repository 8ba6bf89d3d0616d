"""Work-day arithmetic: chargeable days, pro-rata entitlement, carry-over.

All functions are pure and return ``Decimal`` quantities in half-day steps.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from leavedesk.common.constants import HalfDay

FULL_DAY = Decimal("1")
HALF_DAY = Decimal("0.5")
ZERO = Decimal("0")

# Monday=0 … Sunday=6
WEEKEND_DAYS = frozenset({5, 6})


def is_working_day(day: date, holidays: Iterable[date]) -> bool:
    if day.weekday() in WEEKEND_DAYS:
        return False
    return day not in holidays


def compute_work_days(
    start_date: date,
    end_date: date,
    holidays: Iterable[date] = (),
    start_half_day: Optional[HalfDay] = None,
    end_half_day: Optional[HalfDay] = None,
) -> Decimal:
    """Count chargeable work-days in ``[start_date, end_date]`` inclusive.

    Weekends and *holidays* count 0. A half-day flag on the first or last
    date charges 0.5 for that date, but only when it is a working day. A
    single-day range with any flag charges exactly 0.5. An inverted range
    counts 0.
    """
    if end_date < start_date:
        return ZERO

    holiday_set = frozenset(holidays)
    single_day = start_date == end_date

    total = ZERO
    current = start_date
    while current <= end_date:
        if is_working_day(current, holiday_set):
            if single_day:
                total += HALF_DAY if (start_half_day or end_half_day) else FULL_DAY
            elif current == start_date and start_half_day:
                total += HALF_DAY
            elif current == end_date and end_half_day:
                total += HALF_DAY
            else:
                total += FULL_DAY
        current += timedelta(days=1)

    return total


def round_to_half(value: Decimal) -> Decimal:
    """Round to the nearest 0.5, halves away from zero."""
    doubled = (Decimal(value) * 2).quantize(FULL_DAY, rounding=ROUND_HALF_UP)
    return doubled / 2


def pro_rata_entitlement(
    joined_on: Optional[date],
    annual_days: Decimal,
    year: int,
) -> Decimal:
    """Annual entitlement scaled to the months employed in *year*.

    Joining before the year gives the full amount, after it nothing. A
    mid-year joiner earns ``annual / 12`` for each month starting with the
    joining month.
    """
    annual = Decimal(annual_days)
    if joined_on is None or joined_on < date(year, 1, 1):
        return annual
    if joined_on > date(year, 12, 31):
        return ZERO

    months_worked = 12 - (joined_on.month - 1)
    return round_to_half(annual / 12 * months_worked)


def carryover_amount(
    previous_remaining: Decimal,
    max_carryover_days: Optional[Decimal] = None,
) -> Decimal:
    """Portion of last year's unused balance moved into the new year."""
    remaining = Decimal(previous_remaining)
    if remaining <= 0:
        return ZERO
    if max_carryover_days is not None:
        return min(remaining, Decimal(max_carryover_days))
    return remaining


def date_ranges_overlap(
    start_a: date, end_a: date, start_b: date, end_b: date
) -> bool:
    """Inclusive overlap test at date granularity."""
    return start_a <= end_b and end_a >= start_b
