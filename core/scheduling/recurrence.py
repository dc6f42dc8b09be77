#!/usr/bin/env python3
"""
Recurring job date generation.

A recurring series is a parent (template) post on the seed date plus one
child post for every selected weekday after it, up to and including the
end date.
"""

from datetime import date, timedelta
from typing import Iterable, List

WEEKDAY_NAMES = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')


def normalize_weekdays(weekdays: Iterable[str]) -> List[str]:
    """Lower-case and de-duplicate weekday names, keeping calendar order.

    Raises:
        ValueError: If a name is not a weekday.
    """
    wanted = set()
    for name in weekdays:
        key = str(name).strip().lower()
        if key not in WEEKDAY_NAMES:
            raise ValueError(
                f"Invalid weekday '{name}'. Must be one of: {', '.join(WEEKDAY_NAMES)}"
            )
        wanted.add(key)
    return [name for name in WEEKDAY_NAMES if name in wanted]


def weekday_name(day: date) -> str:
    return WEEKDAY_NAMES[day.weekday()]


def generate_recurring_dates(start_date: date, end_date: date, weekdays: Iterable[str]) -> List[date]:
    """
    Walk every calendar day in (start_date, end_date] and return the ones whose
    weekday is selected.

    The seed start_date is never returned: it belongs to the parent post.

    >>> generate_recurring_dates(date(2025, 1, 1), date(2025, 1, 15), ['monday', 'wednesday'])
    [datetime.date(2025, 1, 6), datetime.date(2025, 1, 8), datetime.date(2025, 1, 13), datetime.date(2025, 1, 15)]
    """
    selected = set(normalize_weekdays(weekdays))
    dates = []
    current = start_date + timedelta(days=1)
    while current <= end_date:
        if weekday_name(current) in selected:
            dates.append(current)
        current += timedelta(days=1)
    return dates
