from core.scheduling.civil_time import (
    ShiftWindow,
    InvalidTimeError,
    parse_time_of_day,
    parse_civil_date,
    format_time_of_day,
)
from core.scheduling.conflicts import ConflictResolver, ScheduledShift
from core.scheduling.recurrence import (
    WEEKDAY_NAMES,
    generate_recurring_dates,
    normalize_weekdays,
    weekday_name,
)

__all__ = [
    'ShiftWindow',
    'InvalidTimeError',
    'parse_time_of_day',
    'parse_civil_date',
    'format_time_of_day',
    'ConflictResolver',
    'ScheduledShift',
    'WEEKDAY_NAMES',
    'generate_recurring_dates',
    'normalize_weekdays',
    'weekday_name',
]
