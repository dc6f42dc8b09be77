#!/usr/bin/env python3
"""
Field validation for job post input.

Every check appends a human-readable message; callers get the full list of
violations at once instead of the first one.
"""

import re
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from core.scheduling.civil_time import (
    InvalidTimeError,
    ShiftWindow,
    format_time_of_day,
    parse_civil_date,
)
from core.scheduling.recurrence import generate_recurring_dates, normalize_weekdays
from core.utils import is_past_date
from database.models import CaregiverGender, Gender, JobType, PaymentType

POSTCODE_PATTERN = re.compile(r'^[A-Z0-9\s-]{3,10}$', re.IGNORECASE)

REQUIRED_FIELDS = (
    'title', 'overview', 'recipient_name', 'recipient_age', 'recipient_gender',
    'postcode', 'address', 'job_date', 'start_time', 'end_time', 'shift_length',
    'payment_type', 'payment_cost',
)

TEXT_FIELDS = (
    'title', 'overview', 'recipient_name', 'recipient_relationship', 'postcode', 'address',
)

RELATION_FIELDS = ('care_need_ids', 'language_ids', 'preference_ids')

SCHEDULE_FIELDS = ('job_date', 'start_time', 'end_time')


def _label(field_name: str) -> str:
    return field_name.replace('_', ' ').capitalize()


def is_valid_postcode_format(postcode: Optional[str]) -> bool:
    return bool(postcode) and bool(POSTCODE_PATTERN.match(str(postcode).strip()))


def _int_or_none(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def check_enum(value: Any, allowed: Tuple[str, ...], label: str) -> Optional[str]:
    if value not in allowed:
        return f"{label} must be one of: {', '.join(allowed)}"
    return None


def validate_job_fields(
    data: Mapping[str, Any],
    now: datetime,
    partial: bool = False,
    current: Optional[Mapping[str, Any]] = None,
) -> Tuple[Dict[str, Any], List[str]]:
    """
    Validate and normalise job post fields.

    Args:
        data: Input fields
        now: Current local time, for the not-in-the-past check
        partial: Only validate the fields present (updates)
        current: Existing values merged in for cross-field checks on update

    Returns:
        (cleaned fields, errors). Cleaned values are typed: job_date is a date,
        times are "HH:MM" strings, numbers are ints.
    """
    errors: List[str] = []
    cleaned: Dict[str, Any] = {}

    if not partial:
        for name in REQUIRED_FIELDS:
            value = data.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                errors.append(f"{_label(name)} is required")

    def present(name: str) -> bool:
        value = data.get(name)
        return name in data and value is not None and not (isinstance(value, str) and not value.strip())

    for name in TEXT_FIELDS:
        if present(name):
            cleaned[name] = str(data[name]).strip()

    if 'title' in cleaned and len(cleaned['title']) < 5:
        errors.append('Title must be at least 5 characters long')
    if 'overview' in cleaned and len(cleaned['overview']) < 20:
        errors.append('Overview must be at least 20 characters long')
    if 'address' in cleaned and len(cleaned['address']) < 10:
        errors.append('Address must be at least 10 characters long')
    if 'postcode' in cleaned:
        if not is_valid_postcode_format(cleaned['postcode']):
            errors.append('Invalid postcode format')
        else:
            cleaned['postcode'] = cleaned['postcode'].upper()

    if present('recipient_age'):
        age = _int_or_none(data['recipient_age'])
        if age is None or not 0 <= age <= 120:
            errors.append('Age must be between 0 and 120')
        else:
            cleaned['recipient_age'] = age

    if present('shift_length'):
        shift = _int_or_none(data['shift_length'])
        if shift is None or not 1 <= shift <= 24:
            errors.append('Shift length must be between 1 and 24 hours')
        else:
            cleaned['shift_length'] = shift

    if present('payment_cost'):
        cost = _int_or_none(data['payment_cost'])
        if cost is None:
            errors.append('Payment cost must be a whole number of minor currency units')
        elif cost < 0:
            errors.append('Payment cost cannot be negative')
        else:
            cleaned['payment_cost'] = cost

    enums = (
        ('recipient_gender', Gender.ALL, 'Gender'),
        ('caregiver_gender', CaregiverGender.ALL, 'Caregiver gender'),
        ('job_type', JobType.ALL, 'Job type'),
        ('payment_type', PaymentType.ALL, 'Payment type'),
    )
    for name, allowed, label in enums:
        if present(name):
            value = str(data[name]).strip()
            problem = check_enum(value, allowed, label)
            if problem:
                errors.append(problem)
            else:
                cleaned[name] = value

    if present('job_date'):
        try:
            cleaned['job_date'] = parse_civil_date(data['job_date'])
            if is_past_date(cleaned['job_date'], now):
                errors.append('Job date cannot be in the past')
        except InvalidTimeError:
            errors.append('Invalid job date')

    for name in ('start_time', 'end_time'):
        if present(name):
            try:
                cleaned[name] = format_time_of_day(data[name])
            except InvalidTimeError:
                errors.append(f"Invalid {_label(name).lower()}")

    merged = dict(current or {})
    merged.update(cleaned)
    if merged.get('start_time') and merged.get('end_time') and merged.get('job_date'):
        touched = not partial or any(name in cleaned for name in SCHEDULE_FIELDS)
        if touched:
            try:
                ShiftWindow.from_parts(merged['job_date'], merged['start_time'], merged['end_time'])
            except InvalidTimeError:
                errors.append('End time must be after start time')

    for name in RELATION_FIELDS:
        if name in data and data[name] is not None:
            cleaned[name] = data[name]

    return cleaned, errors


def validate_recurrence(
    recurring: Mapping[str, Any],
    job_date: Optional[date],
    max_children: int,
) -> Tuple[Optional[Dict[str, Any]], List[date], List[str]]:
    """
    Validate a recurrence descriptor and expand it into child dates.

    Returns:
        (descriptor, child dates, errors). The descriptor holds the normalised
        weekdays and end date.
    """
    errors: List[str] = []

    raw_days = recurring.get('weekdays') or []
    weekdays: List[str] = []
    if not raw_days:
        errors.append('At least one day must be selected for recurring jobs')
    else:
        try:
            weekdays = normalize_weekdays(raw_days)
        except ValueError as e:
            errors.append(str(e))

    end_date = None
    if recurring.get('end_date') is None:
        errors.append('End date is required for recurring jobs')
    else:
        try:
            end_date = parse_civil_date(recurring['end_date'])
        except InvalidTimeError:
            errors.append('Invalid recurring end date')

    if job_date is not None and end_date is not None and end_date <= job_date:
        errors.append('End date must be after the job date')

    if errors or job_date is None:
        return None, [], errors

    child_dates = generate_recurring_dates(job_date, end_date, weekdays)
    if len(child_dates) > max_children:
        errors.append(
            f"Recurring series would create {len(child_dates)} posts; the maximum is {max_children}"
        )
        return None, [], errors

    descriptor = {
        'frequency': recurring.get('frequency') or 'weekly',
        'weekdays': weekdays,
        'end_date': end_date,
    }
    return descriptor, child_dates, errors
