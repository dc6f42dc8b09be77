import logging
import math
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable, List, Optional
import uuid

from core.exceptions import AccessDeniedError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def local_now() -> datetime:
    """Current local civil time (naive). Job dates and shift times are local."""
    return datetime.now()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round with halves going up, the way score and distance figures are displayed.

    Python's round() uses banker's rounding (round(2.5) == 2), which would make
    a 62.5% match show as 62.
    """
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def coerce_uuid(value: Any) -> Optional[uuid.UUID]:
    """Accept UUID instances or their string form; None passes through."""
    if value is None or isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def caller_uuid(value: Any) -> uuid.UUID:
    """The acting user's id. A missing or malformed id is refused like any other stranger."""
    try:
        converted = coerce_uuid(value)
    except (TypeError, ValueError):
        raise AccessDeniedError("Access denied", [f"Invalid user id: {value!r}"]) from None
    if converted is None:
        raise AccessDeniedError("Access denied", ["Missing user id"])
    return converted


def coerce_uuid_list(values: Optional[Iterable[Any]]) -> List[uuid.UUID]:
    if not values:
        return []
    seen = []
    for value in values:
        converted = coerce_uuid(value)
        if converted not in seen:
            seen.append(converted)
    return seen


def total_pages(total: int, limit: int) -> int:
    if limit <= 0:
        return 0
    return math.ceil(total / limit)


def is_past_date(job_date: date, now: datetime) -> bool:
    """True when job_date is strictly before today's local date."""
    return job_date < now.date()
