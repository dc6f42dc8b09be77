#!/usr/bin/env python3
"""
Conflict Resolver - time-window overlap detection for a worker's bookings.

Used in two places:
1. Defensively when a worker applies (reject the application if the job
   overlaps one of their accepted jobs).
2. As a cascade when an application is accepted (the worker's other pending
   applications that overlap become not-available).
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, List, Optional, Union

from core.exceptions import InvalidStateError
from core.scheduling.civil_time import InvalidTimeError, ShiftWindow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduledShift:
    """One entry in a worker's schedule: an application and its job's timing."""
    key: Any
    job_date: Union[str, date]
    start_time: str
    end_time: str
    title: Optional[str] = None

    def window(self) -> ShiftWindow:
        return ShiftWindow.from_parts(self.job_date, self.start_time, self.end_time)


class ConflictResolver:
    """
    Reports which scheduled shifts overlap a candidate shift.

    Overlap is the half-open test candidate.start < other.end and
    candidate.end > other.start, so back-to-back shifts are allowed.

    In strict mode an unreadable window fails the check instead of being
    skipped, so a corrupt row can never let a double-booking through.
    """

    def __init__(self, strict: bool = True):
        self.strict = strict

    def find_conflicts(
        self,
        candidate: Union[ShiftWindow, ScheduledShift],
        scheduled: Iterable[ScheduledShift],
    ) -> List[ScheduledShift]:
        """
        Args:
            candidate: The shift being booked.
            scheduled: The worker's other shifts. An entry with the same key as
                the candidate is ignored.

        Returns:
            The overlapping entries, in input order.

        Raises:
            InvalidStateError: In strict mode, when a window cannot be parsed.
        """
        candidate_key = candidate.key if isinstance(candidate, ScheduledShift) else None
        candidate_window = self._candidate_window(candidate)

        conflicts = []
        for entry in scheduled:
            if candidate_key is not None and entry.key == candidate_key:
                continue
            try:
                window = entry.window()
            except InvalidTimeError as e:
                if self.strict:
                    raise InvalidStateError(
                        f"Cannot verify schedule: '{entry.title or entry.key}' has an unreadable time window",
                        details=[str(e)],
                    ) from e
                logger.warning(f"Skipping unreadable shift {entry.key} during conflict check: {e}")
                continue

            if candidate_window.overlaps(window):
                conflicts.append(entry)
        return conflicts

    def has_conflict(
        self,
        candidate: Union[ShiftWindow, ScheduledShift],
        scheduled: Iterable[ScheduledShift],
    ) -> bool:
        return bool(self.find_conflicts(candidate, scheduled))

    def _candidate_window(self, candidate: Union[ShiftWindow, ScheduledShift]) -> ShiftWindow:
        if isinstance(candidate, ShiftWindow):
            return candidate
        try:
            return candidate.window()
        except InvalidTimeError as e:
            # The candidate is the job being booked; there is nothing to skip to.
            raise InvalidStateError(
                f"Cannot verify schedule: '{candidate.title or candidate.key}' has an unreadable time window",
                details=[str(e)],
            ) from e
