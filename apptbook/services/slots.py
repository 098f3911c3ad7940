# apptbook/services/slots.py
from __future__ import annotations

from typing import Iterator

from apptbook.core.business import (
    BUSINESS_END_MIN,
    BUSINESS_START_MIN,
    MAX_SUGGESTIONS,
    SLOT_STEP_MIN,
)
from apptbook.core.errors import InvalidInputError
from apptbook.services.conflicts import ConflictDetector
from apptbook.utils.timeutil import from_minutes, is_valid_date


def suggest_slots(
    detector: ConflictDetector,
    date: str,
    user_a: str,
    user_b: str,
    duration_minutes: int,
    business_start: int = BUSINESS_START_MIN,
    business_end: int = BUSINESS_END_MIN,
    max_results: int = MAX_SUGGESTIONS,
    step_minutes: int = SLOT_STEP_MIN,
) -> Iterator[str]:
    """
    Yield 'HH:MM' start times, ascending, at which neither user is busy.

    Candidates sit on a `step_minutes` grid from `business_start`; a candidate
    must finish by `business_end`. Stops after `max_results` hits or when the
    window runs out. Each call starts a fresh scan of the current store.
    """
    if not is_valid_date(date):
        raise InvalidInputError("Date must look like YYYY-MM-DD", date=date)
    if duration_minutes <= 0 or step_minutes <= 0:
        raise InvalidInputError("Duration and step must be positive",
                                duration=duration_minutes, step=step_minutes)

    found = 0
    current = business_start
    while found < max_results and current + duration_minutes <= business_end:
        slot = from_minutes(current)
        if (not detector.has_conflict(user_a, date, slot, duration_minutes)
                and not detector.has_conflict(user_b, date, slot, duration_minutes)):
            found += 1
            yield slot
        current += step_minutes
