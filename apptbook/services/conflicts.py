# apptbook/services/conflicts.py
from __future__ import annotations

from typing import Iterable, Optional

from apptbook.core.errors import InvalidInputError
from apptbook.crud.appointment import AppointmentStore
from apptbook.schemas.appointment import Appointment
from apptbook.utils.timeutil import overlaps, to_minutes


def first_conflict(
    records: Iterable[Appointment],
    user: str,
    date: str,
    start_time: str,
    duration_minutes: int,
    exclude_id: Optional[int] = None,
) -> Optional[Appointment]:
    """
    Return the first live appointment of `user` on `date` whose
    [time, time + duration) interval overlaps the proposed one.

    Rejected and Cancelled appointments never count: they have vacated the
    slot. `exclude_id` lets an appointment be re-checked against the others
    without colliding with itself.
    """
    if duration_minutes <= 0:
        raise InvalidInputError("Duration must be a positive number of minutes",
                                duration=duration_minutes)
    start = to_minutes(start_time)
    end = start + duration_minutes

    for candidate in records:
        if exclude_id is not None and candidate.id == exclude_id:
            continue
        if candidate.date != date or not candidate.involves(user):
            continue
        if candidate.status.is_terminated:
            continue
        if overlaps(start, end, candidate.start_min, candidate.end_min):
            return candidate
    return None


class ConflictDetector:
    """Free/busy checks against the current contents of an appointment store."""

    def __init__(self, store: AppointmentStore):
        self.store = store

    def find_conflict(self, user: str, date: str, start_time: str, duration_minutes: int,
                      exclude_id: Optional[int] = None) -> Optional[Appointment]:
        return first_conflict(self.store.load(), user, date, start_time,
                              duration_minutes, exclude_id=exclude_id)

    def has_conflict(self, user: str, date: str, start_time: str, duration_minutes: int,
                     exclude_id: Optional[int] = None) -> bool:
        return self.find_conflict(user, date, start_time, duration_minutes,
                                  exclude_id=exclude_id) is not None
