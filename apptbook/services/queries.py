# apptbook/services/queries.py
"""Read-only projections over the appointment list."""
from __future__ import annotations

from typing import Iterable, Optional

from apptbook.crud.appointment import AppointmentStore
from apptbook.schemas.appointment import Appointment, Priority, Status


def _chronological(records: Iterable[Appointment]) -> list[Appointment]:
    return sorted(records, key=lambda a: (a.date, a.time, a.id))


def booked_by(store: AppointmentStore, username: str) -> list[Appointment]:
    return _chronological(store.filter(lambda a: a.booked_by == username))


def scheduled_with(store: AppointmentStore, username: str) -> list[Appointment]:
    return _chronological(store.filter(lambda a: a.with_whom == username))


def pending_for(store: AppointmentStore, username: str) -> list[Appointment]:
    """Pending appointments waiting for `username` to approve or reject."""
    return _chronological(
        store.filter(lambda a: a.with_whom == username and a.status is Status.PENDING)
    )


def upcoming_for(store: AppointmentStore, username: str, today: str) -> list[Appointment]:
    # Dates compare as plain YYYY-MM-DD strings
    return _chronological(
        store.filter(lambda a: a.involves(username) and a.is_live and a.date >= today)
    )


def search(
    records: Iterable[Appointment],
    text: Optional[str] = None,
    status: Optional[Status] = None,
    priority: Optional[Priority] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    user: Optional[str] = None,
) -> list[Appointment]:
    """
    Filter appointments. `text` is a case-insensitive substring matched
    against reason, notes, location, client name and both usernames; the
    other arguments are exact predicates. Date bounds are inclusive.
    """
    needle = text.strip().lower() if text else ""

    def matches(a: Appointment) -> bool:
        if status is not None and a.status is not Status(status):
            return False
        if priority is not None and a.priority is not Priority(priority):
            return False
        if date_from and a.date < date_from:
            return False
        if date_to and a.date > date_to:
            return False
        if user and not a.involves(user):
            return False
        if needle:
            haystack = " ".join((a.reason, a.notes, a.location, a.client_name,
                                 a.booked_by, a.with_whom)).lower()
            if needle not in haystack:
                return False
        return True

    return _chronological(a for a in records if matches(a))
