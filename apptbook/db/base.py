# apptbook/db/base.py

"""
Wires the three data files into their stores. Whenever a new file-backed
store is added, construct it here.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from apptbook.core.config import Settings
from apptbook.crud.appointment import AppointmentStore
from apptbook.crud.notification import NotificationSink
from apptbook.crud.user import UserDirectory
from apptbook.services.booking import BookingEngine


@dataclass
class Workspace:
    settings: Settings
    users: UserDirectory
    appointments: AppointmentStore
    notifications: NotificationSink
    engine: BookingEngine


def init_workspace(settings: Settings, clock: Optional[Callable[[], datetime]] = None) -> Workspace:
    """Build the stores and make sure every file exists with its header row."""
    suffix = settings.QUARANTINE_SUFFIX
    users = UserDirectory(settings.users_path, quarantine_suffix=suffix)
    appointments = AppointmentStore(settings.appointments_path, quarantine_suffix=suffix)
    notifications = NotificationSink(settings.notifications_path, quarantine_suffix=suffix, clock=clock)

    users.list_users()
    appointments.load()
    notifications.all()

    engine = BookingEngine(appointments, users, notifications, clock=clock)
    return Workspace(settings, users, appointments, notifications, engine)
