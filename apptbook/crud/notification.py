# apptbook/crud/notification.py

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from apptbook.core.errors import AuthorizationError, NotFoundError
from apptbook.core.logging import get_logger
from apptbook.db.csvfile import CsvRecordFile, held_ids
from apptbook.schemas.notification import NOTIFICATION_FIELDS, Notification, NotificationKind

logger = get_logger(__name__)


class NotificationSink:
    """Append-only event log keyed by recipient. Only `read` ever changes."""

    def __init__(self, path: Path, quarantine_suffix: str = ".rejected",
                 clock: Optional[Callable[[], datetime]] = None):
        self._file = CsvRecordFile(
            path,
            NOTIFICATION_FIELDS,
            parse=Notification.from_row,
            serialize=Notification.to_row,
            key=lambda n: n.id,
            quarantine_suffix=quarantine_suffix,
        )
        self._clock = clock or datetime.now

    def all(self) -> list[Notification]:
        return self._file.load()

    def emit(self, recipient: str, appointment_id: int, message: str,
             kind: NotificationKind) -> int:
        records = self._file.load()
        taken = [n.id for n in records] + list(held_ids(self._file.quarantined()))
        note = Notification(
            id=max(taken, default=0) + 1,
            recipient=recipient,
            appointment_id=appointment_id,
            message=message,
            kind=kind,
            timestamp=self._clock().replace(microsecond=0),
        )
        self._file.persist(records + [note])
        logger.info("notification_emitted", notification_id=note.id, recipient=recipient,
                    appointment_id=appointment_id, kind=kind.value)
        return note.id

    def for_user(self, username: str, unread_only: bool = False) -> list[Notification]:
        return [
            n for n in self._file.load()
            if n.recipient == username and not (unread_only and n.read)
        ]

    def unread_count(self, username: str) -> int:
        return len(self.for_user(username, unread_only=True))

    def mark_read(self, notification_id: int, username: str) -> Notification:
        records = self._file.load()
        current = next((n for n in records if n.id == notification_id), None)
        if current is None:
            raise NotFoundError("No such notification", notification_id=notification_id)
        if current.recipient != username:
            raise AuthorizationError("Notification belongs to another user",
                                     notification_id=notification_id, actor=username)
        if current.read:
            return current

        updated = current.model_copy(update={"read": True})
        self._file.persist([updated if n.id == notification_id else n for n in records])
        return updated

    def mark_all_read(self, username: str) -> int:
        records = self._file.load()
        count = 0
        out = []
        for n in records:
            if n.recipient == username and not n.read:
                n = n.model_copy(update={"read": True})
                count += 1
            out.append(n)
        if count:
            self._file.persist(out)
        return count
