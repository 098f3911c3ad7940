# apptbook/crud/appointment.py

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable, Optional

from apptbook.core.errors import AuthorizationError, DuplicateIdError, NotFoundError
from apptbook.core.logging import get_logger
from apptbook.db.csvfile import CsvRecordFile, held_ids
from apptbook.schemas.appointment import (
    APPOINTMENT_FIELDS,
    LEGACY_APPOINTMENT_FIELDS,
    Appointment,
    Role,
    Status,
)

logger = get_logger(__name__)


def next_id_for(records: list[Appointment], reserved: Iterable[int] = ()) -> int:
    """One past the highest id in use, counting ids held by quarantined rows."""
    return max([r.id for r in records] + list(reserved), default=0) + 1


class AppointmentStore:
    """
    All appointment records, loaded and persisted as a whole.

    Reads are served from an id-indexed cache that is dropped whenever the
    file's mtime or size changes. Each mutation loads the full set, computes
    the new set and replaces the file atomically.
    """

    def __init__(self, path: Path, quarantine_suffix: str = ".rejected"):
        self._file = CsvRecordFile(
            path,
            APPOINTMENT_FIELDS,
            parse=Appointment.from_row,
            serialize=Appointment.to_row,
            key=lambda a: a.id,
            quarantine_suffix=quarantine_suffix,
            legacy_fields=[LEGACY_APPOINTMENT_FIELDS],
        )
        self._index: dict[int, Appointment] = {}
        self._cache_key: Optional[tuple[int, int]] = None

    @property
    def path(self) -> Path:
        return self._file.path

    @property
    def rejects(self):
        return list(self._file.rejects)

    def load(self) -> list[Appointment]:
        key = self._file.signature()
        if key is None or key != self._cache_key:
            records = self._file.load()
            self._index = {r.id: r for r in records}
            self._cache_key = self._file.signature()
        return list(self._index.values())

    def persist(self, records: list[Appointment]) -> None:
        self._file.persist(records)
        self._index = {r.id: r for r in records}
        self._cache_key = self._file.signature()

    def next_id(self) -> int:
        records = self.load()
        return next_id_for(records, held_ids(self._file.quarantined()))

    def append(self, record: Appointment) -> Appointment:
        records = self.load()
        if record.id in self._index:
            raise DuplicateIdError("Appointment id already exists", appointment_id=record.id)
        if record.id in held_ids(self._file.quarantined()):
            raise DuplicateIdError("Appointment id is held by a quarantined row",
                                   appointment_id=record.id)
        self.persist(records + [record])
        logger.info("appointment_appended", appointment_id=record.id)
        return record

    def find_by_id(self, appointment_id: int) -> Optional[Appointment]:
        self.load()
        return self._index.get(appointment_id)

    def get(self, appointment_id: int) -> Appointment:
        record = self.find_by_id(appointment_id)
        if record is None:
            raise NotFoundError("No such appointment", appointment_id=appointment_id)
        return record

    def filter(self, predicate: Callable[[Appointment], bool]) -> list[Appointment]:
        return [r for r in self.load() if predicate(r)]

    def update_status(self, appointment_id: int, new_status: Status,
                      actor_username: str, role: Role) -> Appointment:
        """Rewrite one record's status in place after checking the actor's role."""
        records = self.load()
        current = self._index.get(appointment_id)
        if current is None:
            raise NotFoundError("No such appointment", appointment_id=appointment_id,
                                actor=actor_username, attempted_status=new_status)
        if role.holder(current) != actor_username:
            raise AuthorizationError(
                f"Only the {role.value} participant may change this appointment",
                appointment_id=appointment_id, actor=actor_username, attempted_status=new_status,
            )

        updated = current.model_copy(update={"status": new_status})
        self.persist([updated if r.id == appointment_id else r for r in records])
        logger.info("appointment_status_written", appointment_id=appointment_id,
                    old_status=current.status.value, new_status=new_status.value)
        return updated
