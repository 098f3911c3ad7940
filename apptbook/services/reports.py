# apptbook/services/reports.py
from __future__ import annotations

import csv
from collections import Counter
from pathlib import Path
from typing import Iterable, Optional

from pydantic import BaseModel, Field, ValidationError

from apptbook.core.errors import ConflictError, InvalidInputError, SchedulerError, invalid_input_from
from apptbook.core.logging import get_logger
from apptbook.crud.appointment import AppointmentStore
from apptbook.crud.user import UserDirectory
from apptbook.db.csvfile import atomic_write_rows, is_undecodable, open_for_read
from apptbook.schemas.appointment import (
    APPOINTMENT_FIELDS,
    LEGACY_APPOINTMENT_FIELDS,
    Appointment,
    Priority,
    Status,
)
from apptbook.services.conflicts import ConflictDetector

logger = get_logger(__name__)


class ImportResult(BaseModel):
    imported: list[int] = Field(default_factory=list, description="Appointment ids appended")
    failures: dict[int, str] = Field(default_factory=dict, description="Line number -> reason")


class Summary(BaseModel):
    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_priority: dict[str, int] = Field(default_factory=dict)
    live_minutes: int = Field(0, description="Booked minutes across Pending and Approved")
    busiest_counterpart: Optional[str] = None


def export_csv(records: Iterable[Appointment], path: Path) -> int:
    """Write appointments with the full header; returns the number of rows."""
    rows = [r.to_row() for r in records]
    atomic_write_rows(Path(path), APPOINTMENT_FIELDS, rows)
    logger.info("appointments_exported", path=str(path), rows=len(rows))
    return len(rows)


def _check_importable(record: Appointment, users: UserDirectory,
                      detector: ConflictDetector) -> None:
    for username in (record.booked_by, record.with_whom):
        if not users.exists(username):
            raise InvalidInputError("Unknown user", user=username, appointment_id=record.id)
    if not record.is_live:
        return
    for username in (record.booked_by, record.with_whom):
        # exclude_id: an id collision is reported by append, not as an overlap
        clash = detector.find_conflict(username, record.date, record.time,
                                       record.duration_min, exclude_id=record.id)
        if clash is not None:
            raise ConflictError("Overlaps an existing appointment", conflicting_id=clash.id,
                                appointment_id=record.id, user=username)


def import_csv(path: Path, store: AppointmentStore, users: UserDirectory) -> ImportResult:
    """
    Append appointments from an external CSV file one row at a time.

    A row that is malformed, is not valid UTF-8, names an unknown user,
    reuses an existing id or overlaps a live appointment is recorded as a
    failure and skipped. Rows already appended stay committed when a later
    row fails. A header without the legacy columns rejects the whole file.
    """
    result = ImportResult()
    detector = ConflictDetector(store)

    with open_for_read(path) as fh:
        reader = csv.reader(fh)
        header = next(reader, None)
        if header is None:
            return result
        missing = [f for f in LEGACY_APPOINTMENT_FIELDS if f not in header]
        if missing:
            raise InvalidInputError("Import file is missing columns",
                                    path=str(path), missing=", ".join(missing))
        for row in reader:
            line_no = reader.line_num
            if not row or not any(cell.strip() for cell in row):
                continue
            if is_undecodable(row):
                result.failures[line_no] = "line is not valid UTF-8"
                continue
            if len(row) != len(header):
                result.failures[line_no] = f"expected {len(header)} fields, got {len(row)}"
                continue
            try:
                record = Appointment.from_row(dict(zip(header, row)))
            except ValidationError as e:
                result.failures[line_no] = str(invalid_input_from(e))
                continue

            try:
                _check_importable(record, users, detector)
                store.append(record)
            except SchedulerError as e:
                result.failures[line_no] = str(e)
                continue
            result.imported.append(record.id)

    logger.info("appointments_imported", path=str(path), imported=len(result.imported),
                failed=len(result.failures))
    return result


def summarize(records: Iterable[Appointment], user: Optional[str] = None) -> Summary:
    """Counts by status and priority, live minutes and the most frequent counterpart."""
    selected = [r for r in records if user is None or r.involves(user)]

    by_status = Counter(r.status for r in selected)
    by_priority = Counter(r.priority for r in selected)

    busiest = None
    if user is not None:
        others = Counter(r.with_whom if r.booked_by == user else r.booked_by for r in selected)
        if others:
            busiest = others.most_common(1)[0][0]

    return Summary(
        total=len(selected),
        by_status={s.value: by_status.get(s, 0) for s in Status},
        by_priority={p.value: by_priority.get(p, 0) for p in Priority},
        live_minutes=sum(r.duration_min for r in selected if r.is_live),
        busiest_counterpart=busiest,
    )
