# apptbook/schemas/appointment.py

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from apptbook.core.business import DEFAULT_DURATION_MIN
from apptbook.utils.timeutil import (
    format_timestamp,
    is_valid_date,
    is_valid_time,
    parse_timestamp,
    to_minutes,
)

APPOINTMENT_FIELDS = [
    "ID", "BookedBy", "Date", "Time", "WithWhom", "ClientName", "Reason",
    "Status", "Duration", "Priority", "Location", "Notes", "CreatedDate",
]
# Header written by the first version of the tool
LEGACY_APPOINTMENT_FIELDS = APPOINTMENT_FIELDS[:8]


class Status(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"

    @property
    def is_terminated(self) -> bool:
        # Terminated appointments have vacated their slot
        return self in (Status.REJECTED, Status.CANCELLED)


ALLOWED_TRANSITIONS: dict[Status, frozenset[Status]] = {
    Status.PENDING: frozenset({Status.APPROVED, Status.REJECTED, Status.CANCELLED}),
    Status.APPROVED: frozenset({Status.CANCELLED}),
    Status.REJECTED: frozenset(),
    Status.CANCELLED: frozenset(),
}


class Priority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class Decision(str, Enum):
    APPROVE = "Approve"
    REJECT = "Reject"

    @property
    def target_status(self) -> Status:
        if self is Decision.APPROVE:
            return Status.APPROVED
        if self is Decision.REJECT:
            return Status.REJECTED
        raise ValueError(f"unhandled decision {self!r}")


class Role(str, Enum):
    """Which participant field an actor must occupy."""
    BOOKED_BY = "BookedBy"
    WITH_WHOM = "WithWhom"

    def holder(self, appt: "Appointment") -> str:
        if self is Role.BOOKED_BY:
            return appt.booked_by
        if self is Role.WITH_WHOM:
            return appt.with_whom
        raise ValueError(f"unhandled role {self!r}")


class Appointment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., gt=0)
    booked_by: str = Field(..., min_length=1)
    date: str
    time: str
    with_whom: str = Field(..., min_length=1)
    client_name: str = ""
    reason: str = ""
    status: Status = Status.PENDING
    duration_min: int = Field(DEFAULT_DURATION_MIN, gt=0)
    priority: Priority = Priority.MEDIUM
    location: str = ""
    notes: str = ""
    created_at: Optional[datetime] = None

    @field_validator("date")
    @classmethod
    def _check_date(cls, v: str) -> str:
        if not is_valid_date(v):
            raise ValueError("date must look like YYYY-MM-DD")
        return v

    @field_validator("time")
    @classmethod
    def _check_time(cls, v: str) -> str:
        if not is_valid_time(v):
            raise ValueError("time must look like HH:MM")
        return v

    @field_validator("created_at", mode="before")
    @classmethod
    def _parse_created(cls, v):
        return parse_timestamp(v)

    @model_validator(mode="after")
    def _no_self_booking(self) -> "Appointment":
        if self.booked_by == self.with_whom:
            raise ValueError("booked_by and with_whom must differ")
        return self

    @property
    def start_min(self) -> int:
        return to_minutes(self.time)

    @property
    def end_min(self) -> int:
        return self.start_min + self.duration_min

    @property
    def is_live(self) -> bool:
        return not self.status.is_terminated

    def involves(self, username: str) -> bool:
        return self.booked_by == username or self.with_whom == username

    @classmethod
    def from_row(cls, row: dict[str, str]) -> "Appointment":
        """Build from a header-keyed CSV row; missing trailing columns get defaults."""
        return cls(
            id=row["ID"],
            booked_by=row["BookedBy"],
            date=row["Date"],
            time=row["Time"],
            with_whom=row["WithWhom"],
            client_name=row.get("ClientName") or "",
            reason=row.get("Reason") or "",
            status=row.get("Status") or Status.PENDING,
            duration_min=row.get("Duration") or DEFAULT_DURATION_MIN,
            priority=row.get("Priority") or Priority.MEDIUM,
            location=row.get("Location") or "",
            notes=row.get("Notes") or "",
            created_at=row.get("CreatedDate") or None,
        )

    def to_row(self) -> list[str]:
        return [
            str(self.id), self.booked_by, self.date, self.time, self.with_whom,
            self.client_name, self.reason, self.status.value, str(self.duration_min),
            self.priority.value, self.location, self.notes, format_timestamp(self.created_at),
        ]
