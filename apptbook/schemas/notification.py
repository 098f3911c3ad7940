# apptbook/schemas/notification.py

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from apptbook.utils.timeutil import format_timestamp, parse_timestamp

NOTIFICATION_FIELDS = ["ID", "UserName", "AppointmentID", "Message", "Type", "Timestamp", "Read"]


class NotificationKind(str, Enum):
    REQUEST = "APPOINTMENT_REQUEST"
    CANCELLED = "APPOINTMENT_CANCELLED"
    APPROVED = "APPOINTMENT_Approved"
    REJECTED = "APPOINTMENT_Rejected"


class Notification(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., gt=0)
    recipient: str = Field(..., min_length=1)
    appointment_id: int
    message: str
    kind: NotificationKind
    timestamp: datetime
    read: bool = False

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, v):
        return parse_timestamp(v)

    @field_validator("read", mode="before")
    @classmethod
    def _parse_read(cls, v):
        # Stored as the literals true/false only
        if isinstance(v, str):
            if v == "true":
                return True
            if v == "false":
                return False
            raise ValueError("Read must be 'true' or 'false'")
        return v

    @classmethod
    def from_row(cls, row: dict[str, str]) -> "Notification":
        return cls(
            id=row["ID"],
            recipient=row["UserName"],
            appointment_id=row["AppointmentID"],
            message=row["Message"],
            kind=row["Type"],
            timestamp=row["Timestamp"],
            read=row.get("Read") or "false",
        )

    def to_row(self) -> list[str]:
        return [
            str(self.id), self.recipient, str(self.appointment_id), self.message,
            self.kind.value, format_timestamp(self.timestamp), "true" if self.read else "false",
        ]
