# apptbook/services/booking.py
from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, Optional

from pydantic import BaseModel, Field, ValidationError

from apptbook.core.business import DEFAULT_DURATION_MIN
from apptbook.core.errors import (
    AuthorizationError,
    ConflictError,
    InvalidInputError,
    InvalidStateError,
    SchedulerError,
    invalid_input_from,
)
from apptbook.core.logging import get_logger
from apptbook.crud.appointment import AppointmentStore
from apptbook.crud.notification import NotificationSink
from apptbook.crud.user import UserDirectory
from apptbook.schemas.appointment import (
    ALLOWED_TRANSITIONS,
    Appointment,
    Decision,
    Priority,
    Role,
    Status,
)
from apptbook.schemas.notification import NotificationKind
from apptbook.services.conflicts import ConflictDetector
from apptbook.utils.timeutil import is_valid_date, is_valid_time

logger = get_logger(__name__)

# Notification sent to the other participant for each reachable status
_KIND_FOR_STATUS = {
    Status.APPROVED: NotificationKind.APPROVED,
    Status.REJECTED: NotificationKind.REJECTED,
    Status.CANCELLED: NotificationKind.CANCELLED,
}


# ---------- Public contract returned to callers ----------

class BulkResult(BaseModel):
    succeeded: list[int] = Field(default_factory=list, description="Ids whose status was written")
    skipped: dict[int, str] = Field(default_factory=dict, description="Id -> one-line reason")

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


# ---------- Engine ----------

class BookingEngine:
    """
    Creates appointments and moves them through
    Pending -> Approved | Rejected | Cancelled, Approved -> Cancelled.

    Every transition is checked for actor role and current status before the
    store is touched, and emits one notification to the other participant.
    """

    def __init__(
        self,
        store: AppointmentStore,
        users: UserDirectory,
        notifications: NotificationSink,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.users = users
        self.notifications = notifications
        self.detector = ConflictDetector(store)
        self._clock = clock or datetime.now

    # ---------- Internal helpers ----------

    def _name(self, username: str) -> str:
        user = self.users.get(username)
        return user.full_name if user else username

    def _notify(self, recipient: str, appointment_id: int, message: str,
                kind: NotificationKind) -> None:
        # The status is already written; a failed notification does not undo it
        try:
            self.notifications.emit(recipient, appointment_id, message, kind)
        except Exception as e:
            logger.warning("notification_failed", appointment_id=appointment_id,
                           recipient=recipient, kind=kind.value, error=str(e))

    @staticmethod
    def _check_transition(record: Appointment, target: Status, actor: str) -> None:
        if target not in ALLOWED_TRANSITIONS[record.status]:
            raise InvalidStateError(
                f"Cannot move a {record.status.value} appointment to {target.value}",
                appointment_id=record.id, actor=actor, attempted_status=target,
            )

    # ---------- Booking ----------

    def request_booking(
        self,
        requester: str,
        counterparty: str,
        date: str,
        time: str,
        duration_min: int = DEFAULT_DURATION_MIN,
        reason: str = "",
        priority: Priority | str = Priority.MEDIUM,
        location: str = "",
        notes: str = "",
    ) -> Appointment:
        if not is_valid_date(date):
            raise InvalidInputError("Date must look like YYYY-MM-DD", date=date)
        if not is_valid_time(time):
            raise InvalidInputError("Time must look like HH:MM", time=time)
        if duration_min <= 0:
            raise InvalidInputError("Duration must be a positive number of minutes",
                                    duration=duration_min)
        if requester == counterparty:
            raise InvalidInputError("You cannot book an appointment with yourself", actor=requester)
        if not self.users.exists(counterparty):
            raise InvalidInputError("No such user found", user=counterparty)

        # Snapshot of the requester's name at booking time
        client_name = self.users.display_name(requester)

        for participant in (requester, counterparty):
            clash = self.detector.find_conflict(participant, date, time, duration_min)
            if clash is not None:
                raise ConflictError(
                    f"{participant} already has an appointment at that time",
                    conflicting_id=clash.id, user=participant, date=date, time=time,
                )

        try:
            appt = Appointment(
                id=self.store.next_id(),
                booked_by=requester,
                date=date,
                time=time,
                with_whom=counterparty,
                client_name=client_name,
                reason=reason,
                status=Status.PENDING,
                duration_min=duration_min,
                priority=priority,
                location=location,
                notes=notes,
                created_at=self._clock().replace(microsecond=0),
            )
        except ValidationError as e:
            raise invalid_input_from(e, actor=requester) from e

        self.store.append(appt)
        logger.info("appointment_booked", appointment_id=appt.id, booked_by=requester,
                    with_whom=counterparty, date=date, time=time, duration=duration_min)

        self._notify(
            counterparty, appt.id,
            f"New appointment request from {client_name} on {date} at {time} "
            f"({duration_min} min): {reason or '-'}",
            NotificationKind.REQUEST,
        )
        return appt

    # ---------- Transitions ----------

    def decide(self, appointment_id: int, actor: str, decision: Decision | str,
               force: bool = False) -> Appointment:
        """Approve or reject a Pending appointment scheduled with `actor`."""
        try:
            decision = Decision(decision)
        except ValueError:
            raise InvalidInputError("Decision must be Approve or Reject",
                                    appointment_id=appointment_id, decision=decision) from None
        target = decision.target_status
        record = self.store.get(appointment_id)

        if actor != record.with_whom:
            raise AuthorizationError(
                "Only the person the appointment is scheduled with can approve or reject it",
                appointment_id=appointment_id, actor=actor, attempted_status=target,
            )
        if record.status is not Status.PENDING:
            raise InvalidStateError(
                f"Appointment is {record.status.value}, not Pending",
                appointment_id=appointment_id, actor=actor, attempted_status=target,
            )
        self._check_transition(record, target, actor)

        if decision is Decision.APPROVE:
            clash = self.detector.find_conflict(actor, record.date, record.time,
                                                record.duration_min, exclude_id=appointment_id)
            if clash is not None:
                if not force:
                    raise ConflictError(
                        "Approving would overlap another appointment",
                        conflicting_id=clash.id, appointment_id=appointment_id, actor=actor,
                    )
                logger.warning("approval_forced", appointment_id=appointment_id,
                               conflicting_id=clash.id)

        updated = self.store.update_status(appointment_id, target, actor, Role.WITH_WHOM)
        logger.info("appointment_decided", appointment_id=appointment_id,
                    status=target.value, forced=force)

        self._notify(
            record.booked_by, appointment_id,
            f"Your appointment #{appointment_id} with {self._name(actor)} on "
            f"{record.date} at {record.time} was {target.value}.",
            _KIND_FOR_STATUS[target],
        )
        return updated

    def cancel(self, appointment_id: int, actor: str) -> Appointment:
        """Cancel an appointment the actor booked. The record is kept."""
        record = self.store.get(appointment_id)

        if actor != record.booked_by:
            raise AuthorizationError(
                "You can only cancel appointments you booked",
                appointment_id=appointment_id, actor=actor, attempted_status=Status.CANCELLED,
            )
        if record.status is Status.CANCELLED:
            raise InvalidStateError(
                "Appointment is already Cancelled",
                appointment_id=appointment_id, actor=actor, attempted_status=Status.CANCELLED,
            )
        self._check_transition(record, Status.CANCELLED, actor)

        updated = self.store.update_status(appointment_id, Status.CANCELLED, actor, Role.BOOKED_BY)
        logger.info("appointment_cancelled", appointment_id=appointment_id,
                    previous_status=record.status.value)

        self._notify(
            record.with_whom, appointment_id,
            f"Appointment #{appointment_id} on {record.date} at {record.time} "
            f"was cancelled by {self._name(actor)}.",
            NotificationKind.CANCELLED,
        )
        return updated

    def bulk_decide(self, ids: Iterable[int], actor: str, decision: Decision | str,
                    force: bool = False) -> BulkResult:
        """Apply `decide` to each id; failures are recorded and skipped."""
        result = BulkResult()
        for appointment_id in dict.fromkeys(ids):
            try:
                self.decide(appointment_id, actor, decision, force=force)
            except SchedulerError as e:
                result.skipped[appointment_id] = str(e)
                logger.info("bulk_item_skipped", appointment_id=appointment_id,
                            error_type=type(e).__name__)
                continue
            result.succeeded.append(appointment_id)

        logger.info("bulk_decided", decision=str(getattr(decision, "value", decision)),
                    succeeded=result.succeeded_count, skipped=result.skipped_count)
        return result
