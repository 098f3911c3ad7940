#!/usr/bin/env python3
"""
Tests for the booking and status transition engine.
"""

import os
import sys

import pytest

# Add app to Python path for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from apptbook.core.errors import (
    AuthorizationError,
    ConflictError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from apptbook.schemas.appointment import Decision, Priority, Status
from apptbook.schemas.notification import NotificationKind

DAY = "2025-06-01"


def _kinds(workspace, username):
    return [n.kind for n in workspace.notifications.for_user(username)]


@pytest.mark.essential
class TestRequestBooking:
    """Creating Pending appointments"""

    def test_booking_scenario_with_boundary(self, engine, workspace):
        """Overlap is refused, a touching slot is accepted"""
        first = engine.request_booking("alice", "bob", DAY, "09:00", 60, reason="Checkup")
        assert first.id == 1
        assert first.status is Status.PENDING
        assert first.client_name == "Alice Anders"
        assert first.created_at is not None

        with pytest.raises(ConflictError) as exc:
            engine.request_booking("alice", "bob", DAY, "09:30", 60)
        assert exc.value.conflicting_id == 1

        second = engine.request_booking("alice", "bob", DAY, "10:00", 30)
        assert second.id == 2
        assert [a.id for a in workspace.appointments.load()] == [1, 2]

    def test_booking_notifies_counterparty(self, engine, workspace):
        appt = engine.request_booking("alice", "bob", DAY, "09:00", 60, reason="Checkup")
        notes = workspace.notifications.for_user("bob")
        assert len(notes) == 1
        assert notes[0].kind is NotificationKind.REQUEST
        assert notes[0].appointment_id == appt.id
        assert notes[0].read is False
        assert "Alice Anders" in notes[0].message
        assert workspace.notifications.for_user("alice") == []

    def test_counterparty_conflict_detected(self, engine):
        engine.request_booking("carol", "bob", DAY, "09:00", 60)
        with pytest.raises(ConflictError):
            engine.request_booking("alice", "bob", DAY, "09:15", 15)

    def test_defaults_and_optional_fields(self, engine):
        appt = engine.request_booking("alice", "bob", DAY, "13:00", priority="High",
                                      location="Room 2", notes="bring ID")
        assert appt.duration_min == 60
        assert appt.priority is Priority.HIGH
        assert appt.location == "Room 2"

    @pytest.mark.parametrize("kwargs", [
        {"date": "2025/06/01"},
        {"time": "9:00"},
        {"counterparty": "nobody"},
        {"counterparty": "alice"},
        {"duration_min": 0},
        {"priority": "Urgent"},
    ])
    def test_invalid_input(self, engine, workspace, kwargs):
        args = {"requester": "alice", "counterparty": "bob", "date": DAY, "time": "09:00",
                "duration_min": 60}
        args.update(kwargs)
        with pytest.raises(InvalidInputError):
            engine.request_booking(**args)
        assert workspace.appointments.load() == []

    def test_structural_validation_only(self, engine):
        """Calendar-invalid but well-formed values are accepted"""
        appt = engine.request_booking("alice", "bob", "2025-13-40", "23:30", 30)
        assert appt.date == "2025-13-40"

    def test_rejected_slot_is_freed(self, engine):
        engine.request_booking("alice", "bob", DAY, "09:00", 60)
        engine.decide(1, "bob", Decision.REJECT)
        again = engine.request_booking("alice", "bob", DAY, "09:00", 60)
        assert again.id == 2


@pytest.mark.essential
class TestDecide:
    """Approve / reject by the counterparty"""

    def test_approve_notifies_requester(self, engine, workspace):
        engine.request_booking("alice", "bob", DAY, "09:00", 60)
        updated = engine.decide(1, "bob", Decision.APPROVE)
        assert updated.status is Status.APPROVED
        assert workspace.appointments.get(1).status is Status.APPROVED
        assert _kinds(workspace, "alice") == [NotificationKind.APPROVED]

    def test_reject_notifies_requester(self, engine, workspace):
        engine.request_booking("alice", "bob", DAY, "09:00", 60)
        engine.decide(1, "bob", "Reject")
        assert workspace.appointments.get(1).status is Status.REJECTED
        assert _kinds(workspace, "alice") == [NotificationKind.REJECTED]

    def test_only_with_whom_may_decide(self, engine):
        engine.request_booking("alice", "bob", DAY, "09:00", 60)
        for actor in ("alice", "carol"):
            with pytest.raises(AuthorizationError):
                engine.decide(1, actor, Decision.APPROVE)

    def test_unknown_id(self, engine):
        with pytest.raises(NotFoundError):
            engine.decide(42, "bob", Decision.APPROVE)

    def test_only_pending_can_be_decided(self, engine):
        engine.request_booking("alice", "bob", DAY, "09:00", 60)
        engine.decide(1, "bob", Decision.APPROVE)
        with pytest.raises(InvalidStateError):
            engine.decide(1, "bob", Decision.REJECT)

    def test_invalid_decision(self, engine):
        engine.request_booking("alice", "bob", DAY, "09:00", 60)
        with pytest.raises(InvalidInputError):
            engine.decide(1, "bob", "Maybe")

    def test_approval_conflict_requires_force(self, engine, store, make_appointment, workspace):
        engine.request_booking("alice", "bob", DAY, "09:00", 60)
        engine.decide(1, "bob", Decision.APPROVE)
        # Overlapping request that bypassed the booking checks (e.g. imported)
        store.append(make_appointment(2, booked_by="carol", with_whom="bob", time="09:30"))

        with pytest.raises(ConflictError) as exc:
            engine.decide(2, "bob", Decision.APPROVE)
        assert exc.value.conflicting_id == 1
        assert store.get(2).status is Status.PENDING

        forced = engine.decide(2, "bob", Decision.APPROVE, force=True)
        assert forced.status is Status.APPROVED

    def test_reject_skips_conflict_check(self, engine, store, make_appointment):
        engine.request_booking("alice", "bob", DAY, "09:00", 60)
        store.append(make_appointment(2, booked_by="carol", with_whom="bob", time="09:30"))
        assert engine.decide(2, "bob", Decision.REJECT).status is Status.REJECTED

    def test_notification_failure_keeps_transition(self, engine, workspace, monkeypatch):
        engine.request_booking("alice", "bob", DAY, "09:00", 60)

        def broken_emit(*args, **kwargs):
            raise OSError("notifications.csv is read-only")

        monkeypatch.setattr(workspace.notifications, "emit", broken_emit)
        engine.decide(1, "bob", Decision.APPROVE)
        assert workspace.appointments.get(1).status is Status.APPROVED


@pytest.mark.essential
class TestCancel:
    """Cancellation by the requester"""

    def test_cancel_pending_and_notify(self, engine, workspace):
        engine.request_booking("alice", "bob", DAY, "09:00", 60)
        updated = engine.cancel(1, "alice")
        assert updated.status is Status.CANCELLED
        # Record is kept, not deleted
        assert workspace.appointments.get(1).status is Status.CANCELLED
        assert _kinds(workspace, "bob") == [NotificationKind.REQUEST, NotificationKind.CANCELLED]

    def test_cancel_approved(self, engine):
        engine.request_booking("alice", "bob", DAY, "09:00", 60)
        engine.decide(1, "bob", Decision.APPROVE)
        assert engine.cancel(1, "alice").status is Status.CANCELLED

    def test_cancel_twice_fails(self, engine):
        engine.request_booking("alice", "bob", DAY, "09:00", 60)
        engine.cancel(1, "alice")
        with pytest.raises(InvalidStateError):
            engine.cancel(1, "alice")

    def test_cancel_rejected_fails(self, engine):
        engine.request_booking("alice", "bob", DAY, "09:00", 60)
        engine.decide(1, "bob", Decision.REJECT)
        with pytest.raises(InvalidStateError):
            engine.cancel(1, "alice")

    def test_only_booker_may_cancel(self, engine):
        engine.request_booking("alice", "bob", DAY, "09:00", 60)
        with pytest.raises(AuthorizationError):
            engine.cancel(1, "bob")

    def test_cancel_unknown(self, engine):
        with pytest.raises(NotFoundError):
            engine.cancel(3, "alice")

    def test_cancelled_slot_is_freed(self, engine):
        engine.request_booking("alice", "bob", DAY, "09:00", 60)
        engine.cancel(1, "alice")
        assert engine.request_booking("carol", "bob", DAY, "09:00", 60).id == 2


@pytest.mark.essential
class TestBulkDecide:
    """Best-effort batch decisions"""

    def test_bulk_skips_failures(self, engine, workspace):
        engine.request_booking("alice", "bob", DAY, "09:00", 60)
        engine.request_booking("carol", "bob", DAY, "11:00", 60)
        engine.request_booking("bob", "carol", DAY, "13:00", 60)   # not bob's to decide
        engine.request_booking("alice", "bob", DAY, "15:00", 60)
        engine.cancel(4, "alice")                                   # no longer pending

        result = engine.bulk_decide([1, 2, 3, 4, 99], "bob", Decision.APPROVE)
        assert result.succeeded == [1, 2]
        assert result.succeeded_count == 2
        assert result.skipped_count == 3
        assert "AuthorizationError" not in result.skipped[3]
        assert "appointment_id=3" in result.skipped[3]

        statuses = {a.id: a.status for a in workspace.appointments.load()}
        assert statuses[1] is Status.APPROVED
        assert statuses[3] is Status.PENDING

    def test_bulk_repeated_ids_processed_once(self, engine):
        engine.request_booking("alice", "bob", DAY, "09:00", 60)
        result = engine.bulk_decide([1, 1], "bob", Decision.REJECT)
        assert result.succeeded == [1]
        assert result.skipped == {}
