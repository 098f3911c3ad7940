#!/usr/bin/env python3
"""
Tests for search, export, import and summary reports.
"""

import os
import sys

import pytest

# Add app to Python path for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from apptbook.core.errors import InvalidInputError
from apptbook.crud.appointment import AppointmentStore
from apptbook.schemas.appointment import APPOINTMENT_FIELDS, Decision, Priority, Status
from apptbook.services import queries
from apptbook.services.reports import export_csv, import_csv, summarize

HEADER = ",".join(APPOINTMENT_FIELDS)


@pytest.fixture
def booked(engine):
    """A small day of appointments in mixed states"""
    engine.request_booking("alice", "bob", "2025-06-01", "09:00", 60, reason="Math tutoring",
                           priority=Priority.HIGH)
    engine.request_booking("alice", "carol", "2025-06-02", "10:00", 30, reason="Budget review",
                           location="HQ")
    engine.request_booking("carol", "alice", "2025-06-03", "11:00", 45, reason="Follow-up")
    engine.request_booking("alice", "bob", "2025-06-04", "09:00", 60, reason="Exam prep")
    engine.decide(1, "bob", Decision.APPROVE)
    engine.cancel(4, "alice")
    return engine


class TestQueries:
    """Per-user views and search"""

    def test_views(self, booked, store):
        assert [a.id for a in queries.booked_by(store, "alice")] == [1, 2, 4]
        assert [a.id for a in queries.scheduled_with(store, "alice")] == [3]
        assert [a.id for a in queries.pending_for(store, "carol")] == [2]
        assert queries.pending_for(store, "bob") == []

    def test_upcoming_excludes_terminated_and_past(self, booked, store):
        assert [a.id for a in queries.upcoming_for(store, "alice", "2025-06-02")] == [2, 3]

    def test_search_text_is_case_insensitive(self, booked, store):
        records = store.load()
        assert [a.id for a in queries.search(records, text="BUDGET")] == [2]
        assert [a.id for a in queries.search(records, text="hq")] == [2]
        assert [a.id for a in queries.search(records, text="carol")] == [2, 3]

    def test_search_predicates(self, booked, store):
        records = store.load()
        assert [a.id for a in queries.search(records, status=Status.APPROVED)] == [1]
        assert [a.id for a in queries.search(records, priority="High")] == [1]
        assert [a.id for a in queries.search(records, date_from="2025-06-02",
                                             date_to="2025-06-03")] == [2, 3]
        assert [a.id for a in queries.search(records, user="bob")] == [1, 4]


class TestExportImport:
    """CSV export and partial-success import"""

    def test_export_writes_full_header(self, booked, store, tmp_path):
        target = tmp_path / "out" / "mine.csv"
        count = export_csv(queries.booked_by(store, "alice"), target)
        lines = target.read_text().splitlines()
        assert count == 3
        assert lines[0] == HEADER
        assert lines[1].startswith("1,alice,2025-06-01,09:00,bob,Alice Anders,Math tutoring,Approved,60,High")

    def test_import_partial_success(self, workspace, store, make_appointment, tmp_path):
        store.append(make_appointment(5, time="09:00"))
        source = tmp_path / "incoming.csv"
        source.write_text(
            HEADER + "\n"
            "10,alice,2025-06-01,12:00,bob,Alice,Imported,Pending,30,Low,,,\n"      # ok
            "11,alice,2025-06-01,13:00,zed,Alice,Unknown,Pending,30,Low,,,\n"      # unknown user
            "5,carol,2025-06-02,09:00,bob,Carol,Dup id,Pending,30,Low,,,\n"        # duplicate id
            "12,carol,2025-06-01,09:30,bob,Carol,Overlap,Pending,30,Low,,,\n"      # overlaps #5
            "13,carol,2025-06-01,09:30,bob,Carol,Old,Rejected,30,Low,,,\n"         # terminated: ok
            "14,carol,2025-06-01\n"                                                 # short row
            "15,carol,2025-06-01,25h,bob,Carol,Bad time,Pending,30,Low,,,\n"       # bad time
        )
        result = import_csv(source, store, workspace.users)

        assert result.imported == [10, 13]
        assert sorted(result.failures) == [3, 4, 5, 7, 8]
        assert "Unknown user" in result.failures[3]
        assert "already exists" in result.failures[4]
        assert "Overlaps" in result.failures[5]

        fresh = AppointmentStore(store.path)
        assert sorted(a.id for a in fresh.load()) == [5, 10, 13]
        assert fresh.get(10).priority is Priority.LOW

    def test_import_legacy_rows(self, workspace, store, tmp_path):
        source = tmp_path / "legacy.csv"
        source.write_text(
            "ID,BookedBy,Date,Time,WithWhom,ClientName,Reason,Status\n"
            "1,alice,2025-06-01,09:00,bob,Alice Anders,Checkup,Approved\n"
        )
        result = import_csv(source, store, workspace.users)
        assert result.imported == [1]
        assert store.get(1).duration_min == 60

    def test_import_invalid_utf8_line_is_a_failure(self, workspace, store, tmp_path):
        source = tmp_path / "incoming.csv"
        source.write_bytes(
            (HEADER + "\n" + "10,alice,2025-06-01,12:00,bob,Alice,Imported,Pending,30,Low,,,\n").encode()
            + b"11,alice,2025-06-01,13:00,bob,Al\xff,Broken,Pending,30,Low,,,\n"
        )
        result = import_csv(source, store, workspace.users)
        assert result.imported == [10]
        assert result.failures == {3: "line is not valid UTF-8"}

    def test_import_ignores_byte_order_mark(self, workspace, store, tmp_path):
        source = tmp_path / "excel.csv"
        source.write_bytes(
            b"\xef\xbb\xbf"
            + (HEADER + "\n" + "1,alice,2025-06-01,09:00,bob,Alice,Checkup,Approved,60,Medium,,,\n").encode()
        )
        result = import_csv(source, store, workspace.users)
        assert result.imported == [1]
        assert result.failures == {}

    def test_import_rejects_foreign_header(self, workspace, store, tmp_path):
        source = tmp_path / "other.csv"
        source.write_text("Id,Who,When\n1,alice,2025-06-01\n")
        with pytest.raises(InvalidInputError) as exc_info:
            import_csv(source, store, workspace.users)
        assert "BookedBy" in str(exc_info.value)
        assert store.load() == []


class TestSummary:
    """Aggregate counts"""

    def test_summary_for_user(self, booked, store):
        summary = summarize(store.load(), user="alice")
        assert summary.total == 4
        assert summary.by_status == {"Pending": 2, "Approved": 1, "Rejected": 0, "Cancelled": 1}
        assert summary.by_priority["High"] == 1
        assert summary.live_minutes == 60 + 30 + 45
        assert summary.busiest_counterpart == "bob"

    def test_summary_everyone(self, booked, store):
        summary = summarize(store.load())
        assert summary.total == 4
        assert summary.busiest_counterpart is None

    @pytest.mark.unit
    def test_summary_empty(self):
        summary = summarize([])
        assert summary.total == 0
        assert summary.live_minutes == 0
        assert set(summary.by_status) == {"Pending", "Approved", "Rejected", "Cancelled"}
