#!/usr/bin/env python3
"""
Shared pytest fixtures: file-backed stores in a temporary directory, a
seeded user directory and a fixed clock.
"""

import os
import sys
from datetime import datetime

import pytest

# Add the project root to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from apptbook.core.config import Settings
from apptbook.db.base import init_workspace
from apptbook.schemas.appointment import Appointment, Priority, Status

FIXED_NOW = datetime(2025, 5, 20, 10, 30, 15, 123456)


@pytest.fixture
def fixed_clock():
    """Clock that always returns the same instant"""
    return lambda: FIXED_NOW


@pytest.fixture
def test_settings(tmp_path):
    """Settings pointing every data file into a temp directory"""
    return Settings(DATA_DIR=str(tmp_path), APP_ENV="testing", LOG_FILE=None)


@pytest.fixture
def workspace(test_settings, fixed_clock):
    """Workspace with three registered users (password 'pw')"""
    ws = init_workspace(test_settings, clock=fixed_clock)
    ws.users.register("alice", "pw", "pw", "Alice Anders", "Client")
    ws.users.register("bob", "pw", "pw", "Bob Brown", "Teacher")
    ws.users.register("carol", "pw", "pw", "Carol Chen", "Manager")
    return ws


@pytest.fixture
def store(workspace):
    return workspace.appointments


@pytest.fixture
def engine(workspace):
    return workspace.engine


@pytest.fixture
def make_appointment():
    """Factory for appointment records that bypass the booking flow"""
    def _make(id, booked_by="alice", with_whom="bob", date="2025-06-01", time="09:00",
              duration_min=60, status=Status.PENDING, **extra):
        return Appointment(
            id=id,
            booked_by=booked_by,
            with_whom=with_whom,
            date=date,
            time=time,
            duration_min=duration_min,
            status=status,
            client_name=extra.pop("client_name", booked_by.title()),
            reason=extra.pop("reason", "Checkup"),
            priority=extra.pop("priority", Priority.MEDIUM),
            created_at=extra.pop("created_at", FIXED_NOW.replace(microsecond=0)),
            **extra,
        )
    return _make


# Pytest configuration hooks
def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "unit: Pure unit tests with no file I/O")
    config.addinivalue_line("markers", "essential: Core functionality tests")
    config.addinivalue_line("markers", "integration: Tests driving several components together")


def pytest_collection_modifyitems(config, items):
    """Run unit tests first, integration tests last"""
    def test_priority(item):
        if item.get_closest_marker("unit"):
            return 0
        elif item.get_closest_marker("integration"):
            return 2
        return 1

    items[:] = sorted(items, key=test_priority)
