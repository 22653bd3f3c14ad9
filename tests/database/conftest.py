"""Fixtures for isolated database module tests.

Provides reusable fixtures for all database test modules, including
a fresh temp-file SQLite DatabaseManager for each test, a manager wired
to a recording notification dispatcher, and small factories for
employees and events.
"""
import os
import shutil
import tempfile

import pytest

from business.notifications import NotificationDispatcher
from database import DatabaseManager
from database.base_crud import BaseCRUD


class RecordingDispatcher(NotificationDispatcher):
    """Dispatcher that keeps every notify() call in memory."""

    def __init__(self):
        self.sent = []

    def notify(self, employee_id, kind, context):
        self.sent.append((employee_id, kind, dict(context)))

    def to(self, employee_id):
        return [s for s in self.sent if s[0] == employee_id]


class FailingDispatcher(NotificationDispatcher):
    """Dispatcher whose delivery always fails."""

    def __init__(self):
        self.attempts = 0

    def notify(self, employee_id, kind, context):
        self.attempts += 1
        raise RuntimeError("push service unavailable")


def _make_manager(temp_dir, dispatcher=None):
    db_path = os.path.join(temp_dir, "test.db")
    manager = DatabaseManager(
        database_url=f"sqlite:///{db_path}", dispatcher=dispatcher
    )
    manager.create_tables()
    return manager


@pytest.fixture
def temp_db():
    """Yield a fresh DatabaseManager bound to a temp SQLite database."""
    temp_dir = tempfile.mkdtemp(prefix="db-tests-")
    manager = _make_manager(temp_dir)

    try:
        yield manager
    finally:
        manager.close()
        shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def dispatcher():
    """Yield a RecordingDispatcher."""
    return RecordingDispatcher()


@pytest.fixture
def recording_db(dispatcher):
    """Yield a DatabaseManager whose issue engine notifies a RecordingDispatcher."""
    temp_dir = tempfile.mkdtemp(prefix="db-tests-")
    manager = _make_manager(temp_dir, dispatcher=dispatcher)

    try:
        yield manager
    finally:
        manager.close()
        shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def db_conn(temp_db):
    """Yield a DatabaseConnection from the temp_db manager."""
    return temp_db.conn


@pytest.fixture
def base_crud(db_conn):
    """Yield a BaseCRUD instance."""
    return BaseCRUD(db_conn)


def make_employee(db, suffix="default", **overrides):
    """Helper: register an employee and return the ORM object."""
    fields = {
        "name": f"Staff {suffix}",
        "employee_no": f"EMP-{suffix}",
        "email": f"{suffix}@example.com",
        "circle": "KERALA",
        "zone": "Kochi",
    }
    fields.update(overrides)
    return db.staff.create(**fields)


def make_event(db, created_by, suffix="default", **overrides):
    """Helper: create an event and return the ORM object."""
    fields = {
        "name": f"Onam Fair {suffix}",
        "location": "Marine Drive",
        "circle": "KERALA",
        "zone": "Kochi",
        "category": "Festival",
        "start_date": "2024-02-01",
        "end_date": "2024-02-05",
        "created_by": created_by,
        "target_sim": 100,
        "target_ftth": 20,
    }
    fields.update(overrides)
    return db.events.create(**fields)


def make_issue(db, event_id, raised_by, **overrides):
    """Helper: raise an issue and return the ORM object."""
    fields = {
        "issue_type": "MATERIAL_SHORTAGE",
        "description": "SIM kits ran out",
    }
    fields.update(overrides)
    return db.issues.create(event_id, raised_by, **fields)
