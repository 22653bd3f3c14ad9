"""Edge case and failure handling tests.

Tests for:
- PartialEffectError when a secondary write fails after the primary commit
- Notification failures never failing an issue operation
- Date parsing at the repository boundary
"""
from datetime import date, datetime

import pytest
from sqlalchemy.exc import SQLAlchemyError

from database import DatabaseManager, PartialEffectError, ValidationError
from database.base_crud import BaseCRUD
from tests.database.conftest import (
    FailingDispatcher, make_employee, make_event, make_issue,
)


def _boom(*args, **kwargs):
    raise SQLAlchemyError("disk I/O error")


class TestPartialEffects:
    """Secondary write failures surface as PartialEffectError."""

    def test_sales_audit_failure_keeps_entry_and_aggregate(self, temp_db, monkeypatch):
        admin = make_employee(temp_db, "admin")
        a = make_employee(temp_db, "a")
        event = make_event(temp_db, admin.id)
        temp_db.assignments.assign_team_member(event.id, a.id, 10, 1, admin.id)
        monkeypatch.setattr(temp_db.audit, "append", _boom)

        with pytest.raises(PartialEffectError) as exc:
            temp_db.sales.submit_event_sales(event.id, a.id, 3, 3, 0, 0, "B2C")

        assert exc.value.step == "audit"
        assert exc.value.result.sims_sold == 3
        assert isinstance(exc.value.__cause__, SQLAlchemyError)
        assert len(temp_db.sales.get_event_sales_entries(event.id)) == 1
        assert temp_db.assignments.get_assignment(event.id, a.id).sim_sold == 3

    def test_sales_aggregate_failure_keeps_entry(self, temp_db, monkeypatch):
        admin = make_employee(temp_db, "admin")
        a = make_employee(temp_db, "a")
        event = make_event(temp_db, admin.id)
        temp_db.assignments.assign_team_member(event.id, a.id, 10, 1, admin.id)
        monkeypatch.setattr(temp_db.sales, "update_by_id", _boom)

        with pytest.raises(PartialEffectError) as exc:
            temp_db.sales.submit_event_sales(event.id, a.id, 3, 3, 0, 0, "B2C")

        assert exc.value.step == "aggregate"
        assert len(temp_db.sales.get_event_sales_entries(event.id)) == 1
        assert temp_db.assignments.get_assignment(event.id, a.id).sim_sold == 0
        assert temp_db.audit.get_by_action("SUBMIT_EVENT_SALES") == []

    def test_team_sync_failure_keeps_assignment(self, temp_db, monkeypatch):
        admin = make_employee(temp_db, "admin")
        a = make_employee(temp_db, "a")
        event = make_event(temp_db, admin.id)
        monkeypatch.setattr(temp_db.assignments, "_append_to_team", _boom)

        with pytest.raises(PartialEffectError) as exc:
            temp_db.assignments.assign_team_member(event.id, a.id, 10, 1, admin.id)

        assert exc.value.step == "sync_team"
        assert exc.value.result.employee_id == a.id
        assert temp_db.assignments.get_assignment(event.id, a.id) is not None
        assert temp_db.events.get(event.id).assigned_team == []

    def test_remove_sync_failure_keeps_deletion(self, temp_db, monkeypatch):
        admin = make_employee(temp_db, "admin")
        a = make_employee(temp_db, "a")
        event = make_event(temp_db, admin.id)
        temp_db.assignments.assign_team(event.id, [a.id], admin.id)
        monkeypatch.setattr(temp_db.assignments, "_remove_from_team", _boom)

        with pytest.raises(PartialEffectError) as exc:
            temp_db.assignments.remove_team_member(event.id, a.id, admin.id)

        assert exc.value.result is True
        assert temp_db.assignments.get_assignment(event.id, a.id) is None
        assert temp_db.events.get(event.id).assigned_team == [a.id]

    def test_bulk_overwrite_failure_keeps_rows(self, temp_db, monkeypatch):
        admin = make_employee(temp_db, "admin")
        a = make_employee(temp_db, "a")
        event = make_event(temp_db, admin.id)
        monkeypatch.setattr(temp_db.assignments, "_overwrite_team", _boom)

        with pytest.raises(PartialEffectError) as exc:
            temp_db.assignments.assign_team(event.id, [a.id], admin.id)

        assert exc.value.result == [a.id]
        assert temp_db.assignments.get_assignment(event.id, a.id) is not None

    def test_event_auto_assign_failure_keeps_event(self, temp_db, monkeypatch):
        admin = make_employee(temp_db, "admin")
        mgr = make_employee(temp_db, "mgr")
        monkeypatch.setattr(temp_db.assignments, "ensure_member", _boom)

        with pytest.raises(PartialEffectError) as exc:
            make_event(temp_db, admin.id, assigned_to=mgr.id)

        assert exc.value.step == "auto_assign"
        event_id = exc.value.result.id
        assert temp_db.events.get(event_id).assigned_to == mgr.id
        assert temp_db.audit.get_by_action("CREATE_EVENT") == []

    def test_issue_audit_failure_keeps_status(self, temp_db, monkeypatch):
        a = make_employee(temp_db, "a")
        event = make_event(temp_db, a.id)
        issue = make_issue(temp_db, event.id, a.id)
        monkeypatch.setattr(temp_db.audit, "append", _boom)

        with pytest.raises(PartialEffectError):
            temp_db.issues.update_status(issue.id, "CLOSED", a.id)

        assert temp_db.issues.get(issue.id).status == "CLOSED"

    def test_non_storage_errors_propagate_unchanged(self, temp_db, monkeypatch):
        a = make_employee(temp_db, "a")
        event = make_event(temp_db, a.id)

        def _bug(*args, **kwargs):
            raise KeyError("details")

        monkeypatch.setattr(temp_db.audit, "append", _bug)

        with pytest.raises(KeyError):
            temp_db.assignments.assign_team(event.id, [a.id], a.id)


class TestNotificationFailures:
    """Dispatcher failures are logged, never raised."""

    @pytest.fixture
    def failing(self, tmp_path):
        dispatcher = FailingDispatcher()
        db = DatabaseManager(f"sqlite:///{tmp_path / 'fail.db'}", dispatcher=dispatcher)
        db.create_tables()
        try:
            yield db, dispatcher
        finally:
            db.close()

    def test_create_and_escalate_succeed(self, failing):
        db, dispatcher = failing
        a = make_employee(db, "a")
        b = make_employee(db, "b")
        event = make_event(db, a.id)

        issue = make_issue(db, event.id, a.id, escalated_to=b.id)
        escalated = db.issues.escalate(issue.id, b.id, a.id)

        assert escalated.status == "IN_PROGRESS"
        assert dispatcher.attempts == 2

    def test_status_change_completes_every_planned_send(self, failing):
        db, dispatcher = failing
        a = make_employee(db, "a")
        b = make_employee(db, "b")
        c = make_employee(db, "c")
        event = make_event(db, a.id)
        issue = make_issue(db, event.id, a.id, escalated_to=b.id)
        dispatcher.attempts = 0

        updated = db.issues.update_status(issue.id, "IN_PROGRESS", c.id)

        assert updated.status == "IN_PROGRESS"
        assert dispatcher.attempts == 2
        assert len(db.issues.get(issue.id).timeline) == 2

    def test_context_lookup_failure_swallowed(self, recording_db, dispatcher, monkeypatch):
        a = make_employee(recording_db, "a")
        b = make_employee(recording_db, "b")
        event = make_event(recording_db, a.id)

        def _broken(*args, **kwargs):
            raise RuntimeError("directory offline")

        monkeypatch.setattr(recording_db.staff, "resolve", _broken)

        issue = make_issue(recording_db, event.id, a.id, escalated_to=b.id)

        assert issue.id > 0
        assert dispatcher.sent == []

    def test_no_dispatcher_sends_nothing(self, temp_db):
        temp_db.issues.dispatcher = None
        a = make_employee(temp_db, "a")
        b = make_employee(temp_db, "b")
        event = make_event(temp_db, a.id)

        make_issue(temp_db, event.id, a.id, escalated_to=b.id)

        assert temp_db.notifications.get_for_employee(b.id) == []


class TestDateParsing:
    """Tests for BaseCRUD._parse_datetime."""

    def test_date_only_string(self):
        assert BaseCRUD._parse_datetime("2024-02-01") == datetime(2024, 2, 1)

    def test_timezone_aware_string_converted_to_utc(self):
        parsed = BaseCRUD._parse_datetime("2024-02-01T10:00:00+05:30")
        assert parsed == datetime(2024, 2, 1, 4, 30)
        assert parsed.tzinfo is None

    def test_zulu_suffix(self):
        assert BaseCRUD._parse_datetime("2024-02-01T10:00:00Z") == datetime(2024, 2, 1, 10)

    def test_date_object(self):
        assert BaseCRUD._parse_datetime(date(2024, 2, 1)) == datetime(2024, 2, 1)

    def test_optional_missing(self):
        assert BaseCRUD._parse_datetime(None, required=False) is None
        assert BaseCRUD._parse_datetime("", required=False) is None

    @pytest.mark.parametrize("value", [None, "", "31/02/2024", 20240201])
    def test_required_rejects(self, value):
        with pytest.raises(ValidationError):
            BaseCRUD._parse_datetime(value, "Start date")
