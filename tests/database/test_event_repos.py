"""Event store tests.

Tests for EventRepository and SubtaskRepository:
- event create with manager resolution and implicit assignment
- update / update_status / soft delete and their audit entries
- event listing filters and active / upcoming windows
- subtask create (implicit assignment first), update, delete
"""
from datetime import datetime

import pytest

from database.errors import NotFoundError, ValidationError
from tests.database.conftest import make_employee, make_event


class TestEventCreate:
    """Tests for event creation."""

    def test_basic_create(self, temp_db):
        admin = make_employee(temp_db, "admin")

        event = make_event(temp_db, admin.id, key_insight="Peak footfall after 6pm")

        assert event.id > 0
        assert event.status == "active"
        assert event.assigned_team == []
        assert event.start_date == datetime(2024, 2, 1)
        assert event.end_date == datetime(2024, 2, 5)
        assert event.assigned_to is None
        assert temp_db.assignments.get_by_event(event.id) == []

    def test_manager_is_auto_assigned(self, temp_db):
        admin = make_employee(temp_db, "admin")
        manager = make_employee(temp_db, "mgr")

        event = make_event(temp_db, admin.id, assigned_to=manager.id)

        assert event.assigned_to == manager.id
        assert event.assigned_team == [manager.id]
        assignment = temp_db.assignments.get_assignment(event.id, manager.id)
        assert assignment.sim_target == 0
        log = temp_db.audit.get_by_action("AUTO_ASSIGN_TEAM_MEMBER")[0]
        assert log.details == {"employee_id": manager.id, "reason": "event_manager"}

    def test_manager_appended_to_initial_team(self, temp_db):
        admin = make_employee(temp_db, "admin")
        a = make_employee(temp_db, "a")
        manager = make_employee(temp_db, "mgr")

        event = make_event(temp_db, admin.id, assigned_team=[a.id], assigned_to=manager.id)

        assert event.assigned_team == [a.id, manager.id]

    def test_manager_resolved_from_staff_code(self, temp_db):
        admin = make_employee(temp_db, "admin")
        manager = make_employee(temp_db, "mgr", employee_no="KL-7")

        event = make_event(temp_db, admin.id, assigned_to_staff_id="KL-7")

        assert event.assigned_to == manager.id
        assert event.assigned_team == [manager.id]

    def test_unknown_staff_code_ignored(self, temp_db):
        admin = make_employee(temp_db, "admin")

        event = make_event(temp_db, admin.id, assigned_to_staff_id="NOPE")

        assert event.assigned_to is None
        assert event.assigned_team == []

    def test_invalid_date_rejected_before_write(self, temp_db):
        admin = make_employee(temp_db, "admin")

        with pytest.raises(ValidationError):
            make_event(temp_db, admin.id, start_date="first of Feb")

        assert temp_db.events.get_all_events() == []

    def test_create_audit(self, temp_db):
        admin = make_employee(temp_db, "admin")

        event = make_event(temp_db, admin.id, name="Kumbh Expo")

        log = temp_db.audit.get_by_action("CREATE_EVENT")[0]
        assert log.entity_id == event.id
        assert log.details == {"event_name": "Kumbh Expo"}


class TestEventUpdate:
    """Tests for event edits, status changes and deletion."""

    def test_partial_update(self, temp_db):
        admin = make_employee(temp_db, "admin")
        event = make_event(temp_db, admin.id)

        updated = temp_db.events.update(
            event.id, admin.id, location="Fort Kochi", target_sim=150,
            end_date="2024-02-07",
        )

        assert updated.location == "Fort Kochi"
        assert updated.target_sim == 150
        assert updated.end_date == datetime(2024, 2, 7)
        assert updated.name == event.name
        log = temp_db.audit.get_by_action("UPDATE_EVENT")[0]
        assert log.details["location"] == "Fort Kochi"
        assert log.details["end_date"] == "2024-02-07T00:00:00"

    def test_team_not_editable_through_update(self, temp_db):
        admin = make_employee(temp_db, "admin")
        event = make_event(temp_db, admin.id)

        updated = temp_db.events.update(event.id, admin.id, assigned_team=[admin.id])

        assert updated.assigned_team == []

    def test_update_missing(self, temp_db):
        with pytest.raises(NotFoundError):
            temp_db.events.update(99999, 1, name="x")

    def test_update_status(self, temp_db):
        admin = make_employee(temp_db, "admin")
        event = make_event(temp_db, admin.id)

        updated = temp_db.events.update_status(event.id, "paused", admin.id)

        assert updated.status == "paused"
        log = temp_db.audit.get_by_action("UPDATE_EVENT_STATUS")[0]
        assert log.details == {"status": "paused"}

    def test_update_status_missing(self, temp_db):
        with pytest.raises(NotFoundError):
            temp_db.events.update_status(99999, "paused", 1)

    def test_soft_delete(self, temp_db):
        admin = make_employee(temp_db, "admin")
        event = make_event(temp_db, admin.id)

        assert temp_db.events.delete(event.id, admin.id) is True

        assert temp_db.events.get(event.id).status == "deleted"
        assert temp_db.events.get_all_events() == []
        assert [e.id for e in temp_db.events.get_all_events(status="deleted")] == [event.id]
        assert len(temp_db.audit.get_by_action("DELETE_EVENT")) == 1

    def test_delete_missing(self, temp_db):
        with pytest.raises(NotFoundError):
            temp_db.events.delete(99999, 1)


class TestEventQueries:
    """Tests for event listing helpers."""

    def test_filters(self, temp_db):
        admin = make_employee(temp_db, "admin")
        fair = make_event(temp_db, admin.id, "fair", category="Fair")
        expo = make_event(temp_db, admin.id, "expo", category="Exhibition",
                          circle="GUJARAT", zone="Surat")

        assert [e.id for e in temp_db.events.get_all_events()] == [expo.id, fair.id]
        assert [e.id for e in temp_db.events.get_all_events(category="Fair")] == [fair.id]
        assert [e.id for e in temp_db.events.get_all_events(zone="Surat")] == [expo.id]
        assert [e.id for e in temp_db.events.get_by_circle("GUJARAT")] == [expo.id]

    def test_active_and_upcoming(self, temp_db):
        admin = make_employee(temp_db, "admin")
        running = make_event(temp_db, admin.id, "running",
                             start_date="2024-02-01", end_date="2024-02-10")
        later = make_event(temp_db, admin.id, "later",
                           start_date="2024-03-01", end_date="2024-03-02")
        paused = make_event(temp_db, admin.id, "paused",
                            start_date="2024-02-01", end_date="2024-02-10")
        temp_db.events.update_status(paused.id, "paused", admin.id)
        now = datetime(2024, 2, 5, 12, 0, 0)

        assert [e.id for e in temp_db.events.get_active_events(now)] == [running.id]
        assert [e.id for e in temp_db.events.get_upcoming_events(now)] == [later.id]


class TestSubtasks:
    """Tests for SubtaskRepository."""

    def test_create_with_assignee_assigns_member_first(self, temp_db):
        admin = make_employee(temp_db, "admin")
        a = make_employee(temp_db, "a")
        event = make_event(temp_db, admin.id)

        subtask = temp_db.subtasks.create(
            event.id, "Collect KYC forms", admin.id, assigned_to=a.id,
            priority="high", due_date="2024-02-03",
        )

        assert subtask.assigned_to == a.id
        assert subtask.priority == "high"
        assert subtask.status == "pending"
        assert subtask.due_date == datetime(2024, 2, 3)
        assert temp_db.assignments.get_assignment(event.id, a.id) is not None
        assert temp_db.events.get(event.id).assigned_team == [a.id]
        actions = [l.action for l in temp_db.audit.get_by_entity("EVENT", event.id)]
        assert actions.index("AUTO_ASSIGN_TEAM_MEMBER") < actions.index("CREATE_SUBTASK")

    def test_create_resolves_staff_code(self, temp_db):
        admin = make_employee(temp_db, "admin")
        a = make_employee(temp_db, "a", employee_no="KL-55")
        event = make_event(temp_db, admin.id)

        subtask = temp_db.subtasks.create(event.id, "Stock check", admin.id, staff_id="KL-55")

        assert subtask.assigned_to == a.id

    def test_create_unassigned(self, temp_db):
        admin = make_employee(temp_db, "admin")
        event = make_event(temp_db, admin.id)

        subtask = temp_db.subtasks.create(event.id, "Sweep", admin.id, staff_id="NOPE")

        assert subtask.assigned_to is None
        assert temp_db.assignments.get_by_event(event.id) == []

    def test_complete_stamps_completion(self, temp_db):
        admin = make_employee(temp_db, "admin")
        event = make_event(temp_db, admin.id)
        subtask = temp_db.subtasks.create(event.id, "Banner", admin.id)

        updated = temp_db.subtasks.update(subtask.id, admin.id, status="completed")

        assert updated.status == "completed"
        assert updated.completed_by == admin.id
        assert updated.completed_at is not None
        log = temp_db.audit.get_by_action("UPDATE_SUBTASK")[0]
        assert log.details == {"subtask_id": subtask.id, "changes": {"status": "completed"}}

    def test_update_missing_returns_none_without_audit(self, temp_db):
        assert temp_db.subtasks.update(99999, 1, status="completed") is None
        assert temp_db.audit.get_by_action("UPDATE_SUBTASK") == []

    def test_delete(self, temp_db):
        admin = make_employee(temp_db, "admin")
        event = make_event(temp_db, admin.id)
        subtask = temp_db.subtasks.create(event.id, "Banner", admin.id)

        assert temp_db.subtasks.delete(subtask.id, admin.id) is True
        assert temp_db.subtasks.get_by_event(event.id) == []
        assert temp_db.subtasks.delete(subtask.id, admin.id) is False
        assert len(temp_db.audit.get_by_action("DELETE_SUBTASK")) == 1
