"""Employee directory tests.

Tests for EmployeeRepository:
- resolve / resolve_by_code (NotFoundError on miss)
- create with uniqueness checks on email, phone and employee number
- get_active_staff, get_by_circle, get_many, deactivate, search
"""
import pytest

from database.errors import NotFoundError, ValidationError
from tests.database.conftest import make_employee


class TestEmployeeResolve:
    """Tests for the two directory lookups used by the core."""

    def test_resolve_by_id(self, temp_db):
        emp = make_employee(temp_db, "asha", name="Asha")
        resolved = temp_db.staff.resolve(emp.id)
        assert resolved.id == emp.id
        assert resolved.name == "Asha"

    def test_resolve_missing_raises(self, temp_db):
        with pytest.raises(NotFoundError) as exc:
            temp_db.staff.resolve(99999)
        assert str(exc.value) == "Employee not found"
        assert exc.value.key == 99999

    def test_resolve_by_code(self, temp_db):
        emp = make_employee(temp_db, "ravi", employee_no="KL-042")
        assert temp_db.staff.resolve_by_code("KL-042").id == emp.id

    def test_resolve_by_unknown_code_raises(self, temp_db):
        with pytest.raises(NotFoundError):
            temp_db.staff.resolve_by_code("NOPE")

    def test_resolve_with_session(self, temp_db):
        emp = make_employee(temp_db, "sess")
        with temp_db.get_session() as session:
            assert temp_db.staff.resolve(emp.id, session=session).id == emp.id


class TestEmployeeCreate:
    """Tests for employee registration."""

    def test_create_defaults(self, temp_db):
        emp = temp_db.staff.create("Meena")
        assert emp.id > 0
        assert emp.role == "SALES_STAFF"
        assert emp.is_active is True
        assert emp.extra_data == {}

    def test_duplicate_email_rejected(self, temp_db):
        make_employee(temp_db, "one", email="same@example.com")
        with pytest.raises(ValidationError) as exc:
            make_employee(temp_db, "two", email="same@example.com")
        assert exc.value.errors == ["Email already registered"]

    def test_duplicate_phone_and_number_reported_together(self, temp_db):
        make_employee(temp_db, "one", phone="9876543210")
        with pytest.raises(ValidationError) as exc:
            temp_db.staff.create(
                "Other", employee_no="EMP-one", phone="9876543210"
            )
        assert "Phone number already registered" in exc.value.errors
        assert "Employee number already exists" in exc.value.errors

    def test_create_without_unique_fields_never_conflicts(self, temp_db):
        first = temp_db.staff.create("Same Name")
        second = temp_db.staff.create("Same Name")
        assert first.id != second.id


class TestEmployeeQueries:
    """Tests for directory listing helpers."""

    def test_get_active_staff(self, temp_db):
        active = make_employee(temp_db, "active")
        gone = make_employee(temp_db, "gone")
        temp_db.staff.deactivate(gone.id)

        ids = [e.id for e in temp_db.staff.get_active_staff()]
        assert active.id in ids
        assert gone.id not in ids

    def test_deactivate_nonexistent(self, temp_db):
        assert temp_db.staff.deactivate(99999) is None

    def test_get_by_circle(self, temp_db):
        kerala = make_employee(temp_db, "kl", circle="KERALA")
        make_employee(temp_db, "tn", circle="TAMIL_NADU")
        retired = make_employee(temp_db, "kl-old", circle="KERALA")
        temp_db.staff.deactivate(retired.id)

        assert [e.id for e in temp_db.staff.get_by_circle("KERALA")] == [kerala.id]
        all_kerala = temp_db.staff.get_by_circle("KERALA", active_only=False)
        assert {e.id for e in all_kerala} == {kerala.id, retired.id}

    def test_get_many_skips_missing(self, temp_db):
        a = make_employee(temp_db, "a")
        b = make_employee(temp_db, "b")
        found = temp_db.staff.get_many([a.id, b.id, 99999, a.id])
        assert set(found) == {a.id, b.id}
        assert found[b.id].name == "Staff b"

    def test_get_many_empty(self, temp_db):
        assert temp_db.staff.get_many([]) == {}

    def test_search_by_name_or_number(self, temp_db):
        make_employee(temp_db, "x", name="Lakshmi", employee_no="TN-100")
        make_employee(temp_db, "y", name="Arjun", employee_no="KL-200")

        assert [e.name for e in temp_db.staff.search("Laksh")] == ["Lakshmi"]
        assert [e.name for e in temp_db.staff.search("KL-")] == ["Arjun"]
        assert temp_db.staff.search("nobody") == []
