from __future__ import annotations

import unittest
from types import SimpleNamespace
from unittest.mock import patch

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ot_admin.db import Base, build_engine
from ot_admin.errors import NotFoundError, ValidationError
from ot_admin.models import AuditLog, Employee, OvertimeEntry, OvertimeStatus, TripleOtDay
from ot_admin.schemas import OvertimeRowInput
from ot_admin.services.ot_intake import DUPLICATE_CONSTRAINT, _is_duplicate_entry, create_bulk

MONDAY = "2026-10-19"
SUNDAY = "2026-10-18"


def _make_session() -> Session:
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()


def _add_employees(db: Session, count: int) -> list[Employee]:
    employees = [Employee(emp_code=f"E{index:03d}", full_name=f"Worker {index}") for index in range(1, count + 1)]
    db.add_all(employees)
    db.commit()
    return employees


def _row(employee_id: int, shift: str = "Shift 1", in_time: str | None = "06:30", out_time: str | None = "18:00"):
    return OvertimeRowInput(employee_id=employee_id, shift=shift, in_time=in_time, out_time=out_time)


class BulkIntakeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = _make_session()

    def tearDown(self) -> None:
        self.db.close()

    def test_inserts_pending_entries_with_computed_minutes(self) -> None:
        employee, = _add_employees(self.db, 1)

        result = create_bulk(self.db, work_date=MONDAY, rows=[_row(employee.id)], actor_id="supervisor1")

        self.assertEqual(result.inserted_count, 1)
        self.assertIsNone(result.duplicates)
        self.assertIsNone(result.errors)
        entry = self.db.scalars(select(OvertimeEntry)).one()
        self.assertEqual(entry.status, OvertimeStatus.PENDING)
        self.assertEqual(entry.normal_minutes, 150)
        self.assertEqual(entry.created_by, "supervisor1")
        self.assertIsNone(entry.approved_total_minutes)
        self.assertFalse(entry.is_approved_override)

    def test_sunday_row_lands_in_double_bucket(self) -> None:
        employee, = _add_employees(self.db, 1)

        create_bulk(
            self.db,
            work_date=SUNDAY,
            rows=[_row(employee.id, shift="Shift 2", in_time="08:00", out_time="14:00")],
            actor_id="supervisor1",
        )

        entry = self.db.scalars(select(OvertimeEntry)).one()
        self.assertEqual(entry.double_minutes, 300)
        self.assertEqual(entry.normal_minutes, 0)

    def test_triple_day_is_looked_up_for_the_batch(self) -> None:
        employee, = _add_employees(self.db, 1)
        self.db.add(TripleOtDay(date=MONDAY, note="Plant shutdown"))
        self.db.commit()

        create_bulk(
            self.db,
            work_date=MONDAY,
            rows=[_row(employee.id, in_time="20:00", out_time="23:30")],
            actor_id="supervisor1",
        )

        entry = self.db.scalars(select(OvertimeEntry)).one()
        self.assertEqual(entry.triple_minutes, 210)
        self.assertTrue(entry.is_night)

    def test_no_shift_row_stores_zero_minutes_and_blank_times(self) -> None:
        employee, = _add_employees(self.db, 1)

        create_bulk(
            self.db,
            work_date=MONDAY,
            rows=[_row(employee.id, shift="NO_SHIFT", in_time=None, out_time=None)],
            actor_id="supervisor1",
        )

        entry = self.db.scalars(select(OvertimeEntry)).one()
        self.assertEqual((entry.in_time, entry.out_time), ("", ""))
        self.assertEqual(entry.normal_minutes + entry.double_minutes + entry.triple_minutes, 0)
        self.assertFalse(entry.is_night)

    def test_duplicate_rows_are_reported_and_others_kept(self) -> None:
        first, second = _add_employees(self.db, 2)
        create_bulk(self.db, work_date=MONDAY, rows=[_row(first.id)], actor_id="supervisor1")

        result = create_bulk(
            self.db,
            work_date=MONDAY,
            rows=[_row(first.id), _row(second.id)],
            actor_id="supervisor1",
        )

        self.assertEqual(result.inserted_count, 1)
        self.assertEqual(result.duplicates, 1)
        self.assertEqual(len(result.errors or []), 1)
        entries = self.db.scalars(select(OvertimeEntry).order_by(OvertimeEntry.id)).all()
        self.assertEqual([item.employee_id for item in entries], [first.id, second.id])

    def test_reported_errors_are_capped_at_five(self) -> None:
        employees = _add_employees(self.db, 7)
        create_bulk(self.db, work_date=MONDAY, rows=[_row(item.id) for item in employees], actor_id="supervisor1")

        result = create_bulk(self.db, work_date=MONDAY, rows=[_row(item.id) for item in employees], actor_id="supervisor1")

        self.assertEqual(result.inserted_count, 0)
        self.assertEqual(result.duplicates, 7)
        self.assertEqual(len(result.errors or []), 5)

    def test_empty_rows_raise_validation_error(self) -> None:
        with self.assertRaises(ValidationError):
            create_bulk(self.db, work_date=MONDAY, rows=[], actor_id="supervisor1")

    def test_unknown_or_deleted_employee_is_refused_before_insert(self) -> None:
        active, deleted = _add_employees(self.db, 2)
        deleted.is_deleted = True
        self.db.commit()

        with self.assertRaises(NotFoundError):
            create_bulk(self.db, work_date=MONDAY, rows=[_row(active.id), _row(deleted.id)], actor_id="supervisor1")
        with self.assertRaises(NotFoundError):
            create_bulk(self.db, work_date=MONDAY, rows=[_row(9999)], actor_id="supervisor1")

        self.assertEqual(self.db.scalars(select(OvertimeEntry)).all(), [])

    def test_each_inserted_entry_gets_a_create_audit(self) -> None:
        first, second = _add_employees(self.db, 2)

        create_bulk(self.db, work_date=MONDAY, rows=[_row(first.id), _row(second.id)], actor_id="supervisor1")

        audits = self.db.scalars(select(AuditLog).order_by(AuditLog.id)).all()
        entries = self.db.scalars(select(OvertimeEntry).order_by(OvertimeEntry.id)).all()
        self.assertEqual([item.action for item in audits], ["CREATE", "CREATE"])
        self.assertEqual([item.entity_id for item in audits], [str(item.id) for item in entries])
        self.assertEqual(audits[0].entity_type, "OT")
        self.assertEqual(audits[0].actor_id, "supervisor1")
        self.assertEqual(
            audits[0].diff,
            {"after": {"employee_id": first.id, "work_date": MONDAY, "shift": "Shift 1"}},
        )

    def test_audit_failure_is_counted_without_undoing_inserts(self) -> None:
        employee, = _add_employees(self.db, 1)

        with patch("ot_admin.services.ot_intake.record_audit", return_value=False):
            result = create_bulk(self.db, work_date=MONDAY, rows=[_row(employee.id)], actor_id="supervisor1")

        self.assertEqual(result.inserted_count, 1)
        self.assertEqual(result.audit_failures, 1)
        self.assertEqual(len(self.db.scalars(select(OvertimeEntry)).all()), 1)


    def test_non_duplicate_integrity_error_aborts_the_batch(self) -> None:
        first, second = _add_employees(self.db, 2)

        with self.assertRaises(IntegrityError):
            create_bulk(self.db, work_date=MONDAY, rows=[_row(first.id), _row(second.id)], actor_id=None)

        self.assertEqual(self.db.scalars(select(OvertimeEntry)).all(), [])
        self.assertEqual(self.db.scalars(select(AuditLog)).all(), [])


class DuplicateDetectionTests(unittest.TestCase):
    def _integrity_error(self, message: str, constraint_name: str | None = None) -> IntegrityError:
        orig = Exception(message)
        if constraint_name is not None:
            orig.diag = SimpleNamespace(constraint_name=constraint_name)  # type: ignore[attr-defined]
        return IntegrityError("INSERT INTO ot_entries", {}, orig)

    def test_sqlite_unique_violation_is_a_duplicate(self) -> None:
        exc = self._integrity_error("UNIQUE constraint failed: ot_entries.employee_id, ot_entries.work_date")
        self.assertTrue(_is_duplicate_entry(exc))

    def test_named_constraint_is_a_duplicate(self) -> None:
        exc = self._integrity_error("duplicate key value", constraint_name=DUPLICATE_CONSTRAINT)
        self.assertTrue(_is_duplicate_entry(exc))

    def test_other_constraints_are_not_duplicates(self) -> None:
        self.assertFalse(_is_duplicate_entry(self._integrity_error("NOT NULL constraint failed: ot_entries.created_by")))
        self.assertFalse(
            _is_duplicate_entry(self._integrity_error("violates foreign key", constraint_name="ot_entries_employee_id_fkey"))
        )


if __name__ == "__main__":
    unittest.main()
