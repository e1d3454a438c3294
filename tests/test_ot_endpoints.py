from __future__ import annotations

import unittest
from collections.abc import Generator
from datetime import date
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from ot_admin.db import Base, build_engine, get_db
from ot_admin.main import app
from ot_admin.models import Employee
from ot_admin.security import require_admin

MONDAY = "2026-10-19"


def _claims(role: str = "admin", username: str = "approver1") -> dict[str, object]:
    return {
        "sub": username,
        "username": username,
        "role": role,
        "iat": 0,
        "exp": 9999999999,
        "jti": f"test-{username}",
        "is_super_admin": False,
    }


class _EndpointTestCase(unittest.TestCase):
    def setUp(self) -> None:
        engine = build_engine("sqlite://")
        Base.metadata.create_all(engine)
        self.session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

        def _override_get_db() -> Generator[Session, None, None]:
            db = self.session_factory()
            try:
                yield db
            finally:
                db.close()

        self.claims = _claims()
        app.dependency_overrides[get_db] = _override_get_db
        app.dependency_overrides[require_admin] = lambda: self.claims
        self.client = TestClient(app)

        with self.session_factory() as db:
            employees = [Employee(emp_code=f"E{index:03d}", full_name=f"Worker {index}") for index in (1, 2)]
            db.add_all(employees)
            db.commit()
            self.employee_ids = [item.id for item in employees]

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def _bulk(self, *employee_ids: int, work_date: str = MONDAY):  # type: ignore[no-untyped-def]
        return self.client.post(
            "/api/ot/bulk",
            json={
                "work_date": work_date,
                "rows": [
                    {"employee_id": item, "shift": "Shift 1", "in_time": "06:30", "out_time": "18:00"}
                    for item in employee_ids
                ],
            },
        )

    def _first_entry_id(self) -> int:
        response = self.client.get("/api/ot", params={"from": MONDAY, "to": MONDAY})
        return response.json()["items"][0]["id"]


class BulkEndpointTests(_EndpointTestCase):
    def test_bulk_create_returns_201(self) -> None:
        response = self._bulk(*self.employee_ids)

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json(), {"inserted_count": 2})
        self.assertTrue(response.headers.get("X-Request-Id"))

    def test_bulk_with_duplicates_returns_207(self) -> None:
        self._bulk(self.employee_ids[0])

        response = self._bulk(*self.employee_ids)

        self.assertEqual(response.status_code, 207)
        body = response.json()
        self.assertEqual(body["inserted_count"], 1)
        self.assertEqual(body["duplicates"], 1)
        self.assertEqual(len(body["errors"]), 1)

    def test_empty_rows_return_validation_error_payload(self) -> None:
        response = self.client.post(
            "/api/ot/bulk",
            json={"work_date": MONDAY, "rows": []},
            headers={"X-Request-Id": "req-123"},
        )

        self.assertEqual(response.status_code, 422)
        self.assertEqual(
            response.json(),
            {"error": {"code": "VALIDATION_ERROR", "message": "No rows provided", "request_id": "req-123"}},
        )

    def test_row_without_times_is_rejected(self) -> None:
        response = self.client.post(
            "/api/ot/bulk",
            json={"work_date": MONDAY, "rows": [{"employee_id": self.employee_ids[0], "shift": "Shift 1"}]},
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_unknown_employee_returns_404(self) -> None:
        response = self._bulk(9999)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "NOT_FOUND")

    def test_viewer_cannot_create(self) -> None:
        self.claims = _claims(role="viewer")
        response = self._bulk(self.employee_ids[0])
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["code"], "FORBIDDEN")


class DecisionEndpointTests(_EndpointTestCase):
    def setUp(self) -> None:
        super().setUp()
        self._bulk(self.employee_ids[0])
        self.entry_id = self._first_entry_id()

    def test_listing_includes_employee_and_pagination(self) -> None:
        self._bulk(self.employee_ids[1], work_date="2026-10-20")

        response = self.client.get("/api/ot", params={"page": 1, "limit": 1})

        body = response.json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual((body["page"], body["limit"], body["total"]), (1, 1, 2))
        self.assertEqual(body["items"][0]["work_date"], "2026-10-20")
        self.assertEqual(body["items"][0]["employee"]["emp_code"], "E002")

    def test_listing_rejects_malformed_or_inverted_date_range(self) -> None:
        malformed = self.client.get("/api/ot", params={"from": "abc"})
        self.assertEqual(malformed.status_code, 422)
        self.assertEqual(malformed.json()["error"]["code"], "VALIDATION_ERROR")
        self.assertEqual(malformed.json()["error"]["message"], "from must be a YYYY-MM-DD date")

        inverted = self.client.get("/api/ot", params={"from": "2026-10-20", "to": MONDAY})
        self.assertEqual(inverted.status_code, 422)
        self.assertEqual(inverted.json()["error"]["message"], "from must not be after to")

        bounded = self.client.get("/api/ot", params={"from": MONDAY, "to": MONDAY})
        self.assertEqual(bounded.status_code, 200)
        self.assertEqual(bounded.json()["total"], 1)

    def test_approve_then_second_decision_conflicts(self) -> None:
        response = self.client.patch(f"/api/ot/{self.entry_id}/approve", json={})

        self.assertEqual(response.status_code, 200)
        item = response.json()["item"]
        self.assertEqual(item["status"], "APPROVED")
        self.assertEqual(item["approved_total_minutes"], 150)
        self.assertEqual(item["decided_by"], "approver1")

        again = self.client.patch(f"/api/ot/{self.entry_id}/reject", json={"reason": "Late"})
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.json()["error"]["code"], "CONFLICT")

    def test_reject_blank_reason_is_422(self) -> None:
        response = self.client.patch(f"/api/ot/{self.entry_id}/reject", json={"reason": "  "})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["message"], "Rejection reason required")

    def test_approve_missing_entry_is_404(self) -> None:
        response = self.client.patch("/api/ot/9999/approve", json={})
        self.assertEqual(response.status_code, 404)

    def test_edit_recomputes(self) -> None:
        response = self.client.patch(f"/api/ot/{self.entry_id}", json={"out_time": "19:00"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["item"]["normal_minutes"], 210)

    def test_pending_notifications(self) -> None:
        count = self.client.get("/api/ot/notifications/count")
        pending = self.client.get("/api/ot/notifications/pending")

        self.assertEqual(count.json(), {"pending": 1})
        self.assertEqual(pending.json()["pending_count"], 1)
        self.assertEqual(pending.json()["items"][0]["employee"]["emp_code"], "E001")

    def test_stats_endpoints(self) -> None:
        self.client.patch(f"/api/ot/{self.entry_id}/approve", json={"approved_normal_minutes": 120})

        day = self.client.get("/api/ot/stats/day", params={"date": MONDAY}).json()
        self.assertEqual(day["approved"], 1)
        self.assertEqual(day["hours"]["normal"], 2.5)
        self.assertEqual(day["approved_hours"], 2.0)

        week = self.client.get("/api/ot/stats/week", params={"from": "2026-10-19", "to": "2026-10-25"}).json()
        self.assertEqual([item["date"] for item in week["items"]], [MONDAY])

        with patch("ot_admin.services.ot_stats._today", return_value=date(2026, 10, 19)):
            summary = self.client.get("/api/ot/stats/summary", params={"scope": "weekly"}).json()
        self.assertEqual((summary["from"], summary["to"]), ("2026-10-19", "2026-10-25"))
        self.assertEqual(summary["items"][0]["period"], "2026-10-19")

    def test_audit_log_listing(self) -> None:
        self.client.patch(f"/api/ot/{self.entry_id}/approve", json={})

        response = self.client.get("/api/admin/audit-logs", params={"entity_id": str(self.entry_id)})

        self.assertEqual(response.status_code, 200)
        self.assertEqual([item["action"] for item in response.json()], ["APPROVE", "CREATE"])


class AdminEndpointTests(_EndpointTestCase):
    def test_triple_day_crud_and_conflict(self) -> None:
        created = self.client.post("/api/admin/triple-ot-days", json={"date": MONDAY, "note": "Holiday"})
        duplicate = self.client.post("/api/admin/triple-ot-days", json={"date": MONDAY})

        self.assertEqual(created.status_code, 201)
        self.assertEqual(duplicate.status_code, 409)
        listing = self.client.get("/api/admin/triple-ot-days").json()
        self.assertEqual([item["date"] for item in listing], [MONDAY])

        deleted = self.client.delete(f"/api/admin/triple-ot-days/{created.json()['id']}")
        self.assertEqual(deleted.json(), {"ok": True})
        self.assertEqual(self.client.get("/api/admin/triple-ot-days").json(), [])

        actions = [item["action"] for item in self.client.get("/api/admin/audit-logs", params={"entity_type": "TRIPLE_OT_DAY"}).json()]
        self.assertEqual(actions, ["DELETE", "CREATE"])

    def test_triple_day_makes_bulk_rows_triple(self) -> None:
        self.client.post("/api/admin/triple-ot-days", json={"date": MONDAY})
        self.client.post(
            "/api/ot/bulk",
            json={
                "work_date": MONDAY,
                "rows": [{"employee_id": self.employee_ids[0], "shift": "Shift 1", "in_time": "20:00", "out_time": "23:30"}],
            },
        )
        item = self.client.get("/api/ot").json()["items"][0]
        self.assertEqual(item["triple_minutes"], 210)
        self.assertTrue(item["is_night"])

    def test_invalid_triple_day_date_is_422(self) -> None:
        response = self.client.post("/api/admin/triple-ot-days", json={"date": "2026-02-30"})
        self.assertEqual(response.status_code, 422)

    def test_decision_reasons_crud(self) -> None:
        created = self.client.post("/api/admin/decision-reasons", json={"type": "REJECT", "label": "Not authorised"})
        self.client.post("/api/admin/decision-reasons", json={"type": "APPROVE", "label": "Planned", "sort": 1})
        self.assertEqual(created.status_code, 201)
        reason_id = created.json()["id"]

        patched = self.client.patch(f"/api/admin/decision-reasons/{reason_id}", json={"active": False})
        self.assertFalse(patched.json()["active"])

        rejects = self.client.get("/api/admin/decision-reasons", params={"type": "REJECT"}).json()
        self.assertEqual([item["label"] for item in rejects], ["Not authorised"])
        active = self.client.get("/api/admin/decision-reasons", params={"active": True}).json()
        self.assertEqual([item["label"] for item in active], ["Planned"])

        self.assertEqual(self.client.delete(f"/api/admin/decision-reasons/{reason_id}").status_code, 200)
        self.assertEqual(self.client.delete(f"/api/admin/decision-reasons/{reason_id}").status_code, 404)

    def test_employee_soft_delete_and_restore(self) -> None:
        created = self.client.post("/api/admin/employees", json={"emp_code": "E010", "full_name": "New Hire"})
        duplicate = self.client.post("/api/admin/employees", json={"emp_code": "E010", "full_name": "Again"})
        self.assertEqual(created.status_code, 201)
        self.assertEqual(duplicate.status_code, 409)
        employee_id = created.json()["id"]

        deleted = self.client.delete(f"/api/admin/employees/{employee_id}")
        self.assertTrue(deleted.json()["is_deleted"])
        self.assertNotIn(employee_id, [item["id"] for item in self.client.get("/api/admin/employees").json()])
        self.assertEqual(self._bulk(employee_id).status_code, 404)
        self.assertEqual(
            self.client.patch(f"/api/admin/employees/{employee_id}", json={"full_name": "X"}).status_code,
            409,
        )

        restored = self.client.post(f"/api/admin/employees/{employee_id}/restore")
        self.assertFalse(restored.json()["is_deleted"])
        self.assertEqual(self._bulk(employee_id).status_code, 201)

    def test_employee_search(self) -> None:
        response = self.client.get("/api/admin/employees", params={"search": "worker 2"})
        self.assertEqual([item["emp_code"] for item in response.json()], ["E002"])

    def test_health_reports_schema_guard_not_run(self) -> None:
        body = self.client.get("/health").json()
        self.assertEqual(body["status"], "ok")
        self.assertFalse(body["schema_guard"]["ok"])


if __name__ == "__main__":
    unittest.main()
