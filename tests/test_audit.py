from __future__ import annotations

import unittest
from unittest.mock import patch

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from ot_admin.audit import AuditMeta, record_audit
from ot_admin.db import Base, build_engine
from ot_admin.models import AuditAction, AuditEntityType, AuditLog


def _make_session() -> Session:
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()


class RecordAuditTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = _make_session()

    def tearDown(self) -> None:
        self.db.close()

    def test_writes_row_with_request_metadata(self) -> None:
        ok = record_audit(
            self.db,
            entity_type=AuditEntityType.OT,
            entity_id=42,
            action=AuditAction.APPROVE,
            actor_id="approver1",
            diff={"after": {"status": "APPROVED"}},
            meta=AuditMeta(ip="10.0.0.5", user_agent="pytest", route="/api/ot/42/approve", request_id="r-1"),
        )

        self.assertTrue(ok)
        row = self.db.scalars(select(AuditLog)).one()
        self.assertEqual((row.entity_type, row.entity_id, row.action), ("OT", "42", "APPROVE"))
        self.assertEqual(row.ip, "10.0.0.5")
        self.assertEqual(row.route, "/api/ot/42/approve")
        self.assertEqual(row.diff, {"after": {"status": "APPROVED"}})

    def test_failed_commit_is_logged_and_reported(self) -> None:
        with patch.object(self.db, "commit", side_effect=RuntimeError("db down")):
            with self.assertLogs("ot_admin.audit", level="ERROR") as logs:
                ok = record_audit(
                    self.db,
                    entity_type=AuditEntityType.TRIPLE_OT_DAY,
                    entity_id=1,
                    action=AuditAction.DELETE,
                    actor_id="admin",
                )

        self.assertFalse(ok)
        self.assertIn("audit_log_write_failed", logs.output[0])
        self.assertEqual(self.db.scalars(select(AuditLog)).all(), [])


if __name__ == "__main__":
    unittest.main()
