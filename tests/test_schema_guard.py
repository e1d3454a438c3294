from __future__ import annotations

import unittest

from sqlalchemy import text

from ot_admin.db import Base, build_engine
from ot_admin.services.schema_guard import verify_runtime_schema


def _engine_with_schema(*, version: str | None):  # type: ignore[no-untyped-def]
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    with engine.begin() as connection:
        connection.execute(text("CREATE TABLE alembic_version (version_num VARCHAR(32) NOT NULL)"))
        if version is not None:
            connection.execute(text("INSERT INTO alembic_version (version_num) VALUES (:v)"), {"v": version})
    return engine


class SchemaGuardTests(unittest.TestCase):
    def test_ok_when_tables_columns_and_version_exist(self) -> None:
        result = verify_runtime_schema(_engine_with_schema(version="0001_initial"))

        self.assertTrue(result.ok)
        self.assertEqual(result.issues, [])
        self.assertIn("ENUM_INSPECTION_SKIPPED:sqlite", result.warnings)
        self.assertEqual(result.to_dict()["issue_count"], 0)

    def test_empty_alembic_version_is_an_issue(self) -> None:
        result = verify_runtime_schema(_engine_with_schema(version=None))

        self.assertFalse(result.ok)
        self.assertIn("ALEMBIC_VERSION_EMPTY", result.issues)

    def test_missing_table_and_columns_are_reported(self) -> None:
        engine = build_engine("sqlite://")
        with engine.begin() as connection:
            connection.execute(text("CREATE TABLE employees (id INTEGER PRIMARY KEY, emp_code VARCHAR(64))"))

        result = verify_runtime_schema(engine)

        self.assertFalse(result.ok)
        self.assertIn("MISSING_COLUMNS:employees:full_name,is_deleted", result.issues)
        self.assertIn("MISSING_TABLE:ot_entries", result.issues)
        self.assertIn("MISSING_TABLE:alembic_version", result.issues)


if __name__ == "__main__":
    unittest.main()
