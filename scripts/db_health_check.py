#!/usr/bin/env python
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Connection

from ot_admin.settings import get_settings

EXPECTED_HEAD = "0001_initial"
SAMPLE_LIMIT = 20


def _sample_ids(conn: Connection, sql: str) -> list[Any]:
    return [row[0] for row in conn.execute(text(sql), {"limit": SAMPLE_LIMIT}).fetchall()]


def run_checks(conn: Connection) -> list[dict[str, Any]]:
    checks: list[dict[str, Any]] = []

    def add(name: str, status: str, details: dict[str, Any]) -> None:
        checks.append({"name": name, "status": status, "details": details})

    tables = set(inspect(conn).get_table_names())

    current_versions: list[str] = []
    if "alembic_version" in tables:
        current_versions = [
            row[0]
            for row in conn.execute(text("select version_num from alembic_version")).fetchall()
        ]
    add("alembic_version", "ok" if current_versions else "fail", {"current": current_versions})
    add(
        "migration_up_to_date",
        "ok" if EXPECTED_HEAD in current_versions else "warn",
        {"expected_head": EXPECTED_HEAD, "current": current_versions},
    )

    required_tables = ["employees", "ot_entries", "triple_ot_days", "decision_reasons", "audit_logs"]
    missing_tables = [table for table in required_tables if table not in tables]
    add("missing_tables", "fail" if missing_tables else "ok", {"tables": missing_tables})
    if missing_tables:
        return checks

    missing_create_audit = _sample_ids(
        conn,
        """
        select o.id
        from ot_entries o
        where not exists (
            select 1 from audit_logs a
            where a.entity_type = 'OT'
              and a.entity_id = cast(o.id as varchar(255))
              and a.action = 'CREATE'
        )
        order by o.id
        limit :limit
        """,
    )
    add(
        "ot_missing_create_audit",
        "warn" if missing_create_audit else "ok",
        {"sample_ids": missing_create_audit},
    )

    missing_decision_audit = _sample_ids(
        conn,
        """
        select o.id
        from ot_entries o
        where o.status <> 'PENDING'
          and not exists (
            select 1 from audit_logs a
            where a.entity_type = 'OT'
              and a.entity_id = cast(o.id as varchar(255))
              and a.action in ('APPROVE', 'REJECT')
          )
        order by o.id
        limit :limit
        """,
    )
    add(
        "ot_missing_decision_audit",
        "warn" if missing_decision_audit else "ok",
        {"sample_ids": missing_decision_audit},
    )

    approved_total_mismatch = _sample_ids(
        conn,
        """
        select id
        from ot_entries
        where status = 'APPROVED'
          and (
            approved_total_minutes is null
            or approved_total_minutes <> coalesce(approved_normal_minutes, 0)
                + coalesce(approved_double_minutes, 0)
                + coalesce(approved_triple_minutes, 0)
          )
        order by id
        limit :limit
        """,
    )
    add(
        "ot_approved_total_mismatch",
        "fail" if approved_total_mismatch else "ok",
        {"sample_ids": approved_total_mismatch},
    )

    orphan_employees = _sample_ids(
        conn,
        """
        select o.id
        from ot_entries o
        left join employees e on e.id = o.employee_id
        where e.id is null
        order by o.id
        limit :limit
        """,
    )
    add(
        "ot_orphan_employee",
        "fail" if orphan_employees else "ok",
        {"sample_ids": orphan_employees},
    )
    return checks


def run(database_url: str | None = None) -> dict[str, Any]:
    database_url = database_url or get_settings().database_url
    engine = create_engine(database_url)
    try:
        with engine.connect() as conn:
            checks = run_checks(conn)
    finally:
        engine.dispose()
    return {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "database_url": engine.url.render_as_string(hide_password=True),
        "checks": checks,
    }


if __name__ == "__main__":
    print(json.dumps(run(), ensure_ascii=False, indent=2))
