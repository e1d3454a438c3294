from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "issue_count": len(self.issues),
            "warning_count": len(self.warnings),
        }


REQUIRED_TABLE_COLUMNS: dict[str, set[str]] = {
    "employees": {"id", "emp_code", "full_name", "is_deleted"},
    "ot_entries": {
        "id",
        "employee_id",
        "work_date",
        "shift",
        "in_time",
        "out_time",
        "normal_minutes",
        "double_minutes",
        "triple_minutes",
        "is_night",
        "status",
        "approved_total_minutes",
        "is_approved_override",
    },
    "triple_ot_days": {"id", "date"},
    "decision_reasons": {"id", "type", "label", "active"},
    "audit_logs": {"id", "entity_type", "entity_id", "action", "actor_id", "diff"},
    "alembic_version": {"version_num"},
}

# Only Postgres reports enums; other dialects surface a warning instead.
REQUIRED_ENUM_VALUES: dict[str, set[str]] = {
    "ot_status": {"PENDING", "APPROVED", "REJECTED"},
    "decision_type": {"APPROVE", "REJECT"},
}


def _enum_labels(engine: Engine, warnings: list[str]) -> dict[str, set[str]]:
    if engine.dialect.name != "postgresql":
        warnings.append(f"ENUM_INSPECTION_SKIPPED:{engine.dialect.name}")
        return {}
    try:
        enums = inspect(engine).get_enums() or []
    except Exception as exc:  # pragma: no cover - depends on driver
        warnings.append(f"ENUM_INSPECTION_FAILED:{exc.__class__.__name__}")
        return {}

    labels_by_name: dict[str, set[str]] = {}
    for enum_item in enums:
        name = str(enum_item.get("name") or "").strip()
        labels = enum_item.get("labels")
        if name and isinstance(labels, list):
            labels_by_name[name] = {str(label) for label in labels}
    return labels_by_name


def verify_runtime_schema(engine: Engine) -> SchemaGuardResult:
    issues: list[str] = []
    warnings: list[str] = []
    checked_at_utc = datetime.now(timezone.utc)
    inspector = inspect(engine)
    existing_tables = set(inspector.get_table_names())

    for table_name, required_columns in REQUIRED_TABLE_COLUMNS.items():
        if table_name not in existing_tables:
            issues.append(f"MISSING_TABLE:{table_name}")
            continue
        column_names = {str(item.get("name")) for item in inspector.get_columns(table_name)}
        missing_columns = sorted(item for item in required_columns if item not in column_names)
        if missing_columns:
            issues.append(f"MISSING_COLUMNS:{table_name}:{','.join(missing_columns)}")

    enum_values_by_name = _enum_labels(engine, warnings)
    if enum_values_by_name:
        for enum_name, required_values in REQUIRED_ENUM_VALUES.items():
            if enum_name not in enum_values_by_name:
                warnings.append(f"ENUM_NOT_FOUND:{enum_name}")
                continue
            missing_values = sorted(item for item in required_values if item not in enum_values_by_name[enum_name])
            if missing_values:
                issues.append(f"MISSING_ENUM_VALUES:{enum_name}:{','.join(missing_values)}")

    if "alembic_version" in existing_tables:
        with engine.connect() as connection:
            row = connection.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).scalar()
        version = str(row).strip() if row is not None else ""
        if not version:
            issues.append("ALEMBIC_VERSION_EMPTY")

    return SchemaGuardResult(
        ok=len(issues) == 0,
        checked_at_utc=checked_at_utc,
        issues=issues,
        warnings=warnings,
    )
