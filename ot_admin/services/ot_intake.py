from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ot_admin.audit import AuditMeta, record_audit
from ot_admin.errors import ValidationError
from ot_admin.models import AuditAction, AuditEntityType, OvertimeEntry, OvertimeStatus
from ot_admin.schemas import OvertimeBulkCreateResult, OvertimeRowInput
from ot_admin.services.employees import ensure_active_employees
from ot_admin.services.ot_rules import OtRuleConfig, compute_entry_minutes, get_rule_config
from ot_admin.services.triple_days import is_triple_day

logger = logging.getLogger("ot_admin.intake")

MAX_REPORTED_ERRORS = 5
DUPLICATE_CONSTRAINT = "uq_ot_entries_employee_work_date"
# SQLite reports the violated columns instead of the constraint name.
_SQLITE_DUPLICATE_MARKER = "ot_entries.employee_id, ot_entries.work_date"


def _build_entry(
    *,
    work_date: str,
    row: OvertimeRowInput,
    triple_day: bool,
    actor_id: str,
    config: OtRuleConfig,
) -> OvertimeEntry:
    computation, in_time, out_time = compute_entry_minutes(
        work_date=work_date,
        shift=row.shift,
        in_time=row.in_time,
        out_time=row.out_time,
        is_triple_day=triple_day,
        config=config,
    )
    return OvertimeEntry(
        employee_id=row.employee_id,
        work_date=work_date,
        shift=row.shift,
        in_time=in_time,
        out_time=out_time,
        reason=(row.reason or "").strip() or None,
        normal_minutes=computation.normal_minutes,
        double_minutes=computation.double_minutes,
        triple_minutes=computation.triple_minutes,
        is_night=computation.is_night,
        status=OvertimeStatus.PENDING,
        is_approved_override=False,
        created_by=actor_id,
        updated_by=actor_id,
    )


def _is_duplicate_entry(exc: IntegrityError) -> bool:
    diag = getattr(exc.orig, "diag", None)
    if getattr(diag, "constraint_name", None) == DUPLICATE_CONSTRAINT:
        return True
    message = str(exc.orig)
    return DUPLICATE_CONSTRAINT in message or _SQLITE_DUPLICATE_MARKER in message


def _duplicate_message(row: OvertimeRowInput, work_date: str, exc: IntegrityError) -> str:
    detail = str(exc.orig).strip() if exc.orig is not None else exc.__class__.__name__
    return f"employee {row.employee_id} already has an OT entry on {work_date}: {detail}"


def create_bulk(
    db: Session,
    *,
    work_date: str,
    rows: Sequence[OvertimeRowInput],
    actor_id: str,
    meta: AuditMeta | None = None,
) -> OvertimeBulkCreateResult:
    """Insert one PENDING entry per row for ``work_date``.

    Each row is flushed inside its own savepoint so a duplicate
    ``(employee_id, work_date)`` only drops that row. Any other integrity or
    database error rolls back the whole batch and propagates.
    """
    if not rows:
        raise ValidationError("No rows provided")

    ensure_active_employees(db, (row.employee_id for row in rows))
    triple_day = is_triple_day(db, work_date)
    config = get_rule_config()

    inserted: list[OvertimeEntry] = []
    failures: list[str] = []
    for row in rows:
        entry = _build_entry(
            work_date=work_date,
            row=row,
            triple_day=triple_day,
            actor_id=actor_id,
            config=config,
        )
        try:
            with db.begin_nested():
                db.add(entry)
                db.flush()
        except IntegrityError as exc:
            if not _is_duplicate_entry(exc):
                db.rollback()
                raise
            failures.append(_duplicate_message(row, work_date, exc))
            continue
        inserted.append(entry)

    db.commit()

    audit_failures = 0
    for entry in inserted:
        ok = record_audit(
            db,
            entity_type=AuditEntityType.OT,
            entity_id=entry.id,
            action=AuditAction.CREATE,
            actor_id=actor_id,
            diff={
                "after": {
                    "employee_id": entry.employee_id,
                    "work_date": entry.work_date,
                    "shift": entry.shift,
                }
            },
            meta=meta,
        )
        if not ok:
            audit_failures += 1

    logger.info(
        "ot_bulk_created",
        extra={
            "request_id": meta.request_id if meta else None,
            "work_date": work_date,
            "rows": len(rows),
            "inserted": len(inserted),
            "duplicates": len(failures),
            "audit_failures": audit_failures,
            "triple_day": triple_day,
            "actor_id": actor_id,
        },
    )

    result = OvertimeBulkCreateResult(inserted_count=len(inserted))
    if failures:
        result.duplicates = len(failures)
        result.errors = failures[:MAX_REPORTED_ERRORS]
    if audit_failures:
        result.audit_failures = audit_failures
    return result
