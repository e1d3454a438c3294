from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ot_admin.audit import AuditMeta, record_audit
from ot_admin.errors import ConflictError, NotFoundError, ValidationError
from ot_admin.models import AuditAction, AuditEntityType, OvertimeEntry, OvertimeStatus
from ot_admin.schemas import OvertimeEntryUpdateRequest
from ot_admin.services.ot_rules import compute_entry_minutes
from ot_admin.services.triple_days import is_triple_day

logger = logging.getLogger("ot_admin.lifecycle")


def _load_entry(db: Session, entry_id: int) -> OvertimeEntry:
    entry = db.get(OvertimeEntry, entry_id)
    if entry is None:
        raise NotFoundError("OT entry not found")
    return entry


def _ensure_pending(entry: OvertimeEntry, message: str) -> None:
    if entry.status != OvertimeStatus.PENDING:
        raise ConflictError(message)


def _conditional_update(
    db: Session,
    entry: OvertimeEntry,
    *,
    expected: dict[str, Any],
    values: dict[str, Any],
    conflict_message: str,
    meta: AuditMeta | None,
    changed_message: str | None = None,
) -> OvertimeEntry:
    """Write ``values`` only if the row still matches ``expected`` and is PENDING.

    The status check and the write are one UPDATE statement, so of two
    concurrent decisions on the same entry exactly one matches a row. When the
    row is still PENDING but ``expected`` no longer matches, ``changed_message``
    is reported instead of ``conflict_message``.
    """
    entry_id = entry.id
    # End the read transaction first; SQLite cannot upgrade a shared read lock
    # held by two sessions and fails one writer with "database is locked".
    db.commit()

    conditions = [
        OvertimeEntry.id == entry_id,
        OvertimeEntry.status == OvertimeStatus.PENDING,
    ]
    conditions.extend(getattr(OvertimeEntry, column) == value for column, value in expected.items())

    result = db.execute(
        update(OvertimeEntry)
        .where(*conditions)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        message = conflict_message
        if changed_message is not None:
            current_status = db.scalar(select(OvertimeEntry.status).where(OvertimeEntry.id == entry_id))
            db.rollback()
            if current_status == OvertimeStatus.PENDING:
                message = changed_message
        logger.warning(
            "ot_decision_conflict",
            extra={
                "request_id": meta.request_id if meta else None,
                "entry_id": entry_id,
                "attempted_status": str(values.get("status", OvertimeStatus.PENDING).value),
            },
        )
        raise ConflictError(message)

    db.commit()
    db.refresh(entry)
    return entry


def _snapshot(entry: OvertimeEntry) -> dict[str, Any]:
    return {
        "shift": entry.shift,
        "in_time": entry.in_time,
        "out_time": entry.out_time,
        "reason": entry.reason,
        "normal_minutes": entry.normal_minutes,
        "double_minutes": entry.double_minutes,
        "triple_minutes": entry.triple_minutes,
        "is_night": entry.is_night,
    }


def update_entry(
    db: Session,
    entry_id: int,
    patch: OvertimeEntryUpdateRequest,
    *,
    actor_id: str,
    meta: AuditMeta | None = None,
) -> OvertimeEntry:
    entry = _load_entry(db, entry_id)
    _ensure_pending(entry, "Only pending entries can be edited")
    before = _snapshot(entry)

    shift = (patch.shift if patch.shift is not None else entry.shift).strip()
    if not shift:
        raise ValidationError("shift must not be blank")
    in_time = patch.in_time if patch.in_time is not None else entry.in_time
    out_time = patch.out_time if patch.out_time is not None else entry.out_time
    reason = patch.reason if patch.reason is not None else entry.reason

    computation, in_time, out_time = compute_entry_minutes(
        work_date=entry.work_date,
        shift=shift,
        in_time=in_time,
        out_time=out_time,
        is_triple_day=is_triple_day(db, entry.work_date),
    )

    entry = _conditional_update(
        db,
        entry,
        expected={},
        values={
            "shift": shift,
            "in_time": in_time,
            "out_time": out_time,
            "reason": (reason or "").strip() or None,
            "normal_minutes": computation.normal_minutes,
            "double_minutes": computation.double_minutes,
            "triple_minutes": computation.triple_minutes,
            "is_night": computation.is_night,
            "updated_by": actor_id,
        },
        conflict_message="Only pending entries can be edited",
        meta=meta,
    )

    record_audit(
        db,
        entity_type=AuditEntityType.OT,
        entity_id=entry.id,
        action=AuditAction.UPDATE,
        actor_id=actor_id,
        diff={"before": before, "after": _snapshot(entry)},
        meta=meta,
    )
    logger.info("ot_entry_updated", extra={"entry_id": entry.id, "actor_id": actor_id})
    return entry


def approve_entry(
    db: Session,
    entry_id: int,
    *,
    actor_id: str,
    reason: str | None = None,
    approved_normal_minutes: int | None = None,
    approved_double_minutes: int | None = None,
    approved_triple_minutes: int | None = None,
    meta: AuditMeta | None = None,
) -> OvertimeEntry:
    entry = _load_entry(db, entry_id)
    _ensure_pending(entry, "Already decided")

    overrides = (approved_normal_minutes, approved_double_minutes, approved_triple_minutes)
    if any(value is not None and value < 0 for value in overrides):
        raise ValidationError("Approved minutes must not be negative")
    is_override = any(value is not None for value in overrides)

    computed = {
        "normal_minutes": entry.normal_minutes,
        "double_minutes": entry.double_minutes,
        "triple_minutes": entry.triple_minutes,
    }
    approved_normal = approved_normal_minutes if approved_normal_minutes is not None else entry.normal_minutes
    approved_double = approved_double_minutes if approved_double_minutes is not None else entry.double_minutes
    approved_triple = approved_triple_minutes if approved_triple_minutes is not None else entry.triple_minutes
    approved_total = approved_normal + approved_double + approved_triple
    decision_reason = (reason or "").strip() or None

    # Defaults were taken from the computed minutes just read, so the write
    # also requires those minutes to be unchanged.
    entry = _conditional_update(
        db,
        entry,
        expected=computed,
        values={
            "status": OvertimeStatus.APPROVED,
            "decision_reason": decision_reason,
            "decided_by": actor_id,
            "decided_at": datetime.now(timezone.utc),
            "updated_by": actor_id,
            "approved_normal_minutes": approved_normal,
            "approved_double_minutes": approved_double,
            "approved_triple_minutes": approved_triple,
            "approved_total_minutes": approved_total,
            "is_approved_override": is_override,
        },
        conflict_message="Already decided",
        meta=meta,
        changed_message="Entry changed; reload before approving",
    )

    record_audit(
        db,
        entity_type=AuditEntityType.OT,
        entity_id=entry.id,
        action=AuditAction.APPROVE,
        actor_id=actor_id,
        diff={
            "before": {"status": OvertimeStatus.PENDING.value, **computed},
            "after": {
                "status": OvertimeStatus.APPROVED.value,
                "decision_reason": decision_reason,
                "approved_normal_minutes": approved_normal,
                "approved_double_minutes": approved_double,
                "approved_triple_minutes": approved_triple,
                "approved_total_minutes": approved_total,
                "is_approved_override": is_override,
            },
        },
        meta=meta,
    )
    logger.info(
        "ot_entry_approved",
        extra={
            "entry_id": entry.id,
            "actor_id": actor_id,
            "approved_total_minutes": approved_total,
            "is_approved_override": is_override,
        },
    )
    return entry


def reject_entry(
    db: Session,
    entry_id: int,
    *,
    actor_id: str,
    reason: str | None,
    meta: AuditMeta | None = None,
) -> OvertimeEntry:
    entry = _load_entry(db, entry_id)
    _ensure_pending(entry, "Already decided")

    decision_reason = (reason or "").strip()
    if not decision_reason:
        raise ValidationError("Rejection reason required")

    entry = _conditional_update(
        db,
        entry,
        expected={},
        values={
            "status": OvertimeStatus.REJECTED,
            "decision_reason": decision_reason,
            "decided_by": actor_id,
            "decided_at": datetime.now(timezone.utc),
            "updated_by": actor_id,
        },
        conflict_message="Already decided",
        meta=meta,
    )

    record_audit(
        db,
        entity_type=AuditEntityType.OT,
        entity_id=entry.id,
        action=AuditAction.REJECT,
        actor_id=actor_id,
        diff={
            "before": {"status": OvertimeStatus.PENDING.value},
            "after": {"status": OvertimeStatus.REJECTED.value, "decision_reason": decision_reason},
        },
        meta=meta,
    )
    logger.info("ot_entry_rejected", extra={"entry_id": entry.id, "actor_id": actor_id})
    return entry
