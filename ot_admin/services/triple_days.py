from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ot_admin.audit import AuditMeta, record_audit
from ot_admin.errors import ConflictError, NotFoundError
from ot_admin.models import AuditAction, AuditEntityType, TripleOtDay


def is_triple_day(db: Session, work_date: str) -> bool:
    return db.scalar(select(TripleOtDay.id).where(TripleOtDay.date == work_date).limit(1)) is not None


def list_triple_days(db: Session) -> list[TripleOtDay]:
    return list(db.scalars(select(TripleOtDay).order_by(TripleOtDay.date.asc())).all())


def create_triple_day(
    db: Session,
    *,
    day: str,
    note: str | None,
    actor_id: str,
    meta: AuditMeta | None = None,
) -> TripleOtDay:
    triple_day = TripleOtDay(date=day, note=(note or "").strip() or None)
    db.add(triple_day)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"{day} is already a triple OT day")
    db.refresh(triple_day)

    record_audit(
        db,
        entity_type=AuditEntityType.TRIPLE_OT_DAY,
        entity_id=triple_day.id,
        action=AuditAction.CREATE,
        actor_id=actor_id,
        diff={"after": {"date": triple_day.date, "note": triple_day.note}},
        meta=meta,
    )
    return triple_day


def delete_triple_day(
    db: Session,
    triple_day_id: int,
    *,
    actor_id: str,
    meta: AuditMeta | None = None,
) -> None:
    triple_day = db.get(TripleOtDay, triple_day_id)
    if triple_day is None:
        raise NotFoundError("Triple OT day not found")

    before = {"date": triple_day.date, "note": triple_day.note}
    db.delete(triple_day)
    db.commit()

    record_audit(
        db,
        entity_type=AuditEntityType.TRIPLE_OT_DAY,
        entity_id=triple_day_id,
        action=AuditAction.DELETE,
        actor_id=actor_id,
        diff={"before": before},
        meta=meta,
    )
