from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from ot_admin.errors import NotFoundError
from ot_admin.models import DecisionReason, DecisionType
from ot_admin.schemas import DecisionReasonCreate, DecisionReasonUpdate


def _get_reason(db: Session, reason_id: int) -> DecisionReason:
    reason = db.get(DecisionReason, reason_id)
    if reason is None:
        raise NotFoundError("Decision reason not found")
    return reason


def list_decision_reasons(
    db: Session,
    *,
    decision_type: DecisionType | None = None,
    active: bool | None = None,
) -> list[DecisionReason]:
    stmt = select(DecisionReason).order_by(DecisionReason.sort.asc(), DecisionReason.label.asc())
    if decision_type is not None:
        stmt = stmt.where(DecisionReason.type == decision_type)
    if active is not None:
        stmt = stmt.where(DecisionReason.active.is_(active))
    return list(db.scalars(stmt).all())


def create_decision_reason(db: Session, payload: DecisionReasonCreate) -> DecisionReason:
    reason = DecisionReason(
        type=payload.type,
        label=payload.label.strip(),
        active=payload.active,
        sort=payload.sort,
    )
    db.add(reason)
    db.commit()
    db.refresh(reason)
    return reason


def update_decision_reason(db: Session, reason_id: int, payload: DecisionReasonUpdate) -> DecisionReason:
    reason = _get_reason(db, reason_id)
    if payload.label is not None:
        reason.label = payload.label.strip()
    if payload.active is not None:
        reason.active = payload.active
    if payload.sort is not None:
        reason.sort = payload.sort
    db.commit()
    db.refresh(reason)
    return reason


def delete_decision_reason(db: Session, reason_id: int) -> None:
    reason = _get_reason(db, reason_id)
    db.delete(reason)
    db.commit()
