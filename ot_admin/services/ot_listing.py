from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from ot_admin.errors import ValidationError
from ot_admin.models import OvertimeEntry, OvertimeStatus
from ot_admin.schemas import (
    EmployeeSummaryRead,
    OvertimeEntryPage,
    OvertimeEntryRead,
    PendingCountRead,
    PendingNotificationItem,
    PendingNotificationsRead,
)
from ot_admin.services.ot_stats import parse_date_key

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100
DEFAULT_NOTIFICATION_LIMIT = 8
MAX_NOTIFICATION_LIMIT = 20


def normalize_pagination(page: int | None, limit: int | None) -> tuple[int, int, int]:
    safe_page = max(1, page or 1)
    safe_limit = min(MAX_PAGE_LIMIT, max(1, limit or DEFAULT_PAGE_LIMIT))
    return safe_page, safe_limit, (safe_page - 1) * safe_limit


def list_entries(
    db: Session,
    *,
    date_from: str | None = None,
    date_to: str | None = None,
    status: OvertimeStatus | None = None,
    employee_id: int | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> OvertimeEntryPage:
    safe_page, safe_limit, offset = normalize_pagination(page, limit)
    start = parse_date_key(date_from, field="from") if date_from else None
    end = parse_date_key(date_to, field="to") if date_to else None
    if start is not None and end is not None and start > end:
        raise ValidationError("from must not be after to")

    conditions = []
    if employee_id is not None:
        conditions.append(OvertimeEntry.employee_id == employee_id)
    if status is not None:
        conditions.append(OvertimeEntry.status == status)
    if date_from:
        conditions.append(OvertimeEntry.work_date >= date_from)
    if date_to:
        conditions.append(OvertimeEntry.work_date <= date_to)

    total = db.scalar(select(func.count(OvertimeEntry.id)).where(*conditions)) or 0
    items = db.scalars(
        select(OvertimeEntry)
        .options(selectinload(OvertimeEntry.employee))
        .where(*conditions)
        .order_by(OvertimeEntry.work_date.desc(), OvertimeEntry.created_at.desc(), OvertimeEntry.id.desc())
        .offset(offset)
        .limit(safe_limit)
    ).all()

    return OvertimeEntryPage(
        page=safe_page,
        limit=safe_limit,
        total=int(total),
        items=[OvertimeEntryRead.model_validate(item) for item in items],
    )


def pending_count(db: Session) -> PendingCountRead:
    count = db.scalar(
        select(func.count(OvertimeEntry.id)).where(OvertimeEntry.status == OvertimeStatus.PENDING)
    )
    return PendingCountRead(pending=int(count or 0))


def pending_notifications(db: Session, *, limit: int = DEFAULT_NOTIFICATION_LIMIT) -> PendingNotificationsRead:
    safe_limit = min(MAX_NOTIFICATION_LIMIT, max(1, limit))
    latest = db.scalars(
        select(OvertimeEntry)
        .options(selectinload(OvertimeEntry.employee))
        .where(OvertimeEntry.status == OvertimeStatus.PENDING)
        .order_by(OvertimeEntry.created_at.desc(), OvertimeEntry.id.desc())
        .limit(safe_limit)
    ).all()

    items = [
        PendingNotificationItem(
            id=entry.id,
            created_at=entry.created_at,
            work_date=entry.work_date,
            shift=entry.shift,
            in_time=entry.in_time,
            out_time=entry.out_time,
            employee=EmployeeSummaryRead.model_validate(entry.employee) if entry.employee else None,
        )
        for entry in latest
    ]
    return PendingNotificationsRead(pending_count=pending_count(db).pending, items=items)
