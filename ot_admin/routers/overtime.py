from typing import Any, Literal

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from ot_admin.audit import audit_meta_from_request
from ot_admin.db import get_db
from ot_admin.models import OvertimeStatus
from ot_admin.schemas import (
    DayStatsRead,
    OvertimeApproveRequest,
    OvertimeBulkCreateRequest,
    OvertimeBulkCreateResult,
    OvertimeEntryPage,
    OvertimeEntryRead,
    OvertimeEntryResponse,
    OvertimeEntryUpdateRequest,
    OvertimeRejectRequest,
    PendingCountRead,
    PendingNotificationsRead,
    RangeStatsRead,
    SummaryRead,
)
from ot_admin.security import AdminPermission, actor_id_from_claims, require_permission
from ot_admin.services import ot_stats
from ot_admin.services.ot_intake import create_bulk
from ot_admin.services.ot_lifecycle import approve_entry, reject_entry, update_entry
from ot_admin.services.ot_listing import list_entries, pending_count, pending_notifications

router = APIRouter(prefix="/api/ot", tags=["overtime"])


@router.get(
    "",
    response_model=OvertimeEntryPage,
    dependencies=[Depends(require_permission(AdminPermission.OT_READ))],
)
def list_overtime_entries(
    date_from: str | None = Query(default=None, alias="from"),
    date_to: str | None = Query(default=None, alias="to"),
    entry_status: OvertimeStatus | None = Query(default=None, alias="status"),
    employee_id: int | None = Query(default=None, ge=1),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
) -> OvertimeEntryPage:
    return list_entries(
        db,
        date_from=date_from,
        date_to=date_to,
        status=entry_status,
        employee_id=employee_id,
        page=page,
        limit=limit,
    )


@router.get(
    "/notifications/count",
    response_model=PendingCountRead,
    dependencies=[Depends(require_permission(AdminPermission.OT_APPROVE))],
)
def get_pending_count(db: Session = Depends(get_db)) -> PendingCountRead:
    return pending_count(db)


@router.get(
    "/notifications/pending",
    response_model=PendingNotificationsRead,
    dependencies=[Depends(require_permission(AdminPermission.OT_APPROVE))],
)
def get_pending_notifications(
    limit: int = Query(default=8, ge=1, le=20),
    db: Session = Depends(get_db),
) -> PendingNotificationsRead:
    return pending_notifications(db, limit=limit)


@router.post(
    "/bulk",
    response_model=OvertimeBulkCreateResult,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def bulk_create_overtime(
    payload: OvertimeBulkCreateRequest,
    request: Request,
    response: Response,
    claims: dict[str, Any] = Depends(require_permission(AdminPermission.OT_CREATE)),
    db: Session = Depends(get_db),
) -> OvertimeBulkCreateResult:
    result = create_bulk(
        db,
        work_date=payload.work_date,
        rows=payload.rows,
        actor_id=actor_id_from_claims(claims),
        meta=audit_meta_from_request(request),
    )
    if result.duplicates:
        response.status_code = status.HTTP_207_MULTI_STATUS
    return result


@router.patch("/{entry_id}", response_model=OvertimeEntryResponse)
def patch_overtime_entry(
    entry_id: int,
    payload: OvertimeEntryUpdateRequest,
    request: Request,
    claims: dict[str, Any] = Depends(require_permission(AdminPermission.OT_UPDATE)),
    db: Session = Depends(get_db),
) -> OvertimeEntryResponse:
    entry = update_entry(
        db,
        entry_id,
        payload,
        actor_id=actor_id_from_claims(claims),
        meta=audit_meta_from_request(request),
    )
    return OvertimeEntryResponse(item=OvertimeEntryRead.model_validate(entry))


@router.patch("/{entry_id}/approve", response_model=OvertimeEntryResponse)
def approve_overtime_entry(
    entry_id: int,
    payload: OvertimeApproveRequest,
    request: Request,
    claims: dict[str, Any] = Depends(require_permission(AdminPermission.OT_APPROVE)),
    db: Session = Depends(get_db),
) -> OvertimeEntryResponse:
    entry = approve_entry(
        db,
        entry_id,
        actor_id=actor_id_from_claims(claims),
        reason=payload.reason,
        approved_normal_minutes=payload.approved_normal_minutes,
        approved_double_minutes=payload.approved_double_minutes,
        approved_triple_minutes=payload.approved_triple_minutes,
        meta=audit_meta_from_request(request),
    )
    return OvertimeEntryResponse(item=OvertimeEntryRead.model_validate(entry))


@router.patch("/{entry_id}/reject", response_model=OvertimeEntryResponse)
def reject_overtime_entry(
    entry_id: int,
    payload: OvertimeRejectRequest,
    request: Request,
    claims: dict[str, Any] = Depends(require_permission(AdminPermission.OT_REJECT)),
    db: Session = Depends(get_db),
) -> OvertimeEntryResponse:
    entry = reject_entry(
        db,
        entry_id,
        actor_id=actor_id_from_claims(claims),
        reason=payload.reason,
        meta=audit_meta_from_request(request),
    )
    return OvertimeEntryResponse(item=OvertimeEntryRead.model_validate(entry))


@router.get(
    "/stats/day",
    response_model=DayStatsRead,
    dependencies=[Depends(require_permission(AdminPermission.OT_STATS_READ))],
)
def get_day_stats(
    work_date: str = Query(alias="date"),
    db: Session = Depends(get_db),
) -> DayStatsRead:
    return ot_stats.day_stats(db, work_date)


@router.get(
    "/stats/week",
    response_model=RangeStatsRead,
    dependencies=[Depends(require_permission(AdminPermission.OT_STATS_READ))],
)
def get_range_stats(
    date_from: str = Query(alias="from"),
    date_to: str = Query(alias="to"),
    db: Session = Depends(get_db),
) -> RangeStatsRead:
    return RangeStatsRead(items=ot_stats.range_stats(db, date_from, date_to))


@router.get(
    "/stats/summary",
    response_model=SummaryRead,
    dependencies=[Depends(require_permission(AdminPermission.OT_STATS_READ))],
)
def get_summary(
    scope: Literal["daily", "weekly", "monthly", "yearly"] = Query(default="daily"),
    anchor: str | None = Query(default=None),
    date_from: str | None = Query(default=None, alias="from"),
    date_to: str | None = Query(default=None, alias="to"),
    db: Session = Depends(get_db),
) -> SummaryRead:
    return ot_stats.summary(db, scope, anchor=anchor, date_from=date_from, date_to=date_to)
