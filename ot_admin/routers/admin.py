from typing import Any

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from ot_admin.audit import audit_meta_from_request
from ot_admin.db import get_db
from ot_admin.models import AuditLog, DecisionType
from ot_admin.schemas import (
    AuditLogRead,
    DecisionReasonCreate,
    DecisionReasonRead,
    DecisionReasonUpdate,
    DeleteResponse,
    EmployeeCreate,
    EmployeeRead,
    EmployeeUpdate,
    TripleOtDayCreate,
    TripleOtDayRead,
)
from ot_admin.security import AdminPermission, actor_id_from_claims, require_permission
from ot_admin.services.decision_reasons import (
    create_decision_reason,
    delete_decision_reason,
    list_decision_reasons,
    update_decision_reason,
)
from ot_admin.services.employees import (
    create_employee,
    list_employees,
    restore_employee,
    soft_delete_employee,
    update_employee,
)
from ot_admin.services.triple_days import create_triple_day, delete_triple_day, list_triple_days

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get(
    "/triple-ot-days",
    response_model=list[TripleOtDayRead],
    dependencies=[Depends(require_permission(AdminPermission.TRIPLE_OT_READ))],
)
def get_triple_ot_days(db: Session = Depends(get_db)) -> list[TripleOtDayRead]:
    return list_triple_days(db)


@router.post(
    "/triple-ot-days",
    response_model=TripleOtDayRead,
    status_code=status.HTTP_201_CREATED,
)
def post_triple_ot_day(
    payload: TripleOtDayCreate,
    request: Request,
    claims: dict[str, Any] = Depends(require_permission(AdminPermission.TRIPLE_OT_WRITE)),
    db: Session = Depends(get_db),
) -> TripleOtDayRead:
    return create_triple_day(
        db,
        day=payload.date,
        note=payload.note,
        actor_id=actor_id_from_claims(claims),
        meta=audit_meta_from_request(request),
    )


@router.delete("/triple-ot-days/{triple_day_id}", response_model=DeleteResponse)
def remove_triple_ot_day(
    triple_day_id: int,
    request: Request,
    claims: dict[str, Any] = Depends(require_permission(AdminPermission.TRIPLE_OT_WRITE)),
    db: Session = Depends(get_db),
) -> DeleteResponse:
    delete_triple_day(
        db,
        triple_day_id,
        actor_id=actor_id_from_claims(claims),
        meta=audit_meta_from_request(request),
    )
    return DeleteResponse()


@router.get(
    "/decision-reasons",
    response_model=list[DecisionReasonRead],
    dependencies=[Depends(require_permission(AdminPermission.REASONS_READ))],
)
def get_decision_reasons(
    decision_type: DecisionType | None = Query(default=None, alias="type"),
    active: bool | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[DecisionReasonRead]:
    return list_decision_reasons(db, decision_type=decision_type, active=active)


@router.post(
    "/decision-reasons",
    response_model=DecisionReasonRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(AdminPermission.REASONS_WRITE))],
)
def post_decision_reason(payload: DecisionReasonCreate, db: Session = Depends(get_db)) -> DecisionReasonRead:
    return create_decision_reason(db, payload)


@router.patch(
    "/decision-reasons/{reason_id}",
    response_model=DecisionReasonRead,
    dependencies=[Depends(require_permission(AdminPermission.REASONS_WRITE))],
)
def patch_decision_reason(
    reason_id: int,
    payload: DecisionReasonUpdate,
    db: Session = Depends(get_db),
) -> DecisionReasonRead:
    return update_decision_reason(db, reason_id, payload)


@router.delete(
    "/decision-reasons/{reason_id}",
    response_model=DeleteResponse,
    dependencies=[Depends(require_permission(AdminPermission.REASONS_WRITE))],
)
def remove_decision_reason(reason_id: int, db: Session = Depends(get_db)) -> DeleteResponse:
    delete_decision_reason(db, reason_id)
    return DeleteResponse()


@router.get(
    "/employees",
    response_model=list[EmployeeRead],
    dependencies=[Depends(require_permission(AdminPermission.EMPLOYEES_READ))],
)
def get_employees(
    search: str | None = Query(default=None, max_length=255),
    include_deleted: bool = Query(default=False),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[EmployeeRead]:
    return list_employees(db, search=search, include_deleted=include_deleted, offset=offset, limit=limit)


@router.post(
    "/employees",
    response_model=EmployeeRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(AdminPermission.EMPLOYEES_WRITE))],
)
def post_employee(payload: EmployeeCreate, db: Session = Depends(get_db)) -> EmployeeRead:
    return create_employee(db, payload)


@router.patch(
    "/employees/{employee_id}",
    response_model=EmployeeRead,
    dependencies=[Depends(require_permission(AdminPermission.EMPLOYEES_WRITE))],
)
def patch_employee(employee_id: int, payload: EmployeeUpdate, db: Session = Depends(get_db)) -> EmployeeRead:
    return update_employee(db, employee_id, payload)


@router.delete(
    "/employees/{employee_id}",
    response_model=EmployeeRead,
    dependencies=[Depends(require_permission(AdminPermission.EMPLOYEES_WRITE))],
)
def remove_employee(employee_id: int, db: Session = Depends(get_db)) -> EmployeeRead:
    return soft_delete_employee(db, employee_id)


@router.post(
    "/employees/{employee_id}/restore",
    response_model=EmployeeRead,
    dependencies=[Depends(require_permission(AdminPermission.EMPLOYEES_WRITE))],
)
def post_employee_restore(employee_id: int, db: Session = Depends(get_db)) -> EmployeeRead:
    return restore_employee(db, employee_id)


@router.get(
    "/audit-logs",
    response_model=list[AuditLogRead],
    dependencies=[Depends(require_permission(AdminPermission.AUDIT_READ))],
)
def list_audit_logs(
    entity_type: str | None = Query(default=None),
    entity_id: str | None = Query(default=None),
    actor_id: str | None = Query(default=None),
    action: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[AuditLogRead]:
    stmt = select(AuditLog).order_by(AuditLog.id.desc()).limit(limit)
    if entity_type:
        stmt = stmt.where(AuditLog.entity_type == entity_type)
    if entity_id:
        stmt = stmt.where(AuditLog.entity_id == entity_id)
    if actor_id:
        stmt = stmt.where(AuditLog.actor_id == actor_id)
    if action:
        stmt = stmt.where(AuditLog.action == action)
    return list(db.scalars(stmt).all())
