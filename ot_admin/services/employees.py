from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ot_admin.errors import ConflictError, NotFoundError
from ot_admin.models import Employee
from ot_admin.schemas import EmployeeCreate, EmployeeUpdate


def _normalize_email(raw: str | None) -> str | None:
    value = (raw or "").strip().lower()
    return value or None


def _get_employee(db: Session, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError("Employee not found")
    return employee


def ensure_active_employees(db: Session, employee_ids: Iterable[int]) -> None:
    wanted = set(employee_ids)
    if not wanted:
        return
    found = set(
        db.scalars(
            select(Employee.id).where(
                Employee.id.in_(wanted),
                Employee.is_deleted.is_(False),
            )
        ).all()
    )
    missing = sorted(wanted - found)
    if missing:
        raise NotFoundError(f"Unknown or deleted employee ids: {', '.join(str(item) for item in missing)}")


def list_employees(
    db: Session,
    *,
    search: str | None = None,
    include_deleted: bool = False,
    offset: int = 0,
    limit: int = 100,
) -> list[Employee]:
    stmt = select(Employee).order_by(Employee.created_at.desc(), Employee.id.desc())
    if not include_deleted:
        stmt = stmt.where(Employee.is_deleted.is_(False))
    term = (search or "").strip().lower()
    if term:
        pattern = f"%{term}%"
        stmt = stmt.where(
            or_(
                func.lower(Employee.emp_code).like(pattern),
                func.lower(Employee.full_name).like(pattern),
            )
        )
    return list(db.scalars(stmt.offset(offset).limit(limit)).all())


def create_employee(db: Session, payload: EmployeeCreate) -> Employee:
    employee = Employee(
        emp_code=payload.emp_code.strip(),
        full_name=payload.full_name.strip(),
        email=_normalize_email(payload.email),
    )
    db.add(employee)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("emp_code already exists")
    db.refresh(employee)
    return employee


def update_employee(db: Session, employee_id: int, payload: EmployeeUpdate) -> Employee:
    employee = _get_employee(db, employee_id)
    if employee.is_deleted:
        raise ConflictError("Employee is deleted. Restore first.")
    if payload.full_name is not None:
        employee.full_name = payload.full_name.strip()
    if "email" in payload.model_fields_set:
        employee.email = _normalize_email(payload.email)
    db.commit()
    db.refresh(employee)
    return employee


def soft_delete_employee(db: Session, employee_id: int) -> Employee:
    employee = _get_employee(db, employee_id)
    employee.is_deleted = True
    employee.deleted_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(employee)
    return employee


def restore_employee(db: Session, employee_id: int) -> Employee:
    employee = _get_employee(db, employee_id)
    employee.is_deleted = False
    employee.deleted_at = None
    db.commit()
    db.refresh(employee)
    return employee
