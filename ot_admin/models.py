from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    false,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ot_admin.db import Base

NO_SHIFT = "NO_SHIFT"

JsonDocument = JSON().with_variant(JSONB(), "postgresql")


class OvertimeStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class AuditAction(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    DELETE = "DELETE"


class AuditEntityType(str, enum.Enum):
    OT = "OT"
    TRIPLE_OT_DAY = "TRIPLE_OT_DAY"


class DecisionType(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    emp_code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false(), index=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    overtime_entries: Mapped[list[OvertimeEntry]] = relationship(back_populates="employee")


class OvertimeEntry(Base):
    __tablename__ = "ot_entries"
    __table_args__ = (
        UniqueConstraint("employee_id", "work_date", name="uq_ot_entries_employee_work_date"),
        Index("ix_ot_entries_work_date_status", "work_date", "status"),
        Index("ix_ot_entries_status_created_at", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    # YYYY-MM-DD; fixed width so lexical order equals calendar order.
    work_date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    shift: Mapped[str] = mapped_column(String(64), nullable=False)
    in_time: Mapped[str] = mapped_column(String(5), nullable=False, default="")
    out_time: Mapped[str] = mapped_column(String(5), nullable=False, default="")
    reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    normal_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    double_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    triple_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_night: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())

    status: Mapped[OvertimeStatus] = mapped_column(
        Enum(OvertimeStatus, name="ot_status"),
        nullable=False,
        default=OvertimeStatus.PENDING,
        index=True,
    )
    approved_normal_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    approved_double_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    approved_triple_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    approved_total_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_approved_override: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    decision_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    decided_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    updated_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=_utcnow,
    )

    employee: Mapped[Employee] = relationship(back_populates="overtime_entries")


class TripleOtDay(Base):
    __tablename__ = "triple_ot_days"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    date: Mapped[str] = mapped_column(String(10), nullable=False, unique=True)
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )


class DecisionReason(Base):
    __tablename__ = "decision_reasons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    type: Mapped[DecisionType] = mapped_column(Enum(DecisionType, name="decision_type"), nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )


class AuditLog(Base):
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
        Index("ix_audit_logs_actor_ts", "actor_id", "ts_utc"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ts_utc: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        index=True,
    )
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    diff: Mapped[dict[str, Any] | None] = mapped_column(JsonDocument, nullable=True)
    ip: Mapped[str | None] = mapped_column(String(128), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    route: Mapped[str | None] = mapped_column(String(1024), nullable=True)
