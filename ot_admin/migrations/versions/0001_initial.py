"""Initial overtime schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-12 09:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ot_status = postgresql.ENUM(
    "PENDING",
    "APPROVED",
    "REJECTED",
    name="ot_status",
    create_type=False,
)
decision_type = postgresql.ENUM(
    "APPROVE",
    "REJECT",
    name="decision_type",
    create_type=False,
)


def upgrade() -> None:
    bind = op.get_bind()
    ot_status.create(bind, checkfirst=True)
    decision_type.create(bind, checkfirst=True)

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("emp_code", sa.String(length=64), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.UniqueConstraint("emp_code", name="uq_employees_emp_code"),
    )
    op.create_index("ix_employees_is_deleted", "employees", ["is_deleted"], unique=False)

    op.create_table(
        "ot_entries",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("work_date", sa.String(length=10), nullable=False),
        sa.Column("shift", sa.String(length=64), nullable=False),
        sa.Column("in_time", sa.String(length=5), nullable=False, server_default=sa.text("''")),
        sa.Column("out_time", sa.String(length=5), nullable=False, server_default=sa.text("''")),
        sa.Column("reason", sa.String(length=1000), nullable=True),
        sa.Column("normal_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("double_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("triple_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_night", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("status", ot_status, nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("approved_normal_minutes", sa.Integer(), nullable=True),
        sa.Column("approved_double_minutes", sa.Integer(), nullable=True),
        sa.Column("approved_triple_minutes", sa.Integer(), nullable=True),
        sa.Column("approved_total_minutes", sa.Integer(), nullable=True),
        sa.Column("is_approved_override", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("decision_reason", sa.String(length=1000), nullable=True),
        sa.Column("decided_by", sa.String(length=255), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        sa.Column("updated_by", sa.String(length=255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint("employee_id", "work_date", name="uq_ot_entries_employee_work_date"),
    )
    op.create_index("ix_ot_entries_employee_id", "ot_entries", ["employee_id"], unique=False)
    op.create_index("ix_ot_entries_work_date", "ot_entries", ["work_date"], unique=False)
    op.create_index("ix_ot_entries_status", "ot_entries", ["status"], unique=False)
    op.create_index("ix_ot_entries_work_date_status", "ot_entries", ["work_date", "status"], unique=False)
    op.create_index("ix_ot_entries_status_created_at", "ot_entries", ["status", "created_at"], unique=False)

    op.create_table(
        "triple_ot_days",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("date", sa.String(length=10), nullable=False),
        sa.Column("note", sa.String(length=500), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.UniqueConstraint("date", name="uq_triple_ot_days_date"),
    )

    op.create_table(
        "decision_reasons",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("type", decision_type, nullable=False),
        sa.Column("label", sa.String(length=255), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("sort", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "ts_utc",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("diff", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("ip", sa.String(length=128), nullable=True),
        sa.Column("user_agent", sa.String(length=1024), nullable=True),
        sa.Column("route", sa.String(length=1024), nullable=True),
    )
    op.create_index("ix_audit_logs_ts_utc", "audit_logs", ["ts_utc"], unique=False)
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"], unique=False)
    op.create_index("ix_audit_logs_actor_ts", "audit_logs", ["actor_id", "ts_utc"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_logs_actor_ts", table_name="audit_logs")
    op.drop_index("ix_audit_logs_entity", table_name="audit_logs")
    op.drop_index("ix_audit_logs_ts_utc", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_table("decision_reasons")
    op.drop_table("triple_ot_days")
    op.drop_index("ix_ot_entries_status_created_at", table_name="ot_entries")
    op.drop_index("ix_ot_entries_work_date_status", table_name="ot_entries")
    op.drop_index("ix_ot_entries_status", table_name="ot_entries")
    op.drop_index("ix_ot_entries_work_date", table_name="ot_entries")
    op.drop_index("ix_ot_entries_employee_id", table_name="ot_entries")
    op.drop_table("ot_entries")
    op.drop_index("ix_employees_is_deleted", table_name="employees")
    op.drop_table("employees")

    bind = op.get_bind()
    decision_type.drop(bind, checkfirst=True)
    ot_status.drop(bind, checkfirst=True)
