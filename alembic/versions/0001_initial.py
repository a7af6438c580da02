"""Initial Clockpay schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


role_enum = postgresql.ENUM("OWNER", "WORKER", name="role", create_type=False)
session_status_enum = postgresql.ENUM("ACTIVE", "PAUSED", "DONE", name="session_status", create_type=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        role_enum.create(bind, checkfirst=True)
        session_status_enum.create(bind, checkfirst=True)
        role_type = role_enum
        status_type = session_status_enum
    else:
        role_type = sa.Enum("OWNER", "WORKER", name="role")
        status_type = sa.Enum("ACTIVE", "PAUSED", "DONE", name="session_status")

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("role", role_type, nullable=False, server_default="WORKER"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("cumulative_hours", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("cumulative_wage", sa.Numeric(16, 2), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"], unique=False)
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_role", "users", ["role"], unique=False)

    op.create_table(
        "global_policy",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("hourly_rate", sa.Numeric(14, 2), nullable=False),
        sa.Column("auto_pause_minutes", sa.Integer(), nullable=False),
        sa.Column("auto_pause_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_global_policy_id", "global_policy", ["id"], unique=False)

    op.create_table(
        "worker_overrides",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "username",
            sa.String(length=100),
            sa.ForeignKey("users.username", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("hourly_rate", sa.Numeric(14, 2), nullable=True),
        sa.Column("auto_pause_minutes", sa.Integer(), nullable=True),
        sa.Column("auto_pause_enabled", sa.Boolean(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_worker_overrides_id", "worker_overrides", ["id"], unique=False)
    op.create_index("ix_worker_overrides_username", "worker_overrides", ["username"], unique=True)

    op.create_table(
        "work_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "username",
            sa.String(length=100),
            sa.ForeignKey("users.username", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("calendar_day", sa.Date(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("accrued_hours", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("status", status_type, nullable=False, server_default="ACTIVE"),
        *_timestamps(),
    )
    op.create_index("ix_work_sessions_id", "work_sessions", ["id"], unique=False)
    op.create_index("ix_work_sessions_username", "work_sessions", ["username"], unique=False)
    op.create_index("ix_work_sessions_calendar_day", "work_sessions", ["calendar_day"], unique=False)
    op.create_index("ix_work_sessions_status", "work_sessions", ["status"], unique=False)
    op.create_index(
        "ix_work_sessions_username_started_at",
        "work_sessions",
        ["username", "started_at"],
        unique=False,
    )
    op.create_index(
        "uq_work_sessions_open_per_worker",
        "work_sessions",
        ["username"],
        unique=True,
        postgresql_where=sa.text("ended_at IS NULL"),
        sqlite_where=sa.text("ended_at IS NULL"),
    )

    op.create_table(
        "salary_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "username",
            sa.String(length=100),
            sa.ForeignKey("users.username", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        *_timestamps(),
    )
    op.create_index("ix_salary_payments_id", "salary_payments", ["id"], unique=False)
    op.create_index("ix_salary_payments_username", "salary_payments", ["username"], unique=False)
    op.create_index("ix_salary_payments_paid_at", "salary_payments", ["paid_at"], unique=False)

    op.create_table(
        "job_leases",
        sa.Column("name", sa.String(length=64), primary_key=True),
        sa.Column("holder", sa.String(length=128), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("job_leases")

    op.drop_index("ix_salary_payments_paid_at", table_name="salary_payments")
    op.drop_index("ix_salary_payments_username", table_name="salary_payments")
    op.drop_index("ix_salary_payments_id", table_name="salary_payments")
    op.drop_table("salary_payments")

    op.drop_index("uq_work_sessions_open_per_worker", table_name="work_sessions")
    op.drop_index("ix_work_sessions_username_started_at", table_name="work_sessions")
    op.drop_index("ix_work_sessions_status", table_name="work_sessions")
    op.drop_index("ix_work_sessions_calendar_day", table_name="work_sessions")
    op.drop_index("ix_work_sessions_username", table_name="work_sessions")
    op.drop_index("ix_work_sessions_id", table_name="work_sessions")
    op.drop_table("work_sessions")

    op.drop_index("ix_worker_overrides_username", table_name="worker_overrides")
    op.drop_index("ix_worker_overrides_id", table_name="worker_overrides")
    op.drop_table("worker_overrides")

    op.drop_index("ix_global_policy_id", table_name="global_policy")
    op.drop_table("global_policy")

    op.drop_index("ix_users_role", table_name="users")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_index("ix_users_id", table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        session_status_enum.drop(bind, checkfirst=True)
        role_enum.drop(bind, checkfirst=True)
