"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("notify_by_email", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("active_profile_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "report_templates",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("category", sa.String(100), nullable=False, server_default="Production"),
        sa.Column("last_modified", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "data_source_profiles",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("server", sa.String(1024), nullable=True),
        sa.Column("database_name", sa.String(255), nullable=True),
        sa.Column("db_user", sa.String(255), nullable=True),
        sa.Column("db_password", sa.String(255), nullable=True),
        sa.Column("mapping_table", sa.String(255), nullable=True),
        sa.Column("mapping_timestamp_column", sa.String(255), nullable=True),
        sa.Column("mapping_entity_column", sa.String(255), nullable=True),
        sa.Column("mapping_parameter_column", sa.String(255), nullable=True),
        sa.Column("mapping_value_column", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_data_source_profiles_user_id", "data_source_profiles", ["user_id"])

    op.create_table(
        "scheduled_tasks",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("template_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("scheduled_time", sa.DateTime(), nullable=False),
        sa.Column(
            "recurrence",
            sa.Enum(
                "none",
                "daily",
                "weekly",
                "monthly",
                name="recurrence",
                native_enum=False,
                length=20,
            ),
            nullable=False,
            server_default="none",
        ),
        sa.Column(
            "status",
            sa.Enum(
                "scheduled",
                "processing",
                "completed",
                "failed",
                name="taskstatus",
                native_enum=False,
                length=20,
            ),
            nullable=False,
            server_default="scheduled",
        ),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("entity_ids", sa.JSON(), nullable=True),
        sa.Column("last_run_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["template_id"], ["report_templates.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_scheduled_tasks_template_id", "scheduled_tasks", ["template_id"])
    op.create_index("ix_scheduled_tasks_user_id", "scheduled_tasks", ["user_id"])
    op.create_index("ix_scheduled_tasks_scheduled_time", "scheduled_tasks", ["scheduled_time"])
    op.create_index("ix_scheduled_tasks_status", "scheduled_tasks", ["status"])

    op.create_table(
        "delivery_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("to", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(500), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_delivery_logs_to", "delivery_logs", ["to"])

    op.create_table(
        "job_runs",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("job_id", sa.String(100), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("finished_at", sa.DateTime(), nullable=False),
        sa.Column("outcome", sa.String(20), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_job_runs_job_id", "job_runs", ["job_id"])


def downgrade() -> None:
    op.drop_index("ix_job_runs_job_id", table_name="job_runs")
    op.drop_table("job_runs")
    op.drop_index("ix_delivery_logs_to", table_name="delivery_logs")
    op.drop_table("delivery_logs")
    op.drop_index("ix_scheduled_tasks_status", table_name="scheduled_tasks")
    op.drop_index("ix_scheduled_tasks_scheduled_time", table_name="scheduled_tasks")
    op.drop_index("ix_scheduled_tasks_user_id", table_name="scheduled_tasks")
    op.drop_index("ix_scheduled_tasks_template_id", table_name="scheduled_tasks")
    op.drop_table("scheduled_tasks")
    op.drop_index("ix_data_source_profiles_user_id", table_name="data_source_profiles")
    op.drop_table("data_source_profiles")
    op.drop_table("report_templates")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
