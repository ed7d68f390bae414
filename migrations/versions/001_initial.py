"""Create cron, execution and lock tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "crons",
        sa.Column("name", sa.String(64), primary_key=True),
        sa.Column("description", JSONB(), nullable=False),
        sa.Column("rule_arn", sa.Text(), nullable=False, server_default=""),
        sa.Column("task_definition_family", sa.String(255), nullable=False, server_default=""),
        sa.Column("latest_task_definition_arn", sa.Text(), nullable=False, server_default=""),
        sa.Column("monitor_id", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_crons_rule_arn", "crons", ["rule_arn"])

    op.create_table(
        "executions",
        sa.Column("cron_name", sa.String(64), primary_key=True),
        sa.Column("task_id", sa.String(64), primary_key=True),
        sa.Column("task_arn", sa.Text(), nullable=False),
        sa.Column("raw_status", sa.String(32), nullable=False),
        sa.Column("version", sa.BigInteger(), nullable=False),
        sa.Column("expiry_time", sa.BigInteger(), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("user_exit_code", sa.Integer(), nullable=True),
        sa.Column("timeout_exit_code", sa.Integer(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
    )
    op.create_index("idx_executions_cron_start", "executions", ["cron_name", "start_time"])
    op.create_index("idx_executions_task_id", "executions", ["task_id"])
    op.create_index("idx_executions_expiry_time", "executions", ["expiry_time"])

    op.create_table(
        "locks",
        sa.Column("name", sa.String(255), primary_key=True),
        sa.Column("expiry", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("locks")
    op.drop_index("idx_executions_expiry_time", table_name="executions")
    op.drop_index("idx_executions_task_id", table_name="executions")
    op.drop_index("idx_executions_cron_start", table_name="executions")
    op.drop_table("executions")
    op.drop_index("idx_crons_rule_arn", table_name="crons")
    op.drop_table("crons")
