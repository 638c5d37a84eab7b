"""Split tasks into templates and per-day records.

Revision ID: 20241006_000002
Revises: 20241001_000001
Create Date: 2024-10-06
"""

from __future__ import annotations

import datetime

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20241006_000002"
down_revision = "20241001_000001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "task_templates",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("time_block", sa.String(length=20), nullable=False),
        sa.Column("time", sa.String(length=20), nullable=False),
        sa.Column("category", sa.String(length=20), nullable=False),
        sa.Column("priority", sa.String(length=10), nullable=False, server_default="MEDIUM"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("remote_id", sa.String(length=128), nullable=True),
        sa.Column("sync_state", sa.String(length=20), nullable=False, server_default="local_only"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "daily_task_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("template_id", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("remote_id", sa.String(length=128), nullable=True),
        sa.Column("sync_state", sa.String(length=20), nullable=False, server_default="local_only"),
        sa.ForeignKeyConstraint(["template_id"], ["task_templates.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_daily_task_records_template_id", "daily_task_records", ["template_id"])
    op.create_index("ix_daily_task_records_date", "daily_task_records", ["date"])
    op.create_index(
        "ix_daily_task_records_template_id_date",
        "daily_task_records",
        ["template_id", "date"],
        unique=True,
    )

    # 日本語: 旧 tasks の各行を有効なテンプレートとしてコピー (旧テーブルは残す) / English: Copy legacy rows as active templates, keeping the legacy table
    op.get_bind().execute(
        sa.text(
            "INSERT INTO task_templates "
            "(title, description, time_block, time, category, priority, is_active, created_at, sync_state) "
            "SELECT title, description, time_block, time, category, priority, :is_active, :created_at, :sync_state "
            "FROM tasks"
        ),
        {"is_active": True, "created_at": datetime.datetime.now(), "sync_state": "local_only"},
    )


def downgrade() -> None:
    op.drop_index("ix_daily_task_records_template_id_date", table_name="daily_task_records")
    op.drop_index("ix_daily_task_records_date", table_name="daily_task_records")
    op.drop_index("ix_daily_task_records_template_id", table_name="daily_task_records")
    op.drop_table("daily_task_records")
    op.drop_table("task_templates")
