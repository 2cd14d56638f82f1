"""Create flow, task, subtask and execution record tables

Revision ID: create_flow_tables
Revises: 
Create Date: 2026-10-18

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "create_flow_tables"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

UNIT_STATUS = ("created", "running", "finished", "failed")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _attribution() -> list[sa.Column]:
    return [
        sa.Column("flow_id", sa.Integer(), sa.ForeignKey("flows.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("task_id", sa.Integer(), sa.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=True),
        sa.Column("subtask_id", sa.Integer(), sa.ForeignKey("subtasks.id", ondelete="CASCADE"), nullable=True),
    ]


def upgrade() -> None:
    """Create flow hierarchy and execution record tables."""
    op.create_table(
        "flows",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False, index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("status", sa.Enum(*UNIT_STATUS, name="unit_status", native_enum=False), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "tasks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("flow_id", sa.Integer(), sa.ForeignKey("flows.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("input", sa.Text(), nullable=False),
        sa.Column("status", sa.Enum(*UNIT_STATUS, name="unit_status", native_enum=False), nullable=False),
        sa.Column("result", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "subtasks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("task_id", sa.Integer(), sa.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("msg_chain_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", sa.Enum(*UNIT_STATUS, name="unit_status", native_enum=False), nullable=False),
        sa.Column("result", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "term_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *_attribution(),
        sa.Column("stream", sa.Enum("stdin", "stdout", "stderr", name="term_stream", native_enum=False), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "msg_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *_attribution(),
        sa.Column(
            "kind",
            sa.Enum("thoughts", "tool_call", "answer", "error", name="msg_log_kind", native_enum=False),
            nullable=False,
        ),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("result", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "screenshots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *_attribution(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        *_timestamps(),
    )


def downgrade() -> None:
    """Drop flow hierarchy and execution record tables."""
    for table in ("screenshots", "msg_logs", "term_logs", "subtasks", "tasks", "flows"):
        op.drop_table(table)
