"""Invocation audit log — invocation_records.

Revision ID: 001_invocation_log
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_invocation_log"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "invocation_records",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("run_id", sa.String(32), nullable=False),
        sa.Column("invocation_id", sa.Integer, nullable=False),
        sa.Column("cascade_root", sa.Integer, nullable=False),
        sa.Column("depth", sa.Integer, nullable=False, server_default="0"),
        sa.Column("component", sa.String(100), nullable=False),
        sa.Column("operation", sa.String(100), nullable=False),
        sa.Column("input", sa.JSON, nullable=False),
        sa.Column("output", sa.JSON, nullable=False),
        sa.Column("caused_by", sa.JSON, nullable=False),
        sa.Column("is_error", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("run_id", "invocation_id", name="uq_invocation_run"),
    )
    op.create_index("ix_invocation_records_run_id", "invocation_records", ["run_id"])
    op.create_index("ix_invocation_records_cascade_root", "invocation_records", ["cascade_root"])


def downgrade() -> None:
    op.drop_index("ix_invocation_records_cascade_root", table_name="invocation_records")
    op.drop_index("ix_invocation_records_run_id", table_name="invocation_records")
    op.drop_table("invocation_records")
