"""InvocationRecord ORM — audit table for invocations of drained cascades.

Invariants:
    - One row per (run_id, invocation_id); invocation ids restart per process,
      run_id tells processes apart
    - Rows are written only after their cascade drained, never updated

Design Decisions:
    - Logging table, not enforcement: the engine never reads it back
    - JSON columns for input/output/caused_by: operation signatures vary
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON, Boolean, DateTime, Integer, String, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from concord.db.base import Base


class InvocationRecord(Base):
    """Audit entry for one logged invocation."""
    __tablename__ = "invocation_records"
    __table_args__ = (
        UniqueConstraint("run_id", "invocation_id", name="uq_invocation_run"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    invocation_id: Mapped[int] = mapped_column(Integer, nullable=False)
    cascade_root: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    depth: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    component: Mapped[str] = mapped_column(String(100), nullable=False)
    operation: Mapped[str] = mapped_column(String(100), nullable=False)
    input: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    output: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    caused_by: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_error: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
