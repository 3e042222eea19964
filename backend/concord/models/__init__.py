"""ORM Models — SQLAlchemy declarative models for the audit tables.

Invariants:
    - All models inherit from Base (db/base.py)
    - All models imported here so Base.metadata is complete for Alembic
"""

from concord.models.invocation_record import InvocationRecord  # noqa: F401
