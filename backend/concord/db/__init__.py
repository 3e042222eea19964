"""Database Layer — SQLAlchemy declarative Base for the audit tables.

Invariants:
    - Only the invocation audit lives in SQL; the live log is in memory
"""
