"""Infrastructure Layer — database access and cross-cutting observability.

Invariants:
    - Infrastructure depends only on core error types, never on services/ or api/
    - Database failures are mapped to DatabaseError (core/errors.py)
"""
