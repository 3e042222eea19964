"""Service Layer — the async shell around the pure engine core.

Invariants:
    - Services own every await: component calls, enrichment, persistence
    - Services never reach into component state; they call registered operations
"""
