"""Core Layer — pure engine data model and matching, no IO, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - Matching is pure and deterministic for a given log state

Design Decisions:
    - Functional core (patterns, frames, log, matcher) separated from the async
      shell that awaits components (services/)
"""
