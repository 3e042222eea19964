"""API Layer — FastAPI routes, passthrough policy and error handlers.

Invariants:
    - Routes registered explicitly in main.py (no auto-discovery)
    - Routes are thin: requests become engine invocations or direct queries
"""
