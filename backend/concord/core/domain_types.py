"""Domain Types — identity types, enums and naming conventions for the engine.

Invariants:
    - InvocationId is a monotonic int assigned by the InvocationLog, never reused
    - A cascade is identified by the InvocationId of its root invocation
    - An output is an error output iff it carries the ERROR_FIELD key
    - Operation kind is decided by name alone (see operation_kind)

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders (cascade reports, logs)
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

InvocationId = NewType("InvocationId", int)
CascadeRoot = NewType("CascadeRoot", int)   # InvocationId of the cascade root
RequestId = NewType("RequestId", str)


# ─── Reserved Names ──────────────────────────────────────────────

ERROR_FIELD = "error"
REQUESTING = "Requesting"


# ─── Enums ───────────────────────────────────────────────────────

class OperationKind(str, Enum):
    """Actions mutate state and drive cascades; queries are read-only."""
    ACTION = "action"
    QUERY = "query"


class CascadeState(str, Enum):
    """Lifecycle of one cascade — reported in CascadeReport.state."""
    PENDING = "pending"
    MATCHING = "matching"
    ENRICHING = "enriching"
    DISPATCHING = "dispatching"
    DRAINED = "drained"
    CANCELLED = "cancelled"


class FaultKind(str, Enum):
    """Where an EngineFault happened."""
    ENRICHMENT = "enrichment"
    BINDING = "binding"
    RESOLUTION = "resolution"
    DISPATCH = "dispatch"


# ─── Naming Convention ───────────────────────────────────────────

QUERY_PREFIXES = ("get_", "list_", "find_")


def operation_kind(name: str) -> OperationKind:
    """Classify an operation name: get_/list_/find_ prefixes are queries."""
    if name.startswith(QUERY_PREFIXES):
        return OperationKind.QUERY
    return OperationKind.ACTION


def is_error_output(output: dict) -> bool:
    return ERROR_FIELD in output
