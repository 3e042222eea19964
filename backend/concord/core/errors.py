"""Error Hierarchy — typed, categorized exceptions for engine failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Operation failures are NEVER exceptions: components return {"error": ...}
      and the engine logs them as ordinary invocations
    - EngineFault is scoped to one rule/frame: it is reported, never re-raised
      across the cascade
    - to_response() produces the REST envelope; no internal details leaked

Design Decisions:
    - Single hierarchy with ConcordError base: FastAPI global handler catches all
    - ErrorContext as dataclass: rich observability without coupling to logging
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone

from concord.core.domain_types import FaultKind


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    ENGINE = "engine"
    INTERNAL = "internal"
    TIMEOUT = "timeout"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    rule: str | None = None
    invocation_id: int | None = None
    cascade_root: int | None = None
    depth: int | None = None
    path: str | None = None
    debug_info: dict[str, Any] | None = None


class ConcordError(Exception):
    """Base exception for all Concord errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "rule": self.context.rule,
                    "invocation_id": self.context.invocation_id,
                    "cascade_root": self.context.cascade_root,
                    "path": self.context.path,
                },
            }
        }

    def log_extra(self) -> dict:
        """Structured logging fields (see infrastructure/observability.py)."""
        return {
            "error_code": self.code,
            "rule": self.context.rule,
            "invocation_id": self.context.invocation_id,
            "cascade_root": self.context.cascade_root,
            "depth": self.context.depth,
        }


# ─── Definition Errors (raised at startup) ──────────────────────

class RuleDefinitionError(ConcordError):
    """A rule is malformed (empty when-clause, query target, bad pattern)."""
    def __init__(self, rule: str, reason: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.rule = rule
        super().__init__(
            f"Invalid rule '{rule}': {reason}",
            "RULE_DEFINITION_ERROR", ErrorCategory.CONFIGURATION,
            ErrorSeverity.CRITICAL, ctx, 500,
        )
        self.reason = reason


class RegistryFrozenError(ConcordError):
    """Registration attempted after the registry was frozen."""
    def __init__(self, registry: str, context: ErrorContext | None = None):
        super().__init__(
            f"{registry} is frozen; register everything at startup",
            "REGISTRY_FROZEN", ErrorCategory.CONFIGURATION,
            ErrorSeverity.CRITICAL, context, 500,
        )


class UnknownOperationError(ConcordError):
    """Component or operation is not registered."""
    def __init__(
        self, component: str, operation: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Operation '{component}.{operation}' not found",
            "UNKNOWN_OPERATION", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.component = component
        self.operation = operation


class InvalidInvocationError(ConcordError):
    """A query was used where only actions are allowed."""
    def __init__(self, operation: str, reason: str, context: ErrorContext | None = None):
        super().__init__(
            f"Cannot invoke '{operation}': {reason}",
            "INVALID_INVOCATION", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.operation = operation


class BindingConflictError(ConcordError):
    """A frame variable would be rebound to a different value."""
    def __init__(
        self, variable: str, bound: Any, attempted: Any,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Variable '{variable}' already bound to {bound!r}, "
            f"cannot rebind to {attempted!r}",
            "BINDING_CONFLICT", ErrorCategory.ENGINE,
            ErrorSeverity.ERROR, context, 500,
        )
        self.variable = variable


# ─── Engine Errors (reported to the FaultSink) ──────────────────

class EngineFault(ConcordError):
    """Unexpected fault inside enrichment or dispatch, scoped to one rule/frame."""
    def __init__(
        self,
        message: str,
        kind: FaultKind,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(
            message, "ENGINE_FAULT", ErrorCategory.ENGINE,
            ErrorSeverity.ERROR, context, 500,
        )
        self.kind = kind
        self.cause = cause


class CycleDetectedError(ConcordError):
    """Cascade depth exceeded — fatal for the offending branch only."""
    def __init__(self, max_depth: int, context: ErrorContext | None = None):
        super().__init__(
            f"Cascade exceeded maximum depth ({max_depth})",
            "CYCLE_DETECTED", ErrorCategory.ENGINE,
            ErrorSeverity.CRITICAL, context, 500,
        )
        self.max_depth = max_depth


# ─── Boundary Errors (HTTP) ─────────────────────────────────────

class ResourceNotFoundError(ConcordError):
    """Requested resource does not exist (or is no longer retained)."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


class RequestTimeoutError(ConcordError):
    """No rule responded to a request within the configured timeout."""
    def __init__(self, timeout_seconds: float, context: ErrorContext | None = None):
        super().__init__(
            f"Request was not answered within {timeout_seconds}s",
            "REQUEST_TIMEOUT", ErrorCategory.TIMEOUT,
            ErrorSeverity.WARNING, context, 504,
        )
        self.timeout_seconds = timeout_seconds


class DatabaseError(ConcordError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
