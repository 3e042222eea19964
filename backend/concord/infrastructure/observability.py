"""Structured Logging — JSON formatter, setup, and the engine fault sink.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - Extra fields (rule, invocation_id, cascade_root, ...) surfaced when present
    - Every EngineFault / CycleDetectedError reaches the FaultSink exactly once

Design Decisions:
    - JSONFormatter over third-party libs: zero dependencies, full control
    - setup_logging called once on startup via lifespan
    - LoggingFaultSink is the default sink: faults become ERROR records with
      the fault's structured context
"""

import logging
import json
from datetime import datetime, timezone

from concord.core.errors import ConcordError

_EXTRA_FIELDS = (
    "rule", "invocation_id", "cascade_root", "depth", "error_code",
    "component", "operation", "path", "fault_kind",
)


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json"):
    """Configure logging for the application."""
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s — %(message)s",
        ))
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))


class LoggingFaultSink:
    """FaultSink that writes each fault as a structured ERROR record."""

    def __init__(self, logger: logging.Logger | None = None):
        self._logger = logger or logging.getLogger("concord.faults")

    def report(self, fault: ConcordError) -> None:
        extra = fault.log_extra()
        kind = getattr(fault, "kind", None)
        if kind is not None:
            extra["fault_kind"] = kind.value
        cause = getattr(fault, "cause", None)
        self._logger.error(
            "%s: %s", fault.code, fault.message, extra=extra,
            exc_info=(type(cause), cause, cause.__traceback__) if cause else None,
        )
