"""Observability tests — JSON log records and the logging fault sink."""

import json
import logging

from concord.core.domain_types import FaultKind
from concord.core.errors import EngineFault, ErrorContext
from concord.infrastructure.observability import JSONFormatter, LoggingFaultSink


def _record(**extra):
    record = logging.LogRecord("concord.test", logging.INFO, __file__, 1, "hello %s", ("x",), None)
    record.__dict__.update(extra)
    return record


def test_json_formatter_includes_structured_extras():
    payload = json.loads(JSONFormatter().format(_record(rule="welcome", cascade_root=3)))
    assert payload["message"] == "hello x"
    assert payload["level"] == "INFO"
    assert payload["rule"] == "welcome"
    assert payload["cascade_root"] == 3
    assert "invocation_id" not in payload


def test_json_formatter_stringifies_unknown_values():
    payload = json.loads(JSONFormatter().format(_record(path=object())))
    assert isinstance(payload["path"], str)


def test_fault_sink_logs_error_with_context(caplog):
    fault = EngineFault(
        "where of 'welcome' failed", FaultKind.ENRICHMENT,
        ErrorContext(rule="welcome", invocation_id=4, cascade_root=1, depth=2),
        cause=ValueError("bad"),
    )
    with caplog.at_level(logging.ERROR, logger="concord.faults"):
        LoggingFaultSink().report(fault)

    record = caplog.records[0]
    assert record.levelno == logging.ERROR
    assert record.rule == "welcome"
    assert record.fault_kind == "enrichment"
    assert record.error_code == "ENGINE_FAULT"
    assert record.exc_info[0] is ValueError
