"""Error hierarchy tests — codes, HTTP status and REST envelope."""

from concord.core.errors import (
    BindingConflictError, CycleDetectedError, ErrorContext, RequestTimeoutError,
    ResourceNotFoundError, RuleDefinitionError, UnknownOperationError,
)


def test_to_response_envelope():
    err = UnknownOperationError("Teams", "delete", ErrorContext(path="/Teams/delete"))
    body = err.to_response()["error"]
    assert body["code"] == "UNKNOWN_OPERATION"
    assert body["category"] == "resource_not_found"
    assert body["context"]["path"] == "/Teams/delete"
    assert err.http_status == 404


def test_rule_definition_error_carries_rule_name():
    err = RuleDefinitionError("welcome", "when-clause has no patterns")
    assert err.context.rule == "welcome"
    assert "welcome" in err.message
    assert err.log_extra()["rule"] == "welcome"


def test_status_codes():
    assert RequestTimeoutError(15).http_status == 504
    assert ResourceNotFoundError("Cascade", "9").http_status == 404
    assert CycleDetectedError(32).max_depth == 32
    assert BindingConflictError("u", "a", "b").variable == "u"
