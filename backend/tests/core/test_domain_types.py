"""Domain types tests — operation naming convention and error outputs."""

import pytest

from concord.core.domain_types import OperationKind, is_error_output, operation_kind


@pytest.mark.parametrize("name", ["get_user", "list_members", "find_by_title"])
def test_query_prefixes(name):
    assert operation_kind(name) is OperationKind.QUERY


@pytest.mark.parametrize("name", ["register", "create", "getaway", "respond", "listen"])
def test_everything_else_is_an_action(name):
    assert operation_kind(name) is OperationKind.ACTION


def test_error_output_is_keyed_by_error_field():
    assert is_error_output({"error": "boom"})
    assert is_error_output({"error": None})
    assert not is_error_output({"id": "u1"})
