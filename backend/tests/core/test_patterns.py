"""Patterns tests — the value variant, ActionRef parsing and unification.

Tests cover:
    - pattern() coerces raw values to Literal and keeps variant values
    - ActionRef.parse / str round trip and rejection of malformed refs
    - match_fields: Literal, Wildcard, Variable, absent fields, extra fields
    - match_pattern: action mismatch and error-output narrowing
"""

import pytest

from concord.core.patterns import (
    WILDCARD, ActionRef, Literal, Variable, Wildcard, as_pattern_value,
    match_fields, match_pattern, pattern,
)


# --- Construction -------------------------------------------------------------

def test_raw_values_become_literals():
    pat = pattern("Teams.create", {"title": "Alpha", "owner": Variable("u")})
    assert pat.inputs["title"] == Literal("Alpha")
    assert pat.inputs["owner"] == Variable("u")


def test_wildcard_is_kept():
    assert as_pattern_value(WILDCARD) is WILDCARD
    assert isinstance(as_pattern_value(Wildcard()), Wildcard)


def test_pattern_maps_are_read_only():
    pat = pattern("Teams.create", {"title": "Alpha"})
    with pytest.raises(TypeError):
        pat.inputs["title"] = Literal("Beta")


def test_pattern_variables_collects_inputs_and_outputs():
    pat = pattern("Teams.create", {"owner": Variable("u")}, {"team": Variable("t")})
    assert pat.variables() == {"u", "t"}


def test_action_ref_parse():
    ref = ActionRef.parse("Accounts.register")
    assert ref == ActionRef("Accounts", "register")
    assert str(ref) == "Accounts.register"


@pytest.mark.parametrize("bad", ["Accounts", ".register", "Accounts.", ""])
def test_action_ref_parse_rejects_malformed(bad):
    with pytest.raises(ValueError):
        ActionRef.parse(bad)


def test_variable_and_wildcard_repr():
    assert repr(Variable("user")) == "?user"
    assert repr(WILDCARD) == "_"


# --- match_fields -------------------------------------------------------------

def test_literal_must_equal_observed():
    fields = {"role": Literal("admin")}
    assert match_fields(fields, {"role": "admin"}, {}) == {}
    assert match_fields(fields, {"role": "member"}, {}) is None


def test_variable_binds_when_unbound():
    assert match_fields({"id": Variable("u")}, {"id": "u1"}, {}) == {"u": "u1"}


def test_variable_must_agree_with_existing_binding():
    fields = {"id": Variable("u")}
    assert match_fields(fields, {"id": "u1"}, {"u": "u1"}) == {"u": "u1"}
    assert match_fields(fields, {"id": "u2"}, {"u": "u1"}) is None


def test_wildcard_matches_absent_field():
    assert match_fields({"note": WILDCARD}, {}, {}) == {}


def test_literal_or_variable_on_absent_field_is_mismatch():
    assert match_fields({"note": Literal("x")}, {}, {}) is None
    assert match_fields({"note": Variable("n")}, {}, {}) is None


def test_unnamed_observed_fields_are_ignored():
    assert match_fields({"id": Variable("u")}, {"id": "u1", "role": "x"}, {}) == {"u": "u1"}


def test_match_fields_does_not_mutate_bindings():
    bindings = {"a": 1}
    match_fields({"id": Variable("u")}, {"id": "u1"}, bindings)
    assert bindings == {"a": 1}


def test_same_variable_twice_in_one_pattern_must_agree():
    fields = {"from": Variable("u"), "to": Variable("u")}
    assert match_fields(fields, {"from": "a", "to": "a"}, {}) == {"u": "a"}
    assert match_fields(fields, {"from": "a", "to": "b"}, {}) is None


# --- match_pattern ------------------------------------------------------------

REGISTER = ActionRef("Accounts", "register")


def test_match_pattern_requires_same_action():
    pat = pattern("Accounts.register")
    assert match_pattern(pat, ActionRef("Accounts", "delete"), {}, {}, {}) is None
    assert match_pattern(pat, REGISTER, {}, {"id": "u1"}, {}) == {}


def test_success_pattern_ignores_error_outputs():
    pat = pattern("Accounts.register", {}, {"id": Variable("u")})
    assert match_pattern(pat, REGISTER, {}, {"error": "taken"}, {}) is None


def test_wildcard_only_pattern_matches_error_outputs():
    pat = pattern("Accounts.register", {"name": WILDCARD})
    assert match_pattern(pat, REGISTER, {"name": "x"}, {"error": "taken"}, {}) == {}
    assert match_pattern(pat, REGISTER, {"name": "x"}, {"id": "u1"}, {}) == {}


def test_error_pattern_matches_only_error_outputs():
    pat = pattern("Accounts.register", {}, {"error": Variable("e")})
    assert match_pattern(pat, REGISTER, {}, {"error": "taken"}, {}) == {"e": "taken"}
    assert match_pattern(pat, REGISTER, {}, {"id": "u1"}, {}) is None


def test_error_wildcard_matches_any_error():
    pat = pattern("Accounts.register", {}, {"error": WILDCARD})
    assert match_pattern(pat, REGISTER, {}, {"error": "x"}, {}) == {}
