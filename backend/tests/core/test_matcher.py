"""Matcher tests — joins, unification across patterns, causality, trigger placement.

Tests cover:
    - Single wildcard pattern → exactly one frame per invocation, error outputs included
    - Shared variable across two patterns: frame iff values agree AND same root
    - Cross-product of multiple candidates
    - Trigger occupies a position in every frame; later invocations are never candidates
    - Causality: three-step flow with an unrelated checkAuth forms no frame
    - One invocation never fills two positions
"""

from concord.core.invocation_log import InvocationLog
from concord.core.matcher import match_rule
from concord.core.patterns import WILDCARD, ActionRef, Variable
from concord.core.rules import Rule, actions

REQUEST = ActionRef("Requesting", "request")
CHECK = ActionRef("Auth", "check")
PERFORM = ActionRef("Auth", "perform")
REGISTER = ActionRef("Accounts", "register")
WELCOME = ActionRef("Mailer", "welcome")

u = Variable("u")
r = Variable("r")


def _rule(*when, name="R"):
    return Rule(name=name, when=actions(*when))


# --- Single pattern -----------------------------------------------------------

def test_wildcard_pattern_yields_one_frame_per_invocation():
    log = InvocationLog()
    rule = _rule(("Accounts.register", {}))
    for i in range(3):
        inv = log.append(REGISTER, {"name": f"n{i}"}, {"id": f"u{i}"})
        frames = match_rule(rule, inv, log)
        assert len(frames) == 1
        assert frames[0].support == (inv.id,)
        assert frames[0].as_dict() == {}


def test_wildcard_pattern_yields_one_frame_for_error_invocation():
    log = InvocationLog()
    rule = _rule(("Accounts.register", {"name": WILDCARD}))
    ok = log.append(REGISTER, {"name": "ada"}, {"id": "u1"})
    failed = log.append(REGISTER, {"name": "ada"}, {"error": "taken"})
    assert len(match_rule(rule, ok, log)) == 1
    frames = match_rule(rule, failed, log)
    assert len(frames) == 1
    assert frames[0].support == (failed.id,)


def test_no_match_is_empty_frames():
    log = InvocationLog()
    rule = _rule(("Accounts.register", {"name": "admin"}))
    inv = log.append(REGISTER, {"name": "bob"}, {"id": "u1"})
    assert not match_rule(rule, inv, log)


def test_bindings_come_from_inputs_and_outputs():
    log = InvocationLog()
    rule = _rule(("Accounts.register", {"name": Variable("n")}, {"id": u, "role": r}))
    inv = log.append(REGISTER, {"name": "bob"}, {"id": "u1", "role": "member"})
    assert match_rule(rule, inv, log)[0].as_dict() == {"n": "bob", "u": "u1", "r": "member"}


# --- Joins --------------------------------------------------------------------

def _request_then_check(log, request_user, check_user, linked=True):
    req = log.append(REQUEST, {"path": "/x", "user": request_user}, {"request": "q1"})
    parents = (req.id,) if linked else ()
    check = log.append(CHECK, {"user": check_user}, {"allowed": True}, caused_by=parents)
    return req, check


def test_shared_variable_forms_frame_when_values_agree():
    log = InvocationLog()
    rule = _rule(("Requesting.request", {"user": u}), ("Auth.check", {"user": u}))
    req, check = _request_then_check(log, "u1", "u1")
    frames = match_rule(rule, check, log)
    assert len(frames) == 1
    assert frames[0].support == (req.id, check.id)
    assert frames[0]["u"] == "u1"


def test_shared_variable_disagreement_forms_no_frame():
    log = InvocationLog()
    rule = _rule(("Requesting.request", {"user": u}), ("Auth.check", {"user": u}))
    _, check = _request_then_check(log, "u1", "u2")
    assert not match_rule(rule, check, log)


def test_different_roots_never_join():
    log = InvocationLog()
    rule = _rule(("Requesting.request", {"user": u}), ("Auth.check", {"user": u}))
    _, check = _request_then_check(log, "u1", "u1", linked=False)
    assert check.root != 1
    assert not match_rule(rule, check, log)


def test_cross_product_of_candidates():
    log = InvocationLog()
    rule = _rule(("Auth.check", {"user": u}), ("Auth.perform", {}))
    req = log.append(REQUEST, {"path": "/x"}, {"request": "q1"})
    a = log.append(CHECK, {"user": "a"}, {}, caused_by=(req.id,))
    b = log.append(CHECK, {"user": "b"}, {}, caused_by=(req.id,))
    done = log.append(PERFORM, {}, {"done": "ab"}, caused_by=(a.id, b.id))

    frames = match_rule(rule, done, log)
    assert [f.support for f in frames] == [(a.id, done.id), (b.id, done.id)]
    assert [f["u"] for f in frames] == ["a", "b"]


def test_same_action_twice_joins_related_invocations_only():
    log = InvocationLog()
    rule = _rule(("Auth.check", {"user": WILDCARD}), ("Auth.check", {}))
    req = log.append(REQUEST, {}, {"request": "q1"})
    a = log.append(CHECK, {"user": "a"}, {}, caused_by=(req.id,))
    log.append(CHECK, {"user": "b"}, {}, caused_by=(req.id,))
    c = log.append(CHECK, {"user": "c"}, {}, caused_by=(a.id,))
    supports = sorted(f.support for f in match_rule(rule, c, log))
    assert supports == [(a.id, c.id), (c.id, a.id)]


def test_trigger_occupies_every_frame():
    log = InvocationLog()
    rule = _rule(("Requesting.request", {}), ("Auth.check", {}))
    req = log.append(REQUEST, {}, {"request": "q1"})
    first = log.append(CHECK, {"user": "a"}, {}, caused_by=(req.id,))
    second = log.append(CHECK, {"user": "b"}, {}, caused_by=(req.id,))
    frames = match_rule(rule, second, log)
    assert [f.support for f in frames] == [(req.id, second.id)]
    assert first.id not in frames[0].support


def test_later_invocations_are_not_candidates():
    log = InvocationLog()
    rule = _rule(("Requesting.request", {}), ("Auth.check", {}))
    req = log.append(REQUEST, {}, {"request": "q1"})
    log.append(CHECK, {"user": "a"}, {}, caused_by=(req.id,))
    # Re-matching the (older) request does not see the later check
    assert not match_rule(rule, req, log)


def test_invocation_fills_at_most_one_position():
    log = InvocationLog()
    rule = _rule(("Accounts.register", {}), ("Accounts.register", {}))
    inv = log.append(REGISTER, {}, {"id": "u1"})
    assert not match_rule(rule, inv, log)


def test_error_rule_and_success_rule_split_outputs():
    log = InvocationLog()
    ok = _rule(("Accounts.register", {}, {"id": u}), name="ok")
    failed = _rule(("Accounts.register", {}, {"error": Variable("e")}), name="failed")
    inv = log.append(REGISTER, {}, {"error": "taken"})
    assert not match_rule(ok, inv, log)
    assert match_rule(failed, inv, log)[0]["e"] == "taken"


# --- Causality (three-step flow) ----------------------------------------------

def test_three_step_flow_requires_causal_chain():
    log = InvocationLog()
    rule = _rule(
        ("Requesting.request", {"user": u}),
        ("Auth.check", {"user": u}),
        ("Auth.perform", {"user": u}),
    )
    req = log.append(REQUEST, {"user": "u1"}, {"request": "q1"})
    check = log.append(CHECK, {"user": "u1"}, {"allowed": True}, caused_by=(req.id,))
    done = log.append(PERFORM, {"user": "u1"}, {"done": "u1"}, caused_by=(check.id,))
    frames = match_rule(rule, done, log)
    assert [f.support for f in frames] == [(req.id, check.id, done.id)]


def test_unrelated_check_with_coincident_values_forms_no_frame():
    log = InvocationLog()
    rule = _rule(
        ("Requesting.request", {"user": u}),
        ("Auth.check", {"user": u}),
        ("Auth.perform", {"user": u}),
    )
    req = log.append(REQUEST, {"user": "u1"}, {"request": "q1"})
    # checkAuth logged by an unrelated concurrent request
    log.append(CHECK, {"user": "u1"}, {"allowed": True})
    done = log.append(PERFORM, {"user": "u1"}, {"done": "u1"}, caused_by=(req.id,))
    assert not match_rule(rule, done, log)


def test_sibling_branches_are_not_causally_related():
    log = InvocationLog()
    rule = _rule(("Auth.check", {}), ("Auth.perform", {}))
    req = log.append(REQUEST, {}, {"request": "q1"})
    log.append(CHECK, {"user": "u1"}, {}, caused_by=(req.id,))
    done = log.append(PERFORM, {"user": "u1"}, {}, caused_by=(req.id,))
    assert not match_rule(rule, done, log)
