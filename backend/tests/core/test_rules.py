"""Rule & sync DSL tests — construction-time validation and the decorator.

Tests cover:
    - Rule rejects empty name, empty when, query targets, then outputs, sync where
    - triggers lists distinct when-actions in order
    - @sync binds parameters as Variables, accepts a name, rejects unknown clauses
    - actions() rejects malformed specs
"""

import pytest

from concord.core.errors import RuleDefinitionError
from concord.core.frames import Frames
from concord.core.patterns import ActionRef, Variable, pattern
from concord.core.rules import Rule, actions, sync


def test_rule_requires_when_patterns():
    with pytest.raises(RuleDefinitionError):
        Rule(name="empty", when=())


def test_rule_requires_name():
    with pytest.raises(RuleDefinitionError):
        Rule(name="", when=actions(("Accounts.register", {})))


@pytest.mark.parametrize("target", ["Accounts.get_user", "Teams.list_members", "Teams.find_by_title"])
def test_query_targets_rejected_in_when(target):
    with pytest.raises(RuleDefinitionError) as exc:
        Rule(name="q", when=actions((target, {})))
    assert "query" in exc.value.message


def test_query_targets_rejected_in_then():
    with pytest.raises(RuleDefinitionError):
        Rule(
            name="q",
            when=actions(("Accounts.register", {})),
            then=actions(("Accounts.get_user", {})),
        )


def test_then_patterns_cannot_declare_outputs():
    with pytest.raises(RuleDefinitionError):
        Rule(
            name="bad",
            when=actions(("Accounts.register", {})),
            then=actions(("Mailer.welcome", {}, {"message": Variable("m")})),
        )


def test_where_must_be_async():
    with pytest.raises(RuleDefinitionError):
        Rule(name="bad", when=actions(("Accounts.register", {})), where=lambda frames: frames)


def test_triggers_are_distinct_and_ordered():
    rule = Rule(
        name="r",
        when=actions(
            ("Requesting.request", {}), ("Teams.create", {}), ("Requesting.request", {}),
        ),
    )
    assert rule.triggers == [ActionRef("Requesting", "request"), ActionRef("Teams", "create")]


def test_actions_rejects_malformed_specs():
    with pytest.raises(TypeError):
        actions(("Accounts.register",))


def test_actions_accepts_ready_patterns():
    pat = pattern("Accounts.register")
    assert actions(pat) == (pat,)


# --- @sync --------------------------------------------------------------------

def test_sync_binds_parameters_as_variables():
    @sync
    def welcome(user):
        return {
            "when": actions(("Accounts.register", {}, {"id": user})),
            "then": actions(("Mailer.welcome", {"to": user})),
        }

    assert isinstance(welcome, Rule)
    assert welcome.name == "welcome"
    assert welcome.when[0].outputs["id"] == Variable("user")
    assert welcome.then[0].inputs["to"] == Variable("user")


def test_sync_with_name_and_where():
    async def only_admins(frames: Frames) -> Frames:
        return frames

    @sync(name="AdminWelcome")
    def rule(user, role):
        return {
            "when": [("Accounts.register", {}, {"id": user, "role": role})],
            "where": only_admins,
            "then": [("Mailer.welcome", {"to": user})],
        }

    assert rule.name == "AdminWelcome"
    assert rule.where is only_admins
    assert rule.when[0].variables() == {"user", "role"}


def test_sync_rejects_unknown_clauses():
    with pytest.raises(RuleDefinitionError):
        @sync
        def typo(user):
            return {"when": actions(("Accounts.register", {})), "than": ()}


def test_sync_where_only_rule_is_valid():
    async def observe(frames):
        return frames

    @sync
    def audit():
        return {"when": actions(("Accounts.register", {})), "where": observe}

    assert audit.then == ()
