"""Rules — when/where/then synchronizations and the `sync` definition helper.

Invariants:
    - A rule has at least one when-pattern; then may be empty (where-only rules)
    - when/then patterns never target queries (operation_kind == QUERY)
    - then-pattern output maps are empty: outputs are observed, never dispatched
    - Rules are frozen after construction

Design Decisions:
    - `sync` turns a plain function into a Rule: each parameter becomes a
      Variable of the same name, so a rule reads like
          @sync
          def welcome(user):
              return {"when": actions(("Accounts.register", {}, {"id": user})),
                      "then": actions(("Mailer.welcome", {"to": user}))}
    - actions() accepts (action, inputs[, outputs]) tuples or ready Patterns
"""

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Mapping, Sequence

from concord.core.domain_types import OperationKind, operation_kind
from concord.core.errors import RuleDefinitionError
from concord.core.frames import Frames
from concord.core.patterns import ActionRef, Pattern, Variable, pattern

WhereFn = Callable[[Frames], Awaitable[Frames]]

PatternSpec = (
    Pattern
    | tuple[ActionRef | str, Mapping[str, Any]]
    | tuple[ActionRef | str, Mapping[str, Any], Mapping[str, Any]]
)


@dataclass(frozen=True)
class Rule:
    """A named synchronization: when-patterns, optional where, then-patterns."""
    name: str
    when: tuple[Pattern, ...]
    then: tuple[Pattern, ...] = ()
    where: WhereFn | None = None

    def __post_init__(self):
        object.__setattr__(self, "when", tuple(self.when))
        object.__setattr__(self, "then", tuple(self.then))
        self._validate()

    def _validate(self) -> None:
        if not self.name:
            raise RuleDefinitionError("<unnamed>", "rule name is empty")
        if not self.when:
            raise RuleDefinitionError(self.name, "when-clause has no patterns")
        for pat in (*self.when, *self.then):
            if not isinstance(pat, Pattern):
                raise RuleDefinitionError(self.name, f"not a Pattern: {pat!r}")
            if operation_kind(pat.action.operation) is OperationKind.QUERY:
                raise RuleDefinitionError(
                    self.name, f"{pat.action} is a query; rules match actions only",
                )
        for pat in self.then:
            if pat.outputs:
                raise RuleDefinitionError(
                    self.name, f"then-pattern {pat.action} declares outputs",
                )
        if self.where is not None and not inspect.iscoroutinefunction(self.where):
            raise RuleDefinitionError(self.name, "where must be an async function")

    @property
    def triggers(self) -> list[ActionRef]:
        """Distinct when-pattern actions, first pattern first."""
        seen: list[ActionRef] = []
        for pat in self.when:
            if pat.action not in seen:
                seen.append(pat.action)
        return seen


def actions(*specs: PatternSpec) -> tuple[Pattern, ...]:
    """Build a pattern tuple from (action, inputs[, outputs]) specs."""
    built = []
    for spec in specs:
        if isinstance(spec, Pattern):
            built.append(spec)
        elif isinstance(spec, Sequence) and len(spec) in (2, 3):
            built.append(pattern(*spec))
        else:
            raise TypeError(f"expected (action, inputs[, outputs]), got {spec!r}")
    return tuple(built)


def sync(fn: Callable[..., Mapping[str, Any]] | None = None, *, name: str | None = None):
    """Decorator: build a Rule from a function whose parameters are its variables.

    The function returns a mapping with "when", optional "where" and optional
    "then". Usable bare (@sync) or with a name (@sync(name="CreateTeam")).
    """
    def build(func: Callable[..., Mapping[str, Any]]) -> Rule:
        params = inspect.signature(func).parameters
        variables = {p: Variable(p) for p in params}
        spec = func(**variables)
        rule_name = name or func.__name__
        unknown = set(spec) - {"when", "where", "then"}
        if unknown:
            raise RuleDefinitionError(rule_name, f"unknown clauses {sorted(unknown)}")
        return Rule(
            name=rule_name,
            when=_patterns(spec.get("when", ())),
            where=spec.get("where"),
            then=_patterns(spec.get("then", ())),
        )

    if fn is not None:
        return build(fn)
    return build


def _patterns(value: Iterable[Any]) -> tuple[Pattern, ...]:
    if isinstance(value, tuple) and all(isinstance(p, Pattern) for p in value):
        return value
    return actions(*value)
