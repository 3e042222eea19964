"""Rule Registry — process-wide, read-only-after-startup set of rules.

Invariants:
    - Rule names are unique
    - rules_for(action) returns rules in registration order
    - A rule is indexed under its first when-pattern's action and under every
      later when-pattern's action (each at most once)
    - After freeze(), register() raises RegistryFrozenError

Design Decisions:
    - Index keyed by ActionRef: only rules that could place the new invocation
      in one of their positions are evaluated
"""

from collections import defaultdict
from typing import Iterable, Iterator

from concord.core.errors import RegistryFrozenError, RuleDefinitionError
from concord.core.patterns import ActionRef
from concord.core.rules import Rule


class RuleRegistry:
    """Holds all rules and indexes them by the actions they listen for."""

    def __init__(self, rules: Iterable[Rule] = ()):
        self._rules: dict[str, Rule] = {}
        self._index: dict[ActionRef, list[Rule]] = defaultdict(list)
        self._frozen = False
        for rule in rules:
            self.register(rule)

    def register(self, rule: Rule) -> Rule:
        if self._frozen:
            raise RegistryFrozenError("RuleRegistry")
        if rule.name in self._rules:
            raise RuleDefinitionError(rule.name, "a rule with this name already exists")
        self._rules[rule.name] = rule
        for action in rule.triggers:
            self._index[action].append(rule)
        return rule

    def register_all(self, rules: Iterable[Rule]) -> None:
        for rule in rules:
            self.register(rule)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def rules_for(self, action: ActionRef) -> list[Rule]:
        return list(self._index.get(action, ()))

    def get(self, name: str) -> Rule | None:
        return self._rules.get(name)

    def actions(self) -> set[ActionRef]:
        """Every action referenced by any rule (when or then)."""
        refs = set()
        for rule in self._rules.values():
            refs.update(p.action for p in (*rule.when, *rule.then))
        return refs

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules.values())
