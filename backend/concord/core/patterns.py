"""Patterns — the closed value variant (Literal | Wildcard | Variable) and Pattern shapes.

Invariants:
    - Every pattern field value is exactly one of Literal, Wildcard, Variable
    - Patterns are frozen: defined at rule-registration time, never mutated
    - Unification (match_fields) is pure: returns new bindings or None, never mutates

Design Decisions:
    - Frozen dataclasses + match-by-isinstance over duck typing: the variant is
      closed, unification dispatches on three known cases only
    - Raw values passed to pattern() are coerced to Literal, so rules read like
      {"path": "/Team/create", "title": title}
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Union

from concord.core.domain_types import ERROR_FIELD


@dataclass(frozen=True)
class Literal:
    """Matches only an observed value equal to `value`."""
    value: Any


@dataclass(frozen=True)
class Wildcard:
    """Matches any value, including an absent field."""

    def __repr__(self) -> str:
        return "_"


@dataclass(frozen=True)
class Variable:
    """Binds the observed value, or must equal the value already bound."""
    name: str

    def __repr__(self) -> str:
        return f"?{self.name}"


PatternValue = Union[Literal, Wildcard, Variable]

WILDCARD = Wildcard()


def as_pattern_value(value: Any) -> PatternValue:
    """Coerce a raw value into the variant (non-variant values become Literal)."""
    if isinstance(value, (Literal, Wildcard, Variable)):
        return value
    return Literal(value)


@dataclass(frozen=True)
class ActionRef:
    """(component, operation) reference used by patterns and the dispatcher."""
    component: str
    operation: str

    @classmethod
    def parse(cls, dotted: str) -> "ActionRef":
        component, sep, operation = dotted.partition(".")
        if not sep or not component or not operation:
            raise ValueError(f"expected 'Component.operation', got {dotted!r}")
        return cls(component, operation)

    def __str__(self) -> str:
        return f"{self.component}.{self.operation}"


@dataclass(frozen=True)
class Pattern:
    """One expected invocation shape: action + input pattern + output pattern."""
    action: ActionRef
    inputs: Mapping[str, PatternValue] = field(default_factory=dict)
    outputs: Mapping[str, PatternValue] = field(default_factory=dict)

    @property
    def matches_errors(self) -> bool:
        """Output patterns naming `error` match error outputs only."""
        return ERROR_FIELD in self.outputs

    def variables(self) -> set[str]:
        names = set()
        for value in (*self.inputs.values(), *self.outputs.values()):
            if isinstance(value, Variable):
                names.add(value.name)
        return names

    def __str__(self) -> str:
        return f"[{self.action}, {dict(self.inputs)}, {dict(self.outputs)}]"


def pattern(
    action: ActionRef | str,
    inputs: Mapping[str, Any] | None = None,
    outputs: Mapping[str, Any] | None = None,
) -> Pattern:
    """Build a Pattern from raw values (coerced) and an ActionRef or 'C.op' string."""
    ref = ActionRef.parse(action) if isinstance(action, str) else action
    return Pattern(
        action=ref,
        inputs=MappingProxyType(
            {k: as_pattern_value(v) for k, v in (inputs or {}).items()},
        ),
        outputs=MappingProxyType(
            {k: as_pattern_value(v) for k, v in (outputs or {}).items()},
        ),
    )


# ─── Unification ─────────────────────────────────────────────────

_MISSING = object()


def match_fields(
    fields: Mapping[str, PatternValue],
    observed: Mapping[str, Any],
    bindings: Mapping[str, Any],
) -> dict[str, Any] | None:
    """Unify a field-pattern map against observed values.

    Returns the bindings extended with any newly bound variables, or None on
    mismatch. A Literal or Variable on an absent field is a mismatch.
    """
    result = dict(bindings)
    for name, expected in fields.items():
        actual = observed.get(name, _MISSING)
        if isinstance(expected, Wildcard):
            continue
        if actual is _MISSING:
            return None
        if isinstance(expected, Literal):
            if actual != expected.value:
                return None
        elif isinstance(expected, Variable):
            bound = result.get(expected.name, _MISSING)
            if bound is _MISSING:
                result[expected.name] = actual
            elif bound != actual:
                return None
        else:
            raise TypeError(f"not a pattern value: {expected!r}")
    return result


def match_pattern(
    pat: Pattern,
    action: ActionRef,
    inputs: Mapping[str, Any],
    outputs: Mapping[str, Any],
    bindings: Mapping[str, Any],
) -> dict[str, Any] | None:
    """Match one pattern against one observed call; None on mismatch."""
    if pat.action != action:
        return None
    if pat.matches_errors and ERROR_FIELD not in outputs:
        return None
    extended = match_fields(pat.inputs, inputs, bindings)
    if extended is None:
        return None
    return match_fields(pat.outputs, outputs, extended)
