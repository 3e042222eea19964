"""Concept Registry — explicit routing from (component, operation) to coroutine.

Invariants:
    - Every component is registered by name, explicitly, at startup
    - Operations are the component's public coroutine methods (no leading "_")
    - Kind (action/query) comes from the operation name (domain_types.operation_kind)
    - Unknown operations raise UnknownOperationError (never a silent None)
    - The registry never catches component exceptions; callers decide

Design Decisions:
    - One dict of ActionRef -> Operation: every routable call visible in one place
    - Inputs passed as keyword arguments: an operation's signature is its schema
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

from concord.core.domain_types import OperationKind, operation_kind
from concord.core.errors import RegistryFrozenError, UnknownOperationError
from concord.core.patterns import ActionRef

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Operation:
    """A routable operation of a registered component."""
    ref: ActionRef
    kind: OperationKind
    fn: Callable[..., Awaitable[Any]]


class ConceptRegistry:
    """Routes ActionRef -> component coroutine. Explicit registration only."""

    def __init__(self):
        self._concepts: dict[str, object] = {}
        self._operations: dict[ActionRef, Operation] = {}
        self._frozen = False

    def register(self, name: str, concept: object) -> list[Operation]:
        """Register a component instance under `name`; returns its operations."""
        if self._frozen:
            raise RegistryFrozenError("ConceptRegistry")
        if name in self._concepts:
            raise ValueError(f"component '{name}' already registered")
        found = []
        for attr, member in inspect.getmembers(concept, inspect.iscoroutinefunction):
            if attr.startswith("_"):
                continue
            ref = ActionRef(name, attr)
            op = Operation(ref, operation_kind(attr), member)
            self._operations[ref] = op
            found.append(op)
        self._concepts[name] = concept
        logger.info(
            "Registered component %s (%d actions, %d queries)", name,
            sum(op.kind is OperationKind.ACTION for op in found),
            sum(op.kind is OperationKind.QUERY for op in found),
            extra={"component": name},
        )
        return found

    def freeze(self) -> None:
        self._frozen = True

    def concept(self, name: str) -> object:
        try:
            return self._concepts[name]
        except KeyError:
            raise UnknownOperationError(name, "*") from None

    def operation(self, ref: ActionRef) -> Operation:
        op = self._operations.get(ref)
        if op is None:
            raise UnknownOperationError(ref.component, ref.operation)
        return op

    def has_concept(self, name: str) -> bool:
        return name in self._concepts

    def names(self) -> list[str]:
        return list(self._concepts)

    def has(self, ref: ActionRef) -> bool:
        return ref in self._operations

    def kind(self, ref: ActionRef) -> OperationKind:
        return self.operation(ref).kind

    def operations(self) -> list[Operation]:
        return list(self._operations.values())

    async def call(self, ref: ActionRef, input: Mapping[str, Any]) -> Any:
        """Call an operation with `input` as keyword arguments; returns raw result."""
        op = self.operation(ref)
        return await op.fn(**input)
