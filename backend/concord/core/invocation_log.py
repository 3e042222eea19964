"""Invocation Log — append-only arena of completed operation calls.

Invariants:
    - Ids are monotonic ints starting at 1; an id is assigned exactly once
    - Invocations are frozen once appended; the log never edits them
    - All causal parents of an invocation belong to the same cascade (root)
    - root = own id for a parentless invocation, else the parents' shared root
    - depth = 0 for a root, else 1 + max(parent depth)
    - Indexed by id, by (component, operation), by cascade root and by both

Design Decisions:
    - Ancestor closure stored on each invocation at append time: causal checks
      in the matcher are set lookups, and the closure never changes afterwards
    - forget_cascade() is the only removal path, used for bounded retention of
      drained cascades; it is never called on a running cascade
"""

import itertools
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from concord.core.domain_types import (
    CascadeRoot, InvocationId, is_error_output,
)
from concord.core.errors import ConcordError, ErrorCategory, ErrorSeverity
from concord.core.patterns import ActionRef


@dataclass(frozen=True)
class Invocation:
    """One completed call: inputs, outputs (or error), causal lineage."""
    id: InvocationId
    action: ActionRef
    input: Mapping[str, Any]
    output: Mapping[str, Any]
    caused_by: frozenset[InvocationId]
    root: CascadeRoot
    depth: int
    ancestors: frozenset[InvocationId] = field(repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def component(self) -> str:
        return self.action.component

    @property
    def operation(self) -> str:
        return self.action.operation

    @property
    def failed(self) -> bool:
        return is_error_output(self.output)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "component": self.component,
            "operation": self.operation,
            "input": dict(self.input),
            "output": dict(self.output),
            "caused_by": sorted(self.caused_by),
            "root": self.root,
            "depth": self.depth,
            "timestamp": self.timestamp.isoformat(),
        }


class InvocationLog:
    """Process-wide append-only store of invocations."""

    def __init__(self):
        self._ids = itertools.count(1)
        self._by_id: dict[InvocationId, Invocation] = {}
        self._by_action: dict[ActionRef, list[Invocation]] = defaultdict(list)
        self._by_root: dict[CascadeRoot, list[Invocation]] = defaultdict(list)
        self._by_root_action: dict[
            tuple[CascadeRoot, ActionRef], list[Invocation]
        ] = defaultdict(list)

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, invocation_id: object) -> bool:
        return invocation_id in self._by_id

    def append(
        self,
        action: ActionRef,
        input: Mapping[str, Any],
        output: Mapping[str, Any],
        caused_by: Iterable[InvocationId] = (),
    ) -> Invocation:
        """Log a completed call and return the frozen Invocation."""
        parents = [self.get(pid) for pid in frozenset(caused_by)]
        roots = {p.root for p in parents}
        if len(roots) > 1:
            raise ConcordError(
                f"Causal parents span cascades {sorted(roots)}",
                "CROSS_CASCADE_PARENTS", ErrorCategory.ENGINE,
                ErrorSeverity.CRITICAL,
            )
        inv_id = InvocationId(next(self._ids))
        ancestors = frozenset(
            itertools.chain.from_iterable((p.ancestors | {p.id}) for p in parents),
        )
        invocation = Invocation(
            id=inv_id,
            action=action,
            input=MappingProxyType(dict(input)),
            output=MappingProxyType(dict(output)),
            caused_by=frozenset(p.id for p in parents),
            root=roots.pop() if roots else CascadeRoot(inv_id),
            depth=1 + max(p.depth for p in parents) if parents else 0,
            ancestors=ancestors,
        )
        self._by_id[inv_id] = invocation
        self._by_action[action].append(invocation)
        self._by_root[invocation.root].append(invocation)
        self._by_root_action[(invocation.root, action)].append(invocation)
        return invocation

    def get(self, invocation_id: InvocationId) -> Invocation:
        try:
            return self._by_id[invocation_id]
        except KeyError:
            raise ConcordError(
                f"Invocation {invocation_id} is not in the log",
                "UNKNOWN_INVOCATION", ErrorCategory.RESOURCE_NOT_FOUND,
                ErrorSeverity.ERROR, http_status=404,
            ) from None

    def by_action(self, action: ActionRef) -> list[Invocation]:
        return list(self._by_action.get(action, ()))

    def cascade(self, root: CascadeRoot) -> list[Invocation]:
        """Invocations of one cascade, in append order."""
        return list(self._by_root.get(root, ()))

    def candidates(
        self, action: ActionRef, root: CascadeRoot, up_to: InvocationId,
    ) -> list[Invocation]:
        """Invocations of `action` inside one cascade with id <= up_to."""
        return [
            inv for inv in self._by_root_action.get((root, action), ())
            if inv.id <= up_to
        ]

    def related(self, a: InvocationId, b: InvocationId) -> bool:
        """True iff one invocation is a causal ancestor of the other."""
        if a == b:
            return True
        return a in self._by_id[b].ancestors or b in self._by_id[a].ancestors

    def roots(self) -> list[CascadeRoot]:
        return list(self._by_root)

    def forget_cascade(self, root: CascadeRoot) -> int:
        """Drop a drained cascade from every index; returns how many were dropped."""
        dropped = self._by_root.pop(root, [])
        ids = {inv.id for inv in dropped}
        for inv in dropped:
            del self._by_id[inv.id]
        for action in {inv.action for inv in dropped}:
            self._by_root_action.pop((root, action), None)
            remaining = [i for i in self._by_action[action] if i.id not in ids]
            if remaining:
                self._by_action[action] = remaining
            else:
                del self._by_action[action]
        return len(dropped)
