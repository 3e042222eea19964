"""Boundary Protocols — contracts between the engine core and its shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - Fault reporting and invocation persistence are reached through Protocols
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
"""

from typing import Protocol, Sequence

from concord.core.errors import ConcordError
from concord.core.invocation_log import Invocation


class FaultSink(Protocol):
    """Observability sink for EngineFault / CycleDetectedError reports."""
    def report(self, fault: ConcordError) -> None: ...


class InvocationRepository(Protocol):
    """Contract for audit persistence of drained cascades — implemented by shell."""
    async def save_cascade(self, invocations: Sequence[Invocation]) -> None: ...
