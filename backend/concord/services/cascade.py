"""Cascade — per-trigger work queue, state machine and cancellation token.

Invariants:
    - One Cascade per processing of a root trigger; never shared between triggers
    - queue is FIFO (breadth-first in append order)
    - Once cancelled, check() raises CascadeCancelled before any further stage
    - await_task() never leaves its task running when it returns or raises

Design Decisions:
    - asyncio.Event as cancellation token + optional loop-time deadline: the
      scheduler awaits explicit tasks against both instead of relying on
      ambient coroutine cancellation
    - CascadeReport is the caller-facing summary (HTTP boundary, tests, logs)
"""

import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable

from concord.core.domain_types import CascadeRoot, CascadeState, InvocationId
from concord.core.errors import ConcordError
from concord.core.invocation_log import Invocation


class CascadeCancelled(Exception):
    """The owning cascade was cancelled or ran past its deadline."""


class TaskTimeout(asyncio.TimeoutError):
    """await_task's own `timeout` elapsed (not a timeout raised by the task)."""


@dataclass
class CascadeReport:
    """Outcome of running one cascade."""
    root: CascadeRoot
    state: CascadeState
    invocations: list[InvocationId] = field(default_factory=list)
    faults: list[ConcordError] = field(default_factory=list)
    depth_exceeded: bool = False

    @property
    def drained(self) -> bool:
        return self.state is CascadeState.DRAINED

    def to_dict(self) -> dict:
        return {
            "root": self.root,
            "state": self.state.value,
            "invocations": list(self.invocations),
            "faults": [
                {"code": f.code, "message": f.message, "rule": f.context.rule}
                for f in self.faults
            ],
            "depth_exceeded": self.depth_exceeded,
        }


class Cascade:
    """Mutable processing state for one cascade run."""

    def __init__(self, root: CascadeRoot, timeout: float | None = None):
        self.root = root
        self.state = CascadeState.PENDING
        self.queue: deque[Invocation] = deque()
        self.produced: list[InvocationId] = []
        self.faults: list[ConcordError] = []
        self.depth_exceeded = False
        self._token = asyncio.Event()
        loop = asyncio.get_running_loop()
        self._deadline = loop.time() + timeout if timeout is not None else None

    @property
    def cancelled(self) -> bool:
        return self._token.is_set()

    def cancel(self) -> None:
        self._token.set()

    def remaining(self) -> float | None:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - asyncio.get_running_loop().time())

    def check(self) -> None:
        """Raise CascadeCancelled if the token is set or the deadline passed."""
        if not self.cancelled and self.remaining() == 0.0:
            self.cancel()
        if self.cancelled:
            raise CascadeCancelled(f"cascade {self.root} cancelled")

    async def await_task(
        self, awaitable: Awaitable[Any], timeout: float | None = None,
    ) -> Any:
        """Await `awaitable` as a task, bounded by `timeout`, the deadline and the token.

        Raises TaskTimeout when only `timeout` elapsed, and
        CascadeCancelled when the cascade was cancelled or hit its deadline.
        """
        try:
            self.check()
        except CascadeCancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise
        limit = _min_timeout(timeout, self.remaining())
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._token.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, timeout=limit,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if task in done:
            return task.result()
        task.cancel()
        self.check()
        raise TaskTimeout()

    def record_fault(self, fault: ConcordError) -> None:
        self.faults.append(fault)

    def report(self) -> CascadeReport:
        return CascadeReport(
            root=self.root,
            state=self.state,
            invocations=list(self.produced),
            faults=list(self.faults),
            depth_exceeded=self.depth_exceeded,
        )


def _min_timeout(a: float | None, b: float | None) -> float | None:
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)
