"""Dispatcher — turns a surviving frame into concrete action calls and logs them.

Invariants:
    - Literal values pass through; Variables are substituted from the frame
    - A Variable absent from the frame (or a Wildcard) omits the field: no
      sentinel or None is ever fabricated
    - Each dispatched call is logged with caused_by = frame.support
    - Component exceptions become {"error": ...} invocations plus an EngineFault;
      they never escape into the cascade
    - Calls that would exceed max_depth are not issued (CycleDetectedError)

Design Decisions:
    - perform() is shared with the external boundary (SyncEngine.invoke), so a
      root action and a dispatched action normalize outputs identically
    - Output normalization: None -> {}, Mapping -> dict, anything else is an
      error output (actions return structured results)
"""

import logging
from typing import Any, Mapping

from concord.core.domain_types import ERROR_FIELD, FaultKind
from concord.core.errors import CycleDetectedError, EngineFault, ErrorContext
from concord.core.frames import Frame
from concord.core.invocation_log import Invocation, InvocationLog
from concord.core.patterns import ActionRef, Literal, Pattern, Variable
from concord.core.protocols import FaultSink
from concord.core.rules import Rule
from concord.services.cascade import Cascade, CascadeCancelled
from concord.services.concept_registry import ConceptRegistry

logger = logging.getLogger(__name__)

_MISSING = object()


def resolve_inputs(pat: Pattern, frame: Frame) -> dict[str, Any]:
    """Resolve a then-pattern's inputs against a frame; unbound fields are omitted."""
    resolved = {}
    for name, value in pat.inputs.items():
        if isinstance(value, Literal):
            resolved[name] = value.value
        elif isinstance(value, Variable):
            bound = frame.get(value, _MISSING)
            if bound is not _MISSING:
                resolved[name] = bound
    return resolved


class Dispatcher:
    """Issues then-pattern calls through the ConceptRegistry and logs results."""

    def __init__(
        self,
        concepts: ConceptRegistry,
        log: InvocationLog,
        sink: FaultSink,
        max_depth: int = 32,
    ):
        self._concepts = concepts
        self._log = log
        self._sink = sink
        self._max_depth = max_depth

    async def dispatch(
        self, rule: Rule, frame: Frame, cascade: Cascade,
    ) -> list[Invocation]:
        """Fire every then-pattern of `rule` for `frame`; returns new invocations."""
        depth = 1 + max(self._log.get(i).depth for i in frame.support)
        if depth > self._max_depth:
            fault = CycleDetectedError(
                self._max_depth,
                ErrorContext(
                    rule=rule.name, invocation_id=frame.support[-1],
                    cascade_root=cascade.root, depth=depth,
                ),
            )
            cascade.depth_exceeded = True
            cascade.record_fault(fault)
            self._sink.report(fault)
            return []

        produced = []
        for pat in rule.then:
            input = resolve_inputs(pat, frame)
            context = ErrorContext(
                rule=rule.name, cascade_root=cascade.root, depth=depth,
                debug_info={"support": list(frame.support)},
            )
            output = await self.perform(pat.action, input, cascade, context)
            invocation = self._log.append(pat.action, input, output, frame.support)
            logger.debug(
                "Dispatched %s from %s", pat.action, rule.name,
                extra={
                    "rule": rule.name, "invocation_id": invocation.id,
                    "cascade_root": cascade.root, "depth": invocation.depth,
                },
            )
            produced.append(invocation)
        return produced

    async def perform(
        self,
        action: ActionRef,
        input: Mapping[str, Any],
        cascade: Cascade | None,
        context: ErrorContext,
    ) -> dict[str, Any]:
        """Call an action and return a normalized output (never raises, except cancel)."""
        if not self._concepts.has(action):
            self._fault(
                f"{action} is not registered", cascade, context,
                kind=FaultKind.RESOLUTION,
            )
            return {ERROR_FIELD: f"{action} is not registered"}
        call = self._concepts.call(action, input)
        try:
            if cascade is not None:
                result = await cascade.await_task(call)
            else:
                result = await call
        except CascadeCancelled:
            raise
        except Exception as e:
            self._fault(
                f"{action} raised {type(e).__name__}: {e}", cascade, context, e,
            )
            return {ERROR_FIELD: f"{action} failed"}
        if result is None:
            return {}
        if isinstance(result, Mapping):
            return dict(result)
        self._fault(
            f"{action} returned {type(result).__name__}, expected a mapping",
            cascade, context,
        )
        return {ERROR_FIELD: f"{action} returned an invalid result"}

    def _fault(
        self,
        message: str,
        cascade: Cascade | None,
        context: ErrorContext,
        cause: BaseException | None = None,
        kind: FaultKind = FaultKind.DISPATCH,
    ) -> None:
        fault = EngineFault(message, kind, context, cause=cause)
        if cascade is not None:
            cascade.record_fault(fault)
        self._sink.report(fault)
