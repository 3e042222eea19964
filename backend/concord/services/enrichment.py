"""Enrichment Stage — runs a rule's optional `where` against its matched frames.

Invariants:
    - Rules without `where` pass frames through unchanged
    - An empty Frames result means "denied / precondition failed": silent, no fault
    - A fault in `where` drops only the frame(s) it belongs to; siblings survive
    - Every returned frame descends from an input frame (same support) and
      keeps every existing binding; violations drop that frame with a fault
    - CascadeCancelled always propagates to the scheduler

Design Decisions:
    - Full batch first, then per-frame isolation only after a fault: `where` is
      read-only, so re-running it for one frame is safe
    - The stage timeout is a fault for the whole batch (no per-frame retry):
      a slow dependency would only time out again. A TimeoutError raised
      inside `where` itself is an ordinary fault and gets per-frame isolation
"""

import logging

from concord.core.domain_types import FaultKind
from concord.core.errors import BindingConflictError, EngineFault, ErrorContext
from concord.core.frames import Frame, Frames
from concord.core.invocation_log import Invocation
from concord.core.protocols import FaultSink
from concord.core.rules import Rule
from concord.services.cascade import Cascade, CascadeCancelled, TaskTimeout

logger = logging.getLogger(__name__)


class EnrichmentStage:
    """Applies Rule.where with fault isolation, timeout and frame validation."""

    def __init__(self, sink: FaultSink, timeout_seconds: float | None = 10.0):
        self._sink = sink
        self._timeout = timeout_seconds

    async def run(
        self, rule: Rule, frames: Frames, cascade: Cascade, trigger: Invocation,
    ) -> Frames:
        if rule.where is None or not frames:
            return frames
        try:
            result = await cascade.await_task(rule.where(frames), self._timeout)
        except CascadeCancelled:
            raise
        except TaskTimeout as e:
            self._fault(
                rule, trigger, cascade,
                f"where of '{rule.name}' timed out after {self._timeout}s "
                f"({len(frames)} frame(s) dropped)", e,
            )
            return Frames()
        except Exception as e:
            if len(frames) == 1:
                self._fault(rule, trigger, cascade, f"where of '{rule.name}' failed: {e}", e)
                return Frames()
            logger.warning(
                "where of %s failed on a batch of %d; isolating frames",
                rule.name, len(frames),
                extra={"rule": rule.name, "cascade_root": cascade.root},
            )
            return await self._run_isolated(rule, frames, cascade, trigger)
        return self._validate(rule, frames, result, cascade, trigger)

    async def _run_isolated(
        self, rule: Rule, frames: Frames, cascade: Cascade, trigger: Invocation,
    ) -> Frames:
        survivors: list[Frame] = []
        for frame in frames:
            single = Frames(frame)
            try:
                result = await cascade.await_task(rule.where(single), self._timeout)
            except CascadeCancelled:
                raise
            except Exception as e:
                self._fault(
                    rule, trigger, cascade,
                    f"where of '{rule.name}' failed for support {frame.support}: {e}", e,
                )
                continue
            survivors.extend(self._validate(rule, single, result, cascade, trigger))
        return Frames.of(survivors)

    def _validate(
        self,
        rule: Rule,
        inputs: Frames,
        result: object,
        cascade: Cascade,
        trigger: Invocation,
    ) -> Frames:
        if not isinstance(result, (Frames, list, tuple)):
            self._fault(
                rule, trigger, cascade,
                f"where of '{rule.name}' returned {type(result).__name__}, not Frames",
            )
            return Frames()
        by_support = {f.support: f for f in inputs}
        valid: list[Frame] = []
        for out in result:
            if not isinstance(out, Frame):
                self._fault(
                    rule, trigger, cascade,
                    f"where of '{rule.name}' returned a {type(out).__name__} item",
                )
                continue
            origin = by_support.get(out.support)
            if origin is None:
                self._fault(
                    rule, trigger, cascade,
                    f"where of '{rule.name}' returned a frame not derived from its input",
                )
                continue
            try:
                valid.append(origin.extend(out.bindings))
            except BindingConflictError as e:
                self._fault(rule, trigger, cascade, e.message, e, FaultKind.BINDING)
        return Frames.of(valid)

    def _fault(
        self,
        rule: Rule,
        trigger: Invocation,
        cascade: Cascade,
        message: str,
        cause: BaseException | None = None,
        kind: FaultKind = FaultKind.ENRICHMENT,
    ) -> None:
        fault = EngineFault(
            message, kind,
            ErrorContext(
                rule=rule.name, invocation_id=trigger.id,
                cascade_root=cascade.root, depth=trigger.depth,
            ),
            cause=cause,
        )
        cascade.record_fault(fault)
        self._sink.report(fault)
