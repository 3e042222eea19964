"""Sync Engine — scheduler driving when → where → then over each new invocation.

Invariants:
    - One cascade per root trigger, processed breadth-first in append order
    - Rules triggered by the same invocation run in registration order, and
      each rule's dispatches complete before the next rule is evaluated
    - (rule name, support tuple) fires at most once per process, so
      re-processing an invocation never dispatches twice; every frame the
      where-stage derives from one support dispatches in that same firing
    - Retention never evicts a cascade that is still running; it stays
      queued until a later drain can evict it
    - A cancelled or timed-out cascade stops before its next stage; effects
      already dispatched stay (at-least-once, not transactional)
    - Faults are reported and recorded on the cascade, never raised to callers

Design Decisions:
    - Explicit deque work queue + depth stored on each invocation, no native
      recursion: cascade depth stays bounded and inspectable
    - Queries are rejected at the boundary: only actions start cascades
    - Drained cascades are handed to the optional InvocationRepository, then
      evicted from the log beyond `retention` most recent cascades
"""

import asyncio
import logging
from collections import deque
from typing import Any, Iterable, Mapping

from concord.core.domain_types import (
    CascadeRoot, CascadeState, InvocationId, OperationKind,
)
from concord.core.errors import (
    ErrorContext, InvalidInvocationError, RuleDefinitionError,
)
from concord.core.frames import Frames
from concord.core.invocation_log import Invocation, InvocationLog
from concord.core.matcher import match_rule
from concord.core.patterns import ActionRef
from concord.core.protocols import FaultSink, InvocationRepository
from concord.core.rule_registry import RuleRegistry
from concord.core.rules import Rule
from concord.infrastructure.observability import LoggingFaultSink
from concord.services.cascade import Cascade, CascadeCancelled, CascadeReport
from concord.services.concept_registry import ConceptRegistry
from concord.services.dispatcher import Dispatcher
from concord.services.enrichment import EnrichmentStage

logger = logging.getLogger(__name__)


class SyncEngine:
    """Observes invocations, matches rules, enriches frames, dispatches actions."""

    def __init__(
        self,
        concepts: ConceptRegistry,
        rules: RuleRegistry | Iterable[Rule],
        log: InvocationLog | None = None,
        *,
        max_cascade_depth: int = 32,
        enrichment_timeout: float | None = 10.0,
        retention: int | None = None,
        sink: FaultSink | None = None,
        repository: InvocationRepository | None = None,
    ):
        self.concepts = concepts
        self.rules = rules if isinstance(rules, RuleRegistry) else RuleRegistry(rules)
        self.log = log or InvocationLog()
        self.sink = sink or LoggingFaultSink()
        self._repository = repository
        self._retention = retention
        self._enrichment = EnrichmentStage(self.sink, enrichment_timeout)
        self._dispatcher = Dispatcher(concepts, self.log, self.sink, max_cascade_depth)
        self._fired: set[tuple[str, tuple[InvocationId, ...]]] = set()
        self._fired_by_root: dict[CascadeRoot, set] = {}
        self._active: dict[CascadeRoot, Cascade] = {}
        self._drained: deque[CascadeRoot] = deque()

    # ─── Startup ────────────────────────────────────────────────

    def validate(self) -> None:
        """Check every then-target is a registered action; freeze both registries."""
        for rule in self.rules:
            for pat in rule.then:
                if not self.concepts.has(pat.action):
                    raise RuleDefinitionError(
                        rule.name, f"then-target {pat.action} is not registered",
                    )
            for pat in rule.when:
                if not self.concepts.has(pat.action):
                    logger.warning(
                        "Rule %s listens for unregistered action %s",
                        rule.name, pat.action, extra={"rule": rule.name},
                    )
        self.rules.freeze()
        self.concepts.freeze()

    # ─── External boundary ──────────────────────────────────────

    async def invoke(
        self,
        action: ActionRef | str,
        input: Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> CascadeReport:
        """Call an action as a root trigger and run its cascade to completion."""
        ref = ActionRef.parse(action) if isinstance(action, str) else action
        if self.concepts.kind(ref) is OperationKind.QUERY:
            raise InvalidInvocationError(str(ref), "queries do not start cascades")
        input = dict(input or {})
        output = await self._dispatcher.perform(
            ref, input, None, ErrorContext(debug_info={"boundary": True}),
        )
        root = self.log.append(ref, input, output)
        return await self.process(root, timeout=timeout)

    def record(
        self,
        action: ActionRef | str,
        input: Mapping[str, Any],
        output: Mapping[str, Any],
    ) -> Invocation:
        """Log an externally completed action as a new root (not processed)."""
        ref = ActionRef.parse(action) if isinstance(action, str) else action
        return self.log.append(ref, input, output)

    async def process(
        self, invocation: Invocation, *, timeout: float | None = None,
    ) -> CascadeReport:
        """Run the cascade seeded by an already-logged invocation until drained."""
        cascade = Cascade(invocation.root, timeout)
        cascade.queue.append(invocation)
        self._active[cascade.root] = cascade
        try:
            while cascade.queue:
                await self._step(cascade.queue.popleft(), cascade)
            cascade.state = CascadeState.DRAINED
        except CascadeCancelled:
            cascade.state = CascadeState.CANCELLED
            logger.warning(
                "Cascade %s cancelled with %d invocation(s) unprocessed",
                cascade.root, len(cascade.queue),
                extra={"cascade_root": cascade.root},
            )
        except asyncio.CancelledError:
            cascade.cancel()
            cascade.state = CascadeState.CANCELLED
            raise
        finally:
            self._active.pop(cascade.root, None)
        await self._finish(cascade)
        return cascade.report()

    def is_running(self, root: CascadeRoot) -> bool:
        return root in self._active

    def cancel(self, root: CascadeRoot) -> bool:
        """Set the cancellation token of a running cascade."""
        cascade = self._active.get(root)
        if cascade is None:
            return False
        cascade.cancel()
        return True

    # ─── Pipeline ───────────────────────────────────────────────

    async def _step(self, invocation: Invocation, cascade: Cascade) -> None:
        for rule in self.rules.rules_for(invocation.action):
            cascade.check()
            cascade.state = CascadeState.MATCHING
            frames = self._unfired(rule, match_rule(rule, invocation, self.log))
            if not frames:
                continue

            cascade.state = CascadeState.ENRICHING
            frames = await self._enrichment.run(rule, frames, cascade, invocation)

            cascade.state = CascadeState.DISPATCHING
            batch: set[tuple[str, tuple[InvocationId, ...]]] = set()
            for frame in frames:
                cascade.check()
                key = (rule.name, frame.support)
                if key not in batch:
                    if key in self._fired:
                        continue
                    batch.add(key)
                    self._fired.add(key)
                    self._fired_by_root.setdefault(cascade.root, set()).add(key)
                produced = await self._dispatcher.dispatch(rule, frame, cascade)
                cascade.produced.extend(inv.id for inv in produced)
                cascade.queue.extend(produced)
        cascade.state = CascadeState.PENDING

    def _unfired(self, rule: Rule, frames: Frames) -> Frames:
        return frames.filter(lambda f: (rule.name, f.support) not in self._fired)

    async def _finish(self, cascade: Cascade) -> None:
        logger.info(
            "Cascade %s %s: %d dispatched, %d fault(s)",
            cascade.root, cascade.state.value, len(cascade.produced),
            len(cascade.faults), extra={"cascade_root": cascade.root},
        )
        if cascade.state is not CascadeState.DRAINED:
            return
        if self._repository is not None:
            await self._repository.save_cascade(self.log.cascade(cascade.root))
        if self._retention is None:
            return
        if cascade.root not in self._drained:
            self._drained.append(cascade.root)
        excess = len(self._drained) - self._retention
        for oldest in list(self._drained)[:max(0, excess)]:
            if oldest in self._active:
                continue
            self._drained.remove(oldest)
            self.log.forget_cascade(oldest)
            self._fired -= self._fired_by_root.pop(oldest, set())
