"""Pattern Matcher — joins a rule's when-patterns into frames around one invocation.

Invariants:
    - The triggering invocation occupies at least one position of every frame
    - Candidates come from the trigger's cascade only, with id <= trigger id
    - Each later candidate is a causal ancestor or descendant of some invocation
      already in the partial frame's support
    - One invocation fills at most one position of a frame
    - Variables unify across patterns; a disagreeing candidate is discarded
    - No match returns an empty Frames, never raises

Design Decisions:
    - Nested-loop join over the (cascade, action) index of the InvocationLog:
      candidate lists are small (one request's episode), so no hash join
    - Seeding every position the trigger can fill: combinations whose latest
      member is the trigger are found exactly once, when the trigger is processed
"""

from types import MappingProxyType
from typing import Any, Mapping

from concord.core.frames import Frame, Frames
from concord.core.invocation_log import Invocation, InvocationLog
from concord.core.patterns import Pattern, match_pattern
from concord.core.rules import Rule

_Partial = tuple[dict[int, Invocation], dict[str, Any]]


def match_invocation(pat: Pattern, inv: Invocation, bindings: Mapping[str, Any]):
    """Unify one pattern with one logged invocation; None on mismatch."""
    return match_pattern(pat, inv.action, inv.input, inv.output, bindings)


def match_rule(rule: Rule, trigger: Invocation, log: InvocationLog) -> Frames:
    """All frames of `rule` that include `trigger`, in deterministic order."""
    frames: list[Frame] = []
    seen: set[tuple[int, ...]] = set()
    for position, pat in enumerate(rule.when):
        seed = match_invocation(pat, trigger, {})
        if seed is None:
            continue
        for placed, bindings in _join(rule.when, position, trigger, seed, log):
            support = tuple(placed[i].id for i in range(len(rule.when)))
            if support in seen:
                continue
            seen.add(support)
            frames.append(Frame(MappingProxyType(bindings), support, trigger.root))
    return Frames.of(frames)


def _join(
    patterns: tuple[Pattern, ...],
    seeded: int,
    trigger: Invocation,
    seed: dict[str, Any],
    log: InvocationLog,
) -> list[_Partial]:
    partials: list[_Partial] = [({seeded: trigger}, seed)]
    for index, pat in enumerate(patterns):
        if index == seeded:
            continue
        candidates = log.candidates(pat.action, trigger.root, trigger.id)
        extended: list[_Partial] = []
        for placed, bindings in partials:
            used = {inv.id for inv in placed.values()}
            for cand in candidates:
                if cand.id in used:
                    continue
                if not any(log.related(cand.id, inv_id) for inv_id in used):
                    continue
                joined = match_invocation(pat, cand, bindings)
                if joined is None:
                    continue
                extended.append(({**placed, index: cand}, joined))
        if not extended:
            return []
        partials = extended
    return partials
