"""Frames — variable-binding environments produced by matching a rule.

Invariants:
    - Frame is immutable: extend() returns a new frame, bindings are read-only
    - A bound variable never changes value within a frame (extend raises
      BindingConflictError on a different value)
    - support holds one InvocationId per when-pattern, in pattern order
    - Frames() (empty) means "rule does not fire"; it is a normal value, not an error

Design Decisions:
    - Frames is a plain immutable sequence; an empty one is falsy, so
      "did not fire" reads as `if not frames`
    - query/filter/map helpers keep enrichment code declarative; query() calls
      only what it is given, so read-only discipline stays with the rule author
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Iterable, Iterator, Mapping

from concord.core.domain_types import ERROR_FIELD, CascadeRoot, InvocationId
from concord.core.errors import BindingConflictError
from concord.core.patterns import Literal, Variable, Wildcard

_MISSING = object()


def _key(var: Variable | str) -> str:
    return var.name if isinstance(var, Variable) else var


@dataclass(frozen=True)
class Frame:
    """One consistent assignment of variables plus the invocations justifying it."""
    bindings: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    support: tuple[InvocationId, ...] = ()
    root: CascadeRoot | None = None

    def __post_init__(self):
        if not isinstance(self.bindings, MappingProxyType):
            object.__setattr__(self, "bindings", MappingProxyType(dict(self.bindings)))

    def __getitem__(self, var: Variable | str) -> Any:
        return self.bindings[_key(var)]

    def __contains__(self, var: object) -> bool:
        if isinstance(var, (Variable, str)):
            return _key(var) in self.bindings
        return False

    def get(self, var: Variable | str, default: Any = None) -> Any:
        return self.bindings.get(_key(var), default)

    def extend(self, values: Mapping[Variable | str, Any] | None = None, **named: Any) -> "Frame":
        """Return a new frame with extra bindings; rebinding to a new value raises."""
        merged = dict(self.bindings)
        incoming = {_key(k): v for k, v in (values or {}).items()}
        incoming.update(named)
        for name, value in incoming.items():
            bound = merged.get(name, _MISSING)
            if bound is not _MISSING and bound != value:
                raise BindingConflictError(name, bound, value)
            merged[name] = value
        return Frame(MappingProxyType(merged), self.support, self.root)

    def as_dict(self) -> dict[str, Any]:
        return dict(self.bindings)


QueryFn = Callable[..., Awaitable[Any]]


class Frames:
    """Immutable, possibly-empty collection of frames."""

    __slots__ = ("_frames",)

    def __init__(self, *frames: Frame):
        for f in frames:
            if not isinstance(f, Frame):
                raise TypeError(f"Frames holds Frame objects, got {type(f).__name__}")
        self._frames: tuple[Frame, ...] = tuple(frames)

    @classmethod
    def of(cls, frames: Iterable[Frame]) -> "Frames":
        return cls(*frames)

    def __iter__(self) -> Iterator[Frame]:
        return iter(self._frames)

    def __len__(self) -> int:
        return len(self._frames)

    def __bool__(self) -> bool:
        return bool(self._frames)

    def __getitem__(self, index: int) -> Frame:
        return self._frames[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Frames):
            return self._frames == other._frames
        return NotImplemented

    def __repr__(self) -> str:
        return f"Frames({len(self._frames)})"

    def filter(self, predicate: Callable[[Frame], bool]) -> "Frames":
        return Frames.of(f for f in self._frames if predicate(f))

    def map(self, fn: Callable[[Frame], Frame]) -> "Frames":
        return Frames.of(fn(f) for f in self._frames)

    async def query(
        self,
        fn: QueryFn,
        inputs: Mapping[str, Any],
        outputs: Mapping[str, Variable | str],
    ) -> "Frames":
        """Run an async query per frame and bind its result fields.

        inputs values may be Variables (resolved from the frame) or raw values.
        The query may return a mapping (one row), a list of mappings (one
        frame per row), or {"error": ...}. Errors and empty results drop the
        frame; a row missing an output field drops that row.
        """
        produced: list[Frame] = []
        for frame in self._frames:
            kwargs = _resolve_query_inputs(frame, inputs)
            if kwargs is None:
                continue
            result = await fn(**kwargs)
            for row in _result_rows(result):
                extra = {}
                for out_field, var in outputs.items():
                    if out_field not in row:
                        break
                    extra[_key(var)] = row[out_field]
                else:
                    bound = _try_extend(frame, extra)
                    if bound is not None:
                        produced.append(bound)
        return Frames.of(produced)


def _resolve_query_inputs(frame: Frame, inputs: Mapping[str, Any]) -> dict | None:
    kwargs = {}
    for name, value in inputs.items():
        if isinstance(value, Variable):
            resolved = frame.get(value, _MISSING)
            if resolved is _MISSING:
                return None
            kwargs[name] = resolved
        elif isinstance(value, Literal):
            kwargs[name] = value.value
        elif isinstance(value, Wildcard):
            continue
        else:
            kwargs[name] = value
    return kwargs


def _result_rows(result: Any) -> list[Mapping[str, Any]]:
    if result is None:
        return []
    if isinstance(result, Mapping):
        return [] if ERROR_FIELD in result else [result]
    if isinstance(result, (list, tuple)):
        return [r for r in result if isinstance(r, Mapping) and ERROR_FIELD not in r]
    return []


def _try_extend(frame: Frame, extra: Mapping[str, Any]) -> Frame | None:
    # A query row that disagrees with an existing binding simply does not join.
    try:
        return frame.extend(extra)
    except BindingConflictError:
        return None
