"""Passthrough Policy — decides whether an HTTP route calls a component directly.

Invariants:
    - Exclusions win over inclusions; unlisted routes follow `default`
    - Every inclusion carries a justification string (why bypassing rules is safe)
    - Routes are "/<Component>/<operation>" paths; only those resolve to a target
    - Passthrough calls bypass the engine entirely and are never logged

Design Decisions:
    - Policy is configuration (JSON file), not engine contract
    - audit() lists unverified routes at startup: every registered operation
      that is neither included nor excluded is logged once as a warning
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from concord.core.errors import ConcordError, ErrorCategory, ErrorSeverity
from concord.core.patterns import ActionRef

logger = logging.getLogger(__name__)


def route_of(ref: ActionRef) -> str:
    return f"/{ref.component}/{ref.operation}"


def target_of(path: str) -> ActionRef | None:
    """ActionRef named by a "/<Component>/<operation>" path, else None."""
    parts = [p for p in path.split("/") if p]
    if len(parts) != 2:
        return None
    return ActionRef(parts[0], parts[1])


@dataclass
class PassthroughPolicy:
    """Inclusion/exclusion lists plus the default for unlisted routes."""
    inclusions: dict[str, str] = field(default_factory=dict)
    exclusions: set[str] = field(default_factory=set)
    default: bool = False

    @classmethod
    def from_file(cls, path: str | Path, default: bool = False) -> "PassthroughPolicy":
        """Load `{"inclusions": {route: justification}, "exclusions": [route]}`."""
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ConcordError(
                f"Cannot load passthrough config {path}: {e}",
                "PASSTHROUGH_CONFIG_ERROR", ErrorCategory.CONFIGURATION,
                ErrorSeverity.CRITICAL,
            ) from e
        inclusions = raw.get("inclusions", {})
        if not isinstance(inclusions, dict):
            raise ConcordError(
                "passthrough inclusions must map route -> justification",
                "PASSTHROUGH_CONFIG_ERROR", ErrorCategory.CONFIGURATION,
                ErrorSeverity.CRITICAL,
            )
        return cls(
            inclusions={_normalize(r): str(j) for r, j in inclusions.items()},
            exclusions={_normalize(r) for r in raw.get("exclusions", [])},
            default=default,
        )

    def is_passthrough(self, path: str) -> bool:
        route = _normalize(path)
        if route in self.exclusions:
            return False
        if route in self.inclusions:
            return True
        return self.default

    def audit(self, refs: Iterable[ActionRef]) -> list[str]:
        """Log and return routes of `refs` that are neither included nor excluded."""
        unverified = sorted(
            route for route in map(route_of, refs)
            if route not in self.inclusions and route not in self.exclusions
        )
        for route in unverified:
            logger.warning(
                "Passthrough route %s is unverified (default: %s)",
                route, "passthrough" if self.default else "engine",
                extra={"path": route},
            )
        return unverified


def _normalize(route: str) -> str:
    return "/" + route.strip("/")
