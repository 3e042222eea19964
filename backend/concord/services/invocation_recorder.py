"""Invocation Recorder — writes drained cascades to the SQL audit table.

Invariants:
    - Implements InvocationRepository (core/protocols.py)
    - A persistence failure is logged as a warning and never reaches the cascade
    - Each invocation is written at most once per process (re-processed
      cascades only add their new invocations)

Design Decisions:
    - Session factory injected (db_manager.session in the app, a test factory
      in tests): the recorder owns no engine
    - Values that are not JSON-native are stored as their str()
"""

import json
import logging
import uuid
from collections import OrderedDict
from contextlib import AbstractAsyncContextManager
from typing import Any, Callable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from concord.core.domain_types import CascadeRoot, InvocationId
from concord.core.invocation_log import Invocation
from concord.models.invocation_record import InvocationRecord

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def _jsonable(value: Any) -> Any:
    return json.loads(json.dumps(value, default=str))


class SqlInvocationRecorder:
    """InvocationRepository backed by SQLAlchemy async sessions."""

    def __init__(
        self,
        session_factory: SessionFactory,
        run_id: str | None = None,
        max_tracked_cascades: int = 1000,
    ):
        self._session_factory = session_factory
        self.run_id = run_id or uuid.uuid4().hex
        self._max_tracked = max_tracked_cascades
        self._saved: OrderedDict[CascadeRoot, set[InvocationId]] = OrderedDict()

    async def save_cascade(self, invocations: Sequence[Invocation]) -> None:
        if not invocations:
            return
        root = invocations[0].root
        saved = self._saved.get(root, set())
        fresh = [inv for inv in invocations if inv.id not in saved]
        if not fresh:
            return
        try:
            async with self._session_factory() as db:
                db.add_all([self._to_record(inv) for inv in fresh])
                await db.commit()
        except Exception as e:
            logger.warning(
                f"Failed to record cascade {root}: {e}",
                extra={"cascade_root": root},
            )
            return
        self._saved[root] = saved | {inv.id for inv in fresh}
        self._saved.move_to_end(root)
        while len(self._saved) > self._max_tracked:
            self._saved.popitem(last=False)

    def _to_record(self, inv: Invocation) -> InvocationRecord:
        return InvocationRecord(
            run_id=self.run_id,
            invocation_id=inv.id,
            cascade_root=inv.root,
            depth=inv.depth,
            component=inv.component,
            operation=inv.operation,
            input=_jsonable(dict(inv.input)),
            output=_jsonable(dict(inv.output)),
            caused_by=sorted(inv.caused_by),
            is_error=inv.failed,
            created_at=inv.timestamp,
        )
