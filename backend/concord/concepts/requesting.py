"""Requesting Concept — the HTTP boundary component with request/respond actions.

Invariants:
    - request() creates exactly one pending request and returns {"request": id}
    - respond() completes a pending request once; later responds return {error}
    - respond() for an unknown request returns {error}, never raises
    - Pending requests live in memory until the gateway discards them
    - Operations are request, respond and get_pending; the helpers used by
      the gateway (response_of, wait_response, discard) are plain methods

Design Decisions:
    - asyncio.Future per request: the HTTP route awaits it after the cascade drains
    - The response payload is everything passed to respond() except `request`
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable
from uuid import uuid4

from concord.core.domain_types import ERROR_FIELD, RequestId

logger = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    """One in-flight request awaiting a rule-dispatched respond."""
    id: RequestId
    path: str
    params: dict[str, Any]
    response: asyncio.Future = field(repr=False)


class RequestingConcept:
    """Boundary component: models inbound requests as actions."""

    def __init__(self):
        self._pending: dict[RequestId, PendingRequest] = {}

    async def request(self, path: str, **params: Any) -> dict:
        """Register an inbound request; rules match on its path and params."""
        request_id = RequestId(uuid4().hex)
        loop = asyncio.get_running_loop()
        self._pending[request_id] = PendingRequest(
            request_id, path, dict(params), loop.create_future(),
        )
        return {"request": request_id}

    async def respond(self, request: str, **response: Any) -> dict:
        """Complete a pending request with `response` as its body."""
        pending = self._pending.get(RequestId(request))
        if pending is None:
            return {ERROR_FIELD: f"Request {request} not found"}
        if pending.response.done():
            return {ERROR_FIELD: f"Request {request} already responded"}
        pending.response.set_result(dict(response))
        return {"request": request}

    async def get_pending(self, request: str) -> dict:
        """Query: path and params of a pending request."""
        pending = self._pending.get(RequestId(request))
        if pending is None:
            return {ERROR_FIELD: f"Request {request} not found"}
        return {
            "request": pending.id, "path": pending.path,
            "params": dict(pending.params), "responded": pending.response.done(),
        }

    def response_of(self, request: RequestId) -> dict | None:
        """Response body if already responded, else None."""
        pending = self._pending.get(request)
        if pending is None or not pending.response.done():
            return None
        return pending.response.result()

    def wait_response(self, request: RequestId, timeout: float) -> Awaitable[dict]:
        """Awaitable response body; raises asyncio.TimeoutError.

        Plain method (not a coroutine function) so the registry does not
        expose it as an operation.
        """
        pending = self._pending[request]
        return asyncio.wait_for(asyncio.shield(pending.response), timeout)

    def discard(self, request: RequestId) -> None:
        pending = self._pending.pop(request, None)
        if pending is not None and not pending.response.done():
            pending.response.cancel()
            logger.info("Discarded unanswered request %s (%s)", request, pending.path,
                extra={"path": pending.path})
