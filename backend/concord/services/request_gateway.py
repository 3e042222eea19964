"""Request Gateway — turns an HTTP request into a Requesting.request cascade.

Invariants:
    - Passthrough routes call the component directly: no invocation, no rules
    - Every other request is logged as a Requesting.request root invocation
      and its cascade runs under the request timeout
    - The first Requesting.respond for the request is the response body
    - A request with no response within the timeout raises RequestTimeoutError;
      mutations already dispatched by its cascade stay (at-least-once)
    - Pending requests are always discarded when handle() returns or raises

Design Decisions:
    - record() + process() instead of invoke(): the gateway needs the request
      id returned by Requesting.request before the cascade runs
    - After the cascade drains, the remaining timeout is still awaited: a
      concurrent cascade may respond to this request
"""

import asyncio
import logging
from typing import Any, Mapping

from concord.concepts.requesting import RequestingConcept
from concord.core.domain_types import REQUESTING, RequestId
from concord.core.errors import (
    ErrorContext, InvalidInvocationError, RequestTimeoutError,
    UnknownOperationError,
)
from concord.core.patterns import ActionRef
from concord.services.passthrough import PassthroughPolicy, target_of
from concord.services.sync_engine import SyncEngine

logger = logging.getLogger(__name__)

REQUEST_ACTION = ActionRef(REQUESTING, "request")


class RequestGateway:
    """Orchestrates one HTTP request: passthrough call or engine cascade."""

    def __init__(
        self,
        engine: SyncEngine,
        requesting: RequestingConcept,
        policy: PassthroughPolicy | None = None,
        timeout_seconds: float = 15.0,
    ):
        self._engine = engine
        self._requesting = requesting
        self._policy = policy or PassthroughPolicy()
        self._timeout = timeout_seconds

    async def handle(self, path: str, params: Mapping[str, Any]) -> dict:
        """Response body for `path` (may be an {error} body)."""
        path = "/" + path.strip("/")
        if self._policy.is_passthrough(path):
            return await self._passthrough(path, params)
        return await self._through_engine(path, params)

    async def _passthrough(self, path: str, params: Mapping[str, Any]) -> dict:
        ref = target_of(path)
        if ref is None:
            raise UnknownOperationError(path, "*", ErrorContext(path=path))
        op = self._engine.concepts.operation(ref)
        logger.debug("Passthrough %s", ref, extra={"path": path})
        try:
            result = await op.fn(**params)
        except TypeError as e:
            raise InvalidInvocationError(str(ref), str(e), ErrorContext(path=path)) from e
        if result is None:
            return {}
        return dict(result) if isinstance(result, Mapping) else {"result": result}

    async def _through_engine(self, path: str, params: Mapping[str, Any]) -> dict:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout
        input = {**params, "path": path}
        output = await self._requesting.request(**input)
        request_id = RequestId(output["request"])
        try:
            root = self._engine.record(REQUEST_ACTION, input, output)
            report = await self._engine.process(root, timeout=self._timeout)
            response = self._requesting.response_of(request_id)
            if response is not None:
                return response
            remaining = deadline - loop.time()
            if report.drained and remaining > 0:
                try:
                    return await self._requesting.wait_response(request_id, remaining)
                except asyncio.TimeoutError:
                    pass
            logger.warning(
                "Request %s to %s not answered (cascade %s %s)",
                request_id, path, report.root, report.state.value,
                extra={"path": path, "cascade_root": report.root},
            )
            raise RequestTimeoutError(
                self._timeout,
                ErrorContext(path=path, cascade_root=report.root),
            )
        finally:
            self._requesting.discard(request_id)
