"""Requesting Routes — the HTTP boundary of the engine.

Invariants:
    - POST {base_url}/{path} with a JSON object body, or GET with query params,
      becomes Requesting.request {path: "/<path>", **params}
    - The Requesting.respond payload is the response body, verbatim
    - A body carrying `error` is returned with HTTP 400
    - No respond within request_timeout_seconds: 504 (RequestTimeoutError);
      effects the cascade already dispatched are NOT rolled back

Design Decisions:
    - Router built per app (build_router) because base_url is configuration
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from concord.api.dependencies import get_gateway
from concord.core.domain_types import is_error_output
from concord.services.request_gateway import RequestGateway

logger = logging.getLogger(__name__)


def build_router(base_url: str) -> APIRouter:
    router = APIRouter(prefix=base_url.rstrip("/"), tags=["requesting"])

    @router.post("/{path:path}")
    async def post_request(
        path: str,
        body: dict[str, Any] | None = Body(None),
        gateway: RequestGateway = Depends(get_gateway),
    ):
        """Request with a JSON object body."""
        return _to_response(await gateway.handle(path, body or {}))

    @router.get("/{path:path}")
    async def get_request(
        path: str, request: Request,
        gateway: RequestGateway = Depends(get_gateway),
    ):
        """Request with query parameters as input."""
        return _to_response(await gateway.handle(path, dict(request.query_params)))

    return router


def _to_response(body: dict) -> JSONResponse:
    if is_error_output(body):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content=jsonable_encoder(body),
        )
    return JSONResponse(status_code=status.HTTP_200_OK, content=jsonable_encoder(body))
