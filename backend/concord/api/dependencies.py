"""Route Dependencies — engine objects built by create_app(), read from app.state.

Invariants:
    - create_app() stores engine and gateway on app.state before serving
    - Routes never construct engine objects themselves
"""

from fastapi import Request

from concord.services.request_gateway import RequestGateway
from concord.services.sync_engine import SyncEngine


def get_engine(request: Request) -> SyncEngine:
    return request.app.state.engine


def get_gateway(request: Request) -> RequestGateway:
    return request.app.state.gateway
