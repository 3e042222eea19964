"""Health & Readiness Probes — liveness and readiness endpoints.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 unless the engine is built and, when
      persistence is enabled, the database is reachable (readiness)
"""

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

import concord.infrastructure.database as database

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {"status": "healthy", "service": "concord", "version": "0.1.0"}


@router.get("/ready")
async def readiness_check(request: Request):
    """Readiness probe — engine built, database reachable when enabled."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        return _not_ready("engine_unavailable")
    checks = {
        "engine": "healthy",
        "rules": len(engine.rules),
        "invocations": len(engine.log),
    }
    if request.app.state.settings.persist_invocations:
        manager = database.db_manager
        db_ok = await manager.health_check() if manager else False
        if not db_ok:
            return _not_ready("database_unavailable")
        checks["database"] = "healthy"
    return {"status": "ready", "checks": checks}


def _not_ready(reason: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "not_ready", "reason": reason},
    )
