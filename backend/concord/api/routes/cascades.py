"""Cascade Inspection — read-only view of a cascade retained in the log.

Invariants:
    - Only cascades still retained in the invocation log are visible
    - Unknown or evicted roots are 404 (ResourceNotFoundError)
"""

from fastapi import APIRouter, Depends

from concord.api.dependencies import get_engine
from concord.core.domain_types import CascadeRoot
from concord.core.errors import ResourceNotFoundError
from concord.schemas.cascade import CascadeResponse, InvocationResponse
from concord.services.sync_engine import SyncEngine

router = APIRouter(prefix="/api/v1/cascades", tags=["cascades"])


@router.get("/{root}", response_model=CascadeResponse)
async def get_cascade(root: int, engine: SyncEngine = Depends(get_engine)):
    """Logged invocations of one cascade, in append order."""
    invocations = engine.log.cascade(CascadeRoot(root))
    if not invocations:
        raise ResourceNotFoundError("Cascade", str(root))
    return CascadeResponse(
        root=root,
        running=engine.is_running(CascadeRoot(root)),
        invocations=[InvocationResponse(**inv.to_dict()) for inv in invocations],
    )
