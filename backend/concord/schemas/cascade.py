"""Cascade Schemas — response models for the cascade inspection endpoint.

Invariants:
    - Mirrors Invocation.to_dict(): ids, action, input, output, lineage
    - CascadeResponse.invocations are in log (append) order
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class InvocationResponse(BaseModel):
    """One logged invocation."""
    id: int
    component: str
    operation: str
    input: dict[str, Any]
    output: dict[str, Any]
    caused_by: list[int] = Field(default_factory=list)
    root: int
    depth: int = Field(ge=0)
    timestamp: datetime


class CascadeResponse(BaseModel):
    """A cascade still retained in the invocation log."""
    root: int
    running: bool
    invocations: list[InvocationResponse]
