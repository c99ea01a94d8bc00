"""Health check API router."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter
from pydantic import BaseModel

from .. import __version__
from ..services.backends import available_backends


class HealthResponse(BaseModel):
    """Schema describing the health check payload."""

    ok: bool


class BackendsResponse(BaseModel):
    version: str
    backends: List[str]


router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthResponse, summary="Service health status")
def read_health() -> HealthResponse:
    return HealthResponse(ok=True)


@router.get("/backends", response_model=BackendsResponse, summary="Installed markdown parsers")
def read_backends() -> BackendsResponse:
    """List the markdown backends ``backend="auto"`` can choose from, in order."""

    return BackendsResponse(version=__version__, backends=list(available_backends()))


__all__ = ["BackendsResponse", "HealthResponse", "read_backends", "read_health", "router"]
