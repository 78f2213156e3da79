"""Health check endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter
from pydantic import BaseModel

from contentsync.backends.base import BackendState
from contentsync.backends.selector import backend_state

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    backend: str


@router.get("/api/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint for monitoring and load balancers."""
    state = backend_state()
    healthy = state in (BackendState.SQL_CONNECTED, BackendState.REST_CONNECTED)
    if not healthy:
        logger.warning("Health check: backend state is %s", state)
    return HealthResponse(
        status="ok" if healthy else "degraded",
        version="0.1.0",
        backend=str(state),
    )
