"""Health check router for the Session service."""
from __future__ import annotations

import time

from fastapi import APIRouter, Request

from src.shared.constants import SESSION_SERVICE_NAME, VERSION
from src.shared.models.protocol import HealthStatus

router = APIRouter(tags=["health"])


@router.get("/api/health")
async def health(request: Request) -> HealthStatus:
    """Health check endpoint returning service status."""
    return HealthStatus(
        service_name=SESSION_SERVICE_NAME,
        version=VERSION,
        active_sessions=len(request.app.state.store),
        uptime_seconds=time.time() - request.app.state.start_time,
    )
