"""Session protocol endpoint."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Form, Header, Request

from src.session_service.services.validator import validate_request
from src.shared.constants import SESSION_SERVICE_NAME
from src.shared.models.protocol import ProtocolResult

logger = logging.getLogger(f"{SESSION_SERVICE_NAME}.endpoint")


def create_endpoint_router(path: str) -> APIRouter:
    """Build the router serving the protocol endpoint at *path*."""
    router = APIRouter(tags=["session"])

    @router.post(path, response_model=ProtocolResult, response_model_exclude_none=True)
    async def submit(
        request: Request,
        token: str | None = Form(default=None),
        action: str | None = Form(default=None),
        x_api_key: str | None = Header(default=None),
    ) -> ProtocolResult:
        """Validate the request, then apply it to the token's session."""
        validated = validate_request(
            api_key=x_api_key,
            token=token,
            action=action,
            secret=request.app.state.config.secret,
        )
        return await request.app.state.manager.handle(validated.token, validated.action)

    return router
