"""Session service FastAPI application."""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI

from src.session_service.routers import create_endpoint_router, health_router
from src.session_service.services.session_manager import SessionManager
from src.session_service.services.session_store import SessionStore
from src.session_service.services.upstream_client import UpstreamClient
from src.shared.config import SessionServiceConfig
from src.shared.constants import SESSION_SERVICE_NAME, VERSION
from src.shared.errors import register_exception_handlers
from src.shared.logging import TraceIDMiddleware, setup_logging


def create_app(
    config: SessionServiceConfig | None = None,
    upstream_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the Session service application.

    Args:
        config: Service configuration; read from the environment when omitted.
        upstream_transport: Optional httpx transport for upstream calls,
            used to fake the dependencies in tests.
    """
    config = config or SessionServiceConfig()
    logger = setup_logging(SESSION_SERVICE_NAME, config.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan - initialize and cleanup resources."""
        app.state.start_time = time.time()
        app.state.upstream = UpstreamClient(
            config.mock_url,
            timeout_s=config.upstream_timeout_s,
            transport=upstream_transport,
        )
        app.state.manager = SessionManager(app.state.store, app.state.upstream)

        logger.info(
            "Service started: name=%s version=%s port=%d upstream=%s timeout=%ss",
            SESSION_SERVICE_NAME, VERSION, config.port,
            config.mock_url, config.upstream_timeout_s,
        )
        yield

        await app.state.upstream.aclose()
        logger.info("Service stopped: name=%s", SESSION_SERVICE_NAME)

    app = FastAPI(
        title="Session Service",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.store = SessionStore()

    app.add_middleware(TraceIDMiddleware)
    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(create_endpoint_router(config.endpoint_path))
    return app
