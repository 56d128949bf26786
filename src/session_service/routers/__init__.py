"""Session service routers."""
from src.session_service.routers.endpoint import create_endpoint_router
from src.session_service.routers.health import router as health_router

__all__ = [
    "create_endpoint_router",
    "health_router",
]
