"""Shared constants used by the session service and the test harness."""
from __future__ import annotations

# Application version
VERSION: str = "1.0.0"

# Port numbers
SERVICE_PORT: int = 8080
MOCK_PORT: int = 8888

# Service names
SESSION_SERVICE_NAME: str = "session-service"
UPSTREAM_MOCK_NAME: str = "upstream-mock"

# Protocol
ENDPOINT_PATH: str = "/endpoint"
API_KEY_HEADER: str = "X-Api-Key"
DEFAULT_API_KEY: str = "qazWSXedc"

# Tokens
TOKEN_LENGTH: int = 32
TOKEN_PATTERN: str = r"^[0-9A-Z]{32}$"
TOKEN_PATTERN_MESSAGE: str = f'token: должно соответствовать "{TOKEN_PATTERN}"'

# Upstream dependency paths
AUTH_PATH: str = "/auth"
DO_ACTION_PATH: str = "/doAction"

# Upstream call bound; must stay below any induced stub delay used in tests
UPSTREAM_TIMEOUT_S: float = 3.0

# Readiness polling
READY_ATTEMPTS: int = 40
READY_INTERVAL_S: float = 0.5
