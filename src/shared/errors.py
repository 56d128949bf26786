"""Protocol and harness exception classes, plus FastAPI exception handlers.

Protocol errors never surface as HTTP error statuses: every one of them is
rendered as ``200 {"result": "ERROR", "message": ...}``.
"""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request

from src.shared.constants import TOKEN_PATTERN_MESSAGE


class ProtocolError(Exception):
    """Base error for a request the session protocol rejects."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class ApiKeyError(ProtocolError):
    """The X-Api-Key header is missing or does not match the secret."""

    def __init__(self, detail: str = "Invalid API key") -> None:
        super().__init__(detail)


class MalformedRequestError(ProtocolError):
    """Missing field or unrecognised action."""

    def __init__(self, detail: str = "Malformed request") -> None:
        super().__init__(detail)


class TokenFormatError(ProtocolError):
    """Token does not match the required pattern."""

    def __init__(self, detail: str = TOKEN_PATTERN_MESSAGE) -> None:
        super().__init__(detail)


class NoActiveSessionError(ProtocolError):
    """ACTION or LOGOUT on a token that is not logged in."""

    def __init__(self, detail: str = "Token is not logged in") -> None:
        super().__init__(detail)


class SessionAlreadyActiveError(ProtocolError):
    """LOGIN on a token that already has a session."""

    def __init__(self, detail: str = "Token is already logged in") -> None:
        super().__init__(detail)


class UpstreamError(ProtocolError):
    """An upstream dependency failed, timed out, or was unreachable."""

    def __init__(self, upstream: str, detail: str = "") -> None:
        self.upstream = upstream
        super().__init__(detail or f"Upstream '{upstream}' failed")


class HarnessError(Exception):
    """Base exception for test-harness failures (never a protocol ERROR)."""

    pass


class StartupTimeout(HarnessError):
    """Raised when the service does not answer the readiness probe in time."""

    def __init__(self, url: str, attempts: int, output: str = "") -> None:
        self.url = url
        self.attempts = attempts
        self.output = output
        message = f"Service at {url} did not start after {attempts} attempts"
        if output:
            message += f"\n--- process output ---\n{output}"
        super().__init__(message)


class ProcessExitedError(HarnessError):
    """Raised when the service process exits before becoming ready."""

    def __init__(self, returncode: int | None, output: str = "") -> None:
        self.returncode = returncode
        self.output = output
        message = f"Service process exited with code {returncode} before becoming ready"
        if output:
            message += f"\n--- process output ---\n{output}"
        super().__init__(message)


class SupervisorBusyError(HarnessError):
    """Raised when a second service process is launched while one is alive."""

    def __init__(self, pid: int) -> None:
        self.pid = pid
        super().__init__(f"Service process {pid} is still running")


class ProtocolResponseError(HarnessError):
    """Raised when a response body is not a protocol result."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Unexpected response ({status_code}): {body[:200]}")


def error_body(detail: str) -> dict[str, str]:
    return {"result": "ERROR", "message": detail}


def register_exception_handlers(app: FastAPI) -> None:
    """Register protocol exception handlers with a FastAPI app."""

    @app.exception_handler(ProtocolError)
    async def protocol_error_handler(request: Request, exc: ProtocolError) -> JSONResponse:
        return JSONResponse(status_code=200, content=error_body(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(status_code=200, content=error_body("Malformed request"))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )
