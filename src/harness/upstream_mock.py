"""Local HTTP stand-in for the session service's upstream dependencies.

The mock serves ``POST /auth`` and ``POST /doAction`` with configurable
canned responses. It runs uvicorn on a background thread so it keeps
answering the service's outbound calls while the test thread is blocked
on a request of its own.

Usage::

    mock = UpstreamMock(port=8888)
    mock.start()
    mock.stub("/auth", status=500)
    ...
    mock.reset_stubs()
    mock.stop()
"""
from __future__ import annotations

import asyncio
import json
import logging
import threading
import time
from typing import Any

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from src.shared.constants import AUTH_PATH, DO_ACTION_PATH, MOCK_PORT, UPSTREAM_MOCK_NAME
from src.shared.errors import HarnessError
from src.shared.models.protocol import RecordedRequest, StubResponse

logger = logging.getLogger(UPSTREAM_MOCK_NAME)

DEFAULT_STUB_PATHS: tuple[str, ...] = (AUTH_PATH, DO_ACTION_PATH)

_DELAY_POLL_S = 0.1
_START_TIMEOUT_S = 10.0
_STOP_TIMEOUT_S = 5.0


class StubTable:
    """Thread-safe path -> StubResponse mapping plus a request journal.

    The table is handed explicitly to the mock application; there is no
    module-level registry.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stubs: dict[str, StubResponse] = {}
        self._journal: list[RecordedRequest] = []
        self.install_defaults()

    def install_defaults(self) -> None:
        """(Re)install the default success stub on every default path."""
        with self._lock:
            for path in DEFAULT_STUB_PATHS:
                self._stubs[path] = StubResponse()

    def set(self, path: str, response: StubResponse) -> None:
        with self._lock:
            self._stubs[path] = response

    def match(self, path: str) -> StubResponse | None:
        with self._lock:
            return self._stubs.get(path)

    def record(self, request: RecordedRequest) -> None:
        with self._lock:
            self._journal.append(request)

    def requests(self, path: str | None = None) -> list[RecordedRequest]:
        with self._lock:
            return [r for r in self._journal if path is None or r.path == path]

    def reset(self) -> None:
        """Drop every override and the journal, keeping only the defaults."""
        with self._lock:
            self._stubs.clear()
            self._journal.clear()
        self.install_defaults()


def _render(stub: StubResponse) -> Response:
    if isinstance(stub.body, (dict, list)):
        return JSONResponse(stub.body, status_code=stub.status, headers=stub.headers)
    content = "" if stub.body is None else str(stub.body)
    return Response(content, status_code=stub.status, headers=stub.headers)


async def _hold(request: Request, delay_s: float, stopping: threading.Event) -> bool:
    """Sleep for *delay_s*; return False if the caller left or the mock stops."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + delay_s
    while True:
        remaining = deadline - loop.time()
        if remaining <= 0:
            return True
        if stopping.is_set() or await request.is_disconnected():
            return False
        await asyncio.sleep(min(_DELAY_POLL_S, remaining))


def create_mock_app(stubs: StubTable, stopping: threading.Event | None = None) -> FastAPI:
    """Build the ASGI app answering every request from *stubs*."""
    stopping = stopping or threading.Event()
    app = FastAPI(title=UPSTREAM_MOCK_NAME, openapi_url=None, docs_url=None, redoc_url=None)

    @app.api_route(
        "/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"]
    )
    async def serve(request: Request, path: str) -> Response:
        full_path = "/" + path
        body = await request.body()
        stubs.record(
            RecordedRequest(
                method=request.method,
                path=full_path,
                headers=dict(request.headers),
                body=body.decode("utf-8", errors="replace"),
            )
        )

        stub = stubs.match(full_path)
        if stub is None:
            logger.debug("No stub for %s %s", request.method, full_path)
            return JSONResponse(
                {"error": f"No stub matches {request.method} {full_path}"},
                status_code=404,
            )

        if stub.delay_s and not await _hold(request, stub.delay_s, stopping):
            logger.debug("Delayed stub for %s abandoned", full_path)
            return Response(status_code=504)

        logger.debug("Stub %s -> %d", full_path, stub.status)
        return _render(stub)

    return app


class UpstreamMock:
    """Runs the stub app on a fixed port in a background thread."""

    def __init__(self, port: int = MOCK_PORT, host: str = "127.0.0.1") -> None:
        self.host = host
        self.port = port
        self._stubs = StubTable()
        self._stopping = threading.Event()
        self._app = create_mock_app(self._stubs, self._stopping)
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def is_running(self) -> bool:
        return (
            self._server is not None
            and self._thread is not None
            and self._thread.is_alive()
        )

    def start(self) -> None:
        """Bind the listener; only re-applies the default stubs if running."""
        if self.is_running:
            self._stubs.install_defaults()
            return

        self._stopping.clear()
        config = uvicorn.Config(
            self._app,
            host=self.host,
            port=self.port,
            log_level="warning",
            lifespan="off",
            timeout_graceful_shutdown=1,
        )
        server = uvicorn.Server(config)
        thread = threading.Thread(
            target=server.run, name=f"upstream-mock-{self.port}", daemon=True
        )
        thread.start()

        deadline = time.monotonic() + _START_TIMEOUT_S
        while not server.started:
            if not thread.is_alive():
                raise HarnessError(f"Upstream mock failed to bind {self.url}")
            if time.monotonic() > deadline:
                server.should_exit = True
                raise HarnessError(f"Upstream mock did not start on {self.url}")
            time.sleep(0.01)

        self._server = server
        self._thread = thread
        self._stubs.install_defaults()
        logger.info("Upstream mock listening on %s", self.url)

    def stop(self) -> None:
        """Close the listener; a no-op when not running."""
        if self._server is None or self._thread is None:
            return
        self._stopping.set()
        self._server.should_exit = True
        self._thread.join(timeout=_STOP_TIMEOUT_S)
        if self._thread.is_alive():
            logger.warning("Upstream mock thread did not exit within %ss", _STOP_TIMEOUT_S)
        self._server = None
        self._thread = None
        logger.info("Upstream mock on %s stopped", self.url)

    def stub(
        self, path: str, response: StubResponse | None = None, **fields: Any
    ) -> StubResponse:
        """Override the response for *path* until :meth:`reset_stubs`.

        Either pass a ready :class:`StubResponse` or its fields, e.g.
        ``mock.stub("/auth", status=500)`` or ``mock.stub("/auth", delay_s=10)``.
        """
        if response is None:
            response = StubResponse(**fields)
        elif fields:
            response = response.model_copy(update=fields)
        self._stubs.set(path, response)
        logger.debug("Stubbed %s: %s", path, json.dumps(response.model_dump(mode="json")))
        return response

    def reset_stubs(self) -> None:
        self._stubs.reset()

    def requests(self, path: str | None = None) -> list[RecordedRequest]:
        return self._stubs.requests(path)

    def request_count(self, path: str) -> int:
        return len(self._stubs.requests(path))

    def __enter__(self) -> UpstreamMock:
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.reset_stubs()
        self.stop()
