"""Shared test fixtures for the session-harness test suite."""
from __future__ import annotations

import asyncio
from typing import Callable, Generator

import httpx
import pytest
from fastapi.testclient import TestClient

from src.harness.token_generator import generate_token
from src.session_service.main import create_app
from src.shared.config import SessionServiceConfig
from src.shared.constants import API_KEY_HEADER, AUTH_PATH, DEFAULT_API_KEY, DO_ACTION_PATH


class FakeUpstream:
    """Scriptable stand-in for ``/auth`` and ``/doAction`` behind httpx.MockTransport."""

    def __init__(self) -> None:
        self.statuses: dict[str, int] = {AUTH_PATH: 200, DO_ACTION_PATH: 200}
        self.errors: dict[str, Callable[[httpx.Request], Exception]] = {}
        self.delay_s: float = 0.0
        self.calls: list[httpx.Request] = []

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        path = request.url.path
        if path in self.errors:
            raise self.errors[path](request)
        return httpx.Response(self.statuses.get(path, 404), json={"result": "OK"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def count(self, path: str) -> int:
        return sum(1 for r in self.calls if r.url.path == path)

    def fail_with_timeout(self, path: str) -> None:
        self.errors[path] = lambda request: httpx.ReadTimeout("timed out", request=request)

    def fail_with_connect_error(self, path: str) -> None:
        self.errors[path] = lambda request: httpx.ConnectError("refused", request=request)


@pytest.fixture
def token() -> str:
    """Provide a fresh valid token."""
    return generate_token()


@pytest.fixture
def fake_upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def service_config() -> SessionServiceConfig:
    """Provide a SessionServiceConfig pointing at a fake upstream host."""
    return SessionServiceConfig(
        secret=DEFAULT_API_KEY,
        mock_url="http://upstream.test",
        upstream_timeout_s=1.0,
    )


@pytest.fixture
def service_client(
    service_config: SessionServiceConfig, fake_upstream: FakeUpstream
) -> Generator[TestClient, None, None]:
    """TestClient for the session service with faked upstream calls."""
    app = create_app(service_config, upstream_transport=fake_upstream.transport)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def submit(service_client: TestClient) -> Callable[..., dict]:
    """Post token/action with the correct API key and return the JSON body."""

    def _submit(token: str, action: str) -> dict:
        resp = service_client.post(
            "/endpoint",
            data={"token": token, "action": action},
            headers={API_KEY_HEADER: DEFAULT_API_KEY},
        )
        assert resp.status_code == 200
        return resp.json()

    return _submit
