"""Tests for the LOGIN / ACTION / LOGOUT state machine."""
from __future__ import annotations

import asyncio

import pytest

from src.session_service.services.session_manager import SessionManager
from src.session_service.services.session_store import SessionStore
from src.session_service.services.upstream_client import UpstreamClient
from src.shared.constants import AUTH_PATH, DO_ACTION_PATH
from src.shared.errors import NoActiveSessionError, SessionAlreadyActiveError, UpstreamError
from src.shared.models.protocol import Action

TOKEN = "0123456789ABCDEF0123456789ABCDEF"


@pytest.fixture
def manager(fake_upstream) -> SessionManager:
    upstream = UpstreamClient("http://upstream.test", 1.0, transport=fake_upstream.transport)
    return SessionManager(SessionStore(), upstream)


class TestLogin:
    @pytest.mark.asyncio
    async def test_creates_session(self, manager, fake_upstream):
        result = await manager.handle(TOKEN, Action.LOGIN)
        assert result.ok
        assert manager.store.is_active(TOKEN)
        assert fake_upstream.count(AUTH_PATH) == 1

    @pytest.mark.asyncio
    async def test_double_login_rejected_without_upstream_call(self, manager, fake_upstream):
        await manager.handle(TOKEN, Action.LOGIN)
        original = manager.store.get(TOKEN)
        with pytest.raises(SessionAlreadyActiveError):
            await manager.handle(TOKEN, Action.LOGIN)
        assert manager.store.get(TOKEN) is original
        assert fake_upstream.count(AUTH_PATH) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 500, 503])
    async def test_upstream_status_failure_creates_nothing(self, manager, fake_upstream, status):
        fake_upstream.statuses[AUTH_PATH] = status
        with pytest.raises(UpstreamError):
            await manager.handle(TOKEN, Action.LOGIN)
        assert not manager.store.is_active(TOKEN)

    @pytest.mark.asyncio
    async def test_upstream_timeout_creates_nothing(self, manager, fake_upstream):
        fake_upstream.fail_with_timeout(AUTH_PATH)
        with pytest.raises(UpstreamError):
            await manager.handle(TOKEN, Action.LOGIN)
        assert not manager.store.is_active(TOKEN)

    @pytest.mark.asyncio
    async def test_retry_after_upstream_failure_is_first_login(self, manager, fake_upstream):
        fake_upstream.statuses[AUTH_PATH] = 500
        with pytest.raises(UpstreamError):
            await manager.handle(TOKEN, Action.LOGIN)
        fake_upstream.statuses[AUTH_PATH] = 200
        assert (await manager.handle(TOKEN, Action.LOGIN)).ok

    @pytest.mark.asyncio
    async def test_concurrent_logins_yield_one_session(self, manager, fake_upstream):
        fake_upstream.delay_s = 0.02
        results = await asyncio.gather(
            manager.handle(TOKEN, Action.LOGIN),
            manager.handle(TOKEN, Action.LOGIN),
            return_exceptions=True,
        )
        oks = [r for r in results if not isinstance(r, Exception)]
        errors = [r for r in results if isinstance(r, SessionAlreadyActiveError)]
        assert len(oks) == 1
        assert len(errors) == 1
        assert fake_upstream.count(AUTH_PATH) == 1


class TestAction:
    @pytest.mark.asyncio
    async def test_without_login_never_calls_upstream(self, manager, fake_upstream):
        with pytest.raises(NoActiveSessionError):
            await manager.handle(TOKEN, Action.ACTION)
        assert fake_upstream.count(DO_ACTION_PATH) == 0

    @pytest.mark.asyncio
    async def test_success_keeps_session(self, manager, fake_upstream):
        await manager.handle(TOKEN, Action.LOGIN)
        assert (await manager.handle(TOKEN, Action.ACTION)).ok
        assert manager.store.get(TOKEN).action_count == 1
        assert fake_upstream.count(DO_ACTION_PATH) == 1

    @pytest.mark.asyncio
    async def test_upstream_failure_keeps_session(self, manager, fake_upstream):
        await manager.handle(TOKEN, Action.LOGIN)
        fake_upstream.fail_with_connect_error(DO_ACTION_PATH)
        with pytest.raises(UpstreamError):
            await manager.handle(TOKEN, Action.ACTION)
        assert manager.store.is_active(TOKEN)
        assert manager.store.get(TOKEN).action_count == 0


class TestLogout:
    @pytest.mark.asyncio
    async def test_removes_session_without_upstream_call(self, manager, fake_upstream):
        await manager.handle(TOKEN, Action.LOGIN)
        calls_before = len(fake_upstream.calls)
        assert (await manager.handle(TOKEN, Action.LOGOUT)).ok
        assert not manager.store.is_active(TOKEN)
        assert len(fake_upstream.calls) == calls_before

    @pytest.mark.asyncio
    async def test_without_login_fails_twice(self, manager):
        for _ in range(2):
            with pytest.raises(NoActiveSessionError):
                await manager.handle(TOKEN, Action.LOGOUT)
        assert len(manager.store) == 0

    @pytest.mark.asyncio
    async def test_logged_out_token_behaves_like_new(self, manager, fake_upstream):
        await manager.handle(TOKEN, Action.LOGIN)
        await manager.handle(TOKEN, Action.LOGOUT)
        with pytest.raises(NoActiveSessionError):
            await manager.handle(TOKEN, Action.ACTION)
        assert (await manager.handle(TOKEN, Action.LOGIN)).ok
