"""Per-token LOGIN / ACTION / LOGOUT state machine.

States per token are ``NoSession`` (absent from the store) and ``Active``.
Preconditions are checked before any upstream call; a failed upstream
call never changes the state.
"""
from __future__ import annotations

import logging

from src.session_service.services.session_store import SessionStore
from src.session_service.services.upstream_client import UpstreamClient
from src.shared.constants import SESSION_SERVICE_NAME
from src.shared.errors import NoActiveSessionError, SessionAlreadyActiveError
from src.shared.logging import mask_token
from src.shared.models.protocol import Action, ProtocolResult

logger = logging.getLogger(f"{SESSION_SERVICE_NAME}.sessions")


class SessionManager:
    """Applies validated requests to the session table."""

    def __init__(self, store: SessionStore, upstream: UpstreamClient) -> None:
        self.store = store
        self.upstream = upstream

    async def handle(self, token: str, action: Action) -> ProtocolResult:
        async with self.store.guard(token):
            if action is Action.LOGIN:
                await self._login(token)
            elif action is Action.ACTION:
                await self._action(token)
            else:
                self._logout(token)
        return ProtocolResult.success()

    async def _login(self, token: str) -> None:
        if self.store.is_active(token):
            logger.info("LOGIN rejected for %s: already logged in", mask_token(token))
            raise SessionAlreadyActiveError()
        await self.upstream.authenticate(token)
        self.store.create(token)
        logger.info("LOGIN accepted for %s", mask_token(token))

    async def _action(self, token: str) -> None:
        if not self.store.is_active(token):
            logger.info("ACTION rejected for %s: no session", mask_token(token))
            raise NoActiveSessionError()
        await self.upstream.do_action(token)
        self.store.touch(token)
        logger.info("ACTION accepted for %s", mask_token(token))

    def _logout(self, token: str) -> None:
        if not self.store.is_active(token):
            logger.info("LOGOUT rejected for %s: no session", mask_token(token))
            raise NoActiveSessionError()
        self.store.remove(token)
        logger.info("LOGOUT accepted for %s", mask_token(token))
