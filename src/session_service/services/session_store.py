"""In-memory session table keyed by token.

Each token has its own ``asyncio.Lock``; a request holds the lock of its
token for the whole check-delegate-commit sequence, so at most one request
per token is in flight and a token never has two sessions.
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

from src.shared.models.protocol import Session


class SessionStore:
    """Lock-protected mapping of token -> Session."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def guard(self, token: str) -> AsyncIterator[None]:
        """Serialise all work on *token*."""
        lock = self._locks.setdefault(token, asyncio.Lock())
        self._waiters[token] = self._waiters.get(token, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[token] -= 1
            if self._waiters[token] == 0:
                del self._waiters[token]
                del self._locks[token]

    def get(self, token: str) -> Session | None:
        return self._sessions.get(token)

    def is_active(self, token: str) -> bool:
        return token in self._sessions

    def create(self, token: str) -> Session:
        if token in self._sessions:
            raise KeyError(f"session already exists for {token}")
        session = Session(token=token)
        self._sessions[token] = session
        return session

    def touch(self, token: str) -> Session:
        session = self._sessions[token]
        session.last_action_at = datetime.now(timezone.utc)
        session.action_count += 1
        return session

    def remove(self, token: str) -> Session:
        return self._sessions.pop(token)

    def __len__(self) -> int:
        return len(self._sessions)
