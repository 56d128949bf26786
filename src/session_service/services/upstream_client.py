"""Client for the upstream ``auth`` and ``doAction`` dependencies."""
from __future__ import annotations

import asyncio
import logging

import httpx

from src.shared.constants import AUTH_PATH, DO_ACTION_PATH, SESSION_SERVICE_NAME
from src.shared.errors import UpstreamError

logger = logging.getLogger(f"{SESSION_SERVICE_NAME}.upstream")


class UpstreamClient:
    """Calls the upstream dependencies with a bounded timeout.

    Any non-2xx status, transport failure, or timeout is raised as
    :class:`UpstreamError`.
    """

    def __init__(
        self,
        base_url: str,
        timeout_s: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_s),
            transport=transport,
        )

    async def _post(self, name: str, path: str, token: str) -> None:
        # httpx bounds each phase; the outer timeout bounds the whole call
        try:
            async with asyncio.timeout(self.timeout_s):
                resp = await self._client.post(path, data={"token": token})
        except (httpx.TimeoutException, TimeoutError) as exc:
            logger.warning("Upstream %s timed out after %ss: %s", name, self.timeout_s, exc)
            raise UpstreamError(name, f"Upstream '{name}' timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("Upstream %s unreachable: %s", name, exc)
            raise UpstreamError(name, f"Upstream '{name}' unavailable") from exc

        if not resp.is_success:
            logger.warning("Upstream %s answered %d", name, resp.status_code)
            raise UpstreamError(
                name, f"Upstream '{name}' answered {resp.status_code}"
            )

    async def authenticate(self, token: str) -> None:
        await self._post("auth", AUTH_PATH, token)

    async def do_action(self, token: str) -> None:
        await self._post("doAction", DO_ACTION_PATH, token)

    async def aclose(self) -> None:
        await self._client.aclose()
