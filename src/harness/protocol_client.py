"""HTTP client for the session protocol endpoint.

Every call is a single form-encoded POST; there are no retries and
transport errors propagate to the caller. The client keeps no session
state of its own.
"""
from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from src.shared.constants import API_KEY_HEADER, ENDPOINT_PATH
from src.shared.errors import ProtocolResponseError
from src.shared.models.protocol import ProtocolResult

logger = logging.getLogger(__name__)

# Marker for "send the configured API key"; pass None to omit the header.
USE_CONFIGURED_KEY: Any = object()


class ProtocolClient:
    """Submits LOGIN / ACTION / LOGOUT requests and parses the result."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        endpoint_path: str = ENDPOINT_PATH,
        timeout_s: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.endpoint_path = endpoint_path
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_s),
            transport=transport,
        )

    def submit(self, token: str, action: str) -> ProtocolResult:
        """Send *action* for *token* to the protocol endpoint."""
        return self.submit_to(token, action, self.endpoint_path)

    def submit_to(self, token: str, action: str, target: str) -> ProtocolResult:
        """Send *action* for *token* to an alternate *target* path or URL."""
        return self.send({"token": token, "action": action}, path=target)

    def send(
        self,
        form: dict[str, str],
        path: str | None = None,
        api_key: str | None = USE_CONFIGURED_KEY,
    ) -> ProtocolResult:
        """Post an arbitrary *form* and parse the result.

        Args:
            form: Form fields; omit a key to leave the field out.
            path: Target path (or absolute URL); defaults to the endpoint.
            api_key: Header value; ``None`` omits the header entirely.
        """
        resp = self.post(form, path=path, api_key=api_key)
        try:
            return ProtocolResult.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            raise ProtocolResponseError(resp.status_code, resp.text) from exc

    def post(
        self,
        form: dict[str, str],
        path: str | None = None,
        api_key: str | None = USE_CONFIGURED_KEY,
    ) -> httpx.Response:
        """Post *form* and return the raw response."""
        headers: dict[str, str] = {}
        key = self.api_key if api_key is USE_CONFIGURED_KEY else api_key
        if key is not None:
            headers[API_KEY_HEADER] = key
        target = path or self.endpoint_path

        logger.debug("POST %s form=%s api_key_sent=%s", target, form, key is not None)
        resp = self._client.post(target, data=form, headers=headers)
        logger.debug("<- %d %s", resp.status_code, resp.text)
        return resp

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> ProtocolClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
