"""Request validation for the session endpoint.

Checks run in a fixed order and the first failure wins:

1. API key
2. action recognised, token and action present
3. token pattern
"""
from __future__ import annotations

import re
import secrets
from dataclasses import dataclass

from src.shared.constants import TOKEN_PATTERN
from src.shared.errors import ApiKeyError, MalformedRequestError, TokenFormatError
from src.shared.models.protocol import Action

_TOKEN_RE = re.compile(TOKEN_PATTERN)


@dataclass(frozen=True)
class ValidatedRequest:
    token: str
    action: Action


def check_api_key(presented: str | None, secret: str) -> None:
    """Raise ApiKeyError unless *presented* equals *secret* exactly."""
    if not presented:
        raise ApiKeyError("Missing API key")
    if not secrets.compare_digest(presented.encode("utf-8"), secret.encode("utf-8")):
        raise ApiKeyError()


def parse_action(raw: str | None) -> Action:
    if not raw:
        raise MalformedRequestError("Missing action")
    try:
        return Action(raw)
    except ValueError:
        raise MalformedRequestError(f"Unknown action: {raw}") from None


def is_valid_token(token: str) -> bool:
    return _TOKEN_RE.fullmatch(token) is not None


def validate_request(
    api_key: str | None,
    token: str | None,
    action: str | None,
    secret: str,
) -> ValidatedRequest:
    """Validate one endpoint request.

    Raises:
        ApiKeyError: Header missing, empty, or not an exact match.
        MalformedRequestError: Action missing or unknown, or token missing.
        TokenFormatError: Token does not match ``^[0-9A-Z]{32}$``.
    """
    check_api_key(api_key, secret)
    parsed = parse_action(action)
    if not token:
        raise MalformedRequestError("Missing token")
    if not is_valid_token(token):
        raise TokenFormatError()
    return ValidatedRequest(token=token, action=parsed)
