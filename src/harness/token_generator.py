"""Random session tokens for tests."""
from __future__ import annotations

import secrets

from src.shared.constants import TOKEN_LENGTH

TOKEN_ALPHABET: str = "0123456789ABCDEF"


def generate_token(length: int = TOKEN_LENGTH) -> str:
    """Return *length* symbols drawn uniformly from :data:`TOKEN_ALPHABET`.

    Uses :mod:`secrets`, so tokens are suitable as credentials.
    """
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))
