"""Pydantic v2 models for the session protocol and the upstream stubs."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Action(str, Enum):
    """Actions accepted by the session endpoint."""
    LOGIN = "LOGIN"
    ACTION = "ACTION"
    LOGOUT = "LOGOUT"


class ProtocolResult(BaseModel):
    """The sole observable output of the session endpoint."""
    result: Literal["OK", "ERROR"]
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.result == "OK"

    @classmethod
    def success(cls) -> ProtocolResult:
        return cls(result="OK")


class Session(BaseModel):
    """Server-side record that a token is logged in."""
    token: str
    created_at: datetime = Field(default_factory=_utcnow)
    last_action_at: datetime | None = None
    action_count: int = 0


class StubResponse(BaseModel):
    """Canned response served by the upstream mock for one path."""
    status: int = Field(default=200, ge=100, le=599)
    body: Any = Field(default_factory=lambda: {"result": "OK"})
    headers: dict[str, str] = Field(default_factory=dict)
    delay_s: float = Field(default=0.0, ge=0)


class RecordedRequest(BaseModel):
    """A request received by the upstream mock."""
    method: str
    path: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: str = ""
    received_at: datetime = Field(default_factory=_utcnow)


class HealthStatus(BaseModel):
    """Health status of the session service."""
    status: str = Field(
        default="healthy",
        pattern=r"^(healthy|degraded|unhealthy)$"
    )
    service_name: str
    version: str
    active_sessions: int = 0
    uptime_seconds: float
    details: dict[str, Any] = Field(default_factory=dict)

    model_config = {"from_attributes": True}
