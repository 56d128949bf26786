"""Shared configuration management using pydantic-settings."""
from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

from src.shared.constants import (
    DEFAULT_API_KEY,
    ENDPOINT_PATH,
    MOCK_PORT,
    READY_ATTEMPTS,
    READY_INTERVAL_S,
    SERVICE_PORT,
    UPSTREAM_TIMEOUT_S,
)


class SharedConfig(BaseSettings):
    """Base configuration shared by the service and the harness."""
    log_level: str = Field(default="info", validation_alias="LOG_LEVEL")

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }


class SessionServiceConfig(SharedConfig):
    """Configuration for the Session service."""
    secret: str = Field(default=DEFAULT_API_KEY, validation_alias="SECRET")
    mock_url: str = Field(
        default=f"http://localhost:{MOCK_PORT}", validation_alias="MOCK_URL"
    )
    host: str = Field(default="127.0.0.1", validation_alias="SERVICE_HOST")
    port: int = Field(default=SERVICE_PORT, validation_alias="SERVICE_PORT")
    endpoint_path: str = Field(default=ENDPOINT_PATH, validation_alias="ENDPOINT_PATH")
    upstream_timeout_s: float = Field(
        default=UPSTREAM_TIMEOUT_S, gt=0, validation_alias="UPSTREAM_TIMEOUT_S"
    )


class HarnessConfig(SharedConfig):
    """Configuration for the integration-test harness."""
    api_key: str = Field(default=DEFAULT_API_KEY, validation_alias="HARNESS_API_KEY")
    service_host: str = Field(default="127.0.0.1", validation_alias="HARNESS_SERVICE_HOST")
    service_port: int = Field(default=SERVICE_PORT, validation_alias="HARNESS_SERVICE_PORT")
    mock_host: str = Field(default="127.0.0.1", validation_alias="HARNESS_MOCK_HOST")
    mock_port: int = Field(default=MOCK_PORT, validation_alias="HARNESS_MOCK_PORT")
    endpoint_path: str = Field(default=ENDPOINT_PATH, validation_alias="HARNESS_ENDPOINT_PATH")
    service_command: str | None = Field(
        default=None, validation_alias="HARNESS_SERVICE_COMMAND"
    )
    service_workdir: Path | None = Field(
        default=None, validation_alias="HARNESS_SERVICE_WORKDIR"
    )
    ready_attempts: int = Field(default=READY_ATTEMPTS, ge=1)
    ready_interval_s: float = Field(default=READY_INTERVAL_S, gt=0)
    ready_probe_timeout_s: float = Field(default=0.5, gt=0)
    terminate_grace_s: float = Field(default=5.0, gt=0)
    request_timeout_s: float = Field(default=30.0, gt=0)

    @property
    def service_url(self) -> str:
        return f"http://{self.service_host}:{self.service_port}"

    @property
    def mock_url(self) -> str:
        return f"http://{self.mock_host}:{self.mock_port}"
