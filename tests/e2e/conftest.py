"""Fixtures for black-box E2E tests.

Every test gets its own service process and a freshly reset upstream
mock through :class:`HarnessEnvironment`; ports are chosen once per
session.
"""
from __future__ import annotations

from pathlib import Path
from typing import Generator

import pytest

from src.harness.environment import HarnessEnvironment
from src.harness.ports import find_free_port
from src.harness.protocol_client import ProtocolClient
from src.harness.upstream_mock import UpstreamMock
from src.shared.config import HarnessConfig

PROJECT_ROOT = Path(__file__).resolve().parents[2]


@pytest.fixture(scope="session")
def harness_config() -> HarnessConfig:
    """Harness configuration with session-wide free ports."""
    return HarnessConfig(
        service_port=find_free_port(),
        mock_port=find_free_port(),
        service_workdir=PROJECT_ROOT,
    )


@pytest.fixture
def harness(harness_config: HarnessConfig) -> Generator[HarnessEnvironment, None, None]:
    with HarnessEnvironment(harness_config) as environment:
        yield environment


@pytest.fixture
def client(harness: HarnessEnvironment) -> ProtocolClient:
    assert harness.client is not None
    return harness.client


@pytest.fixture
def upstream(harness: HarnessEnvironment) -> UpstreamMock:
    return harness.mock
