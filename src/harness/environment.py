"""Per-test environment: upstream mock + service process + protocol client.

Entering starts the mock, launches the service pointed at it and waits
for readiness. Leaving terminates the service, resets the mock's stubs
and stops the mock, on every exit path.
"""
from __future__ import annotations

import logging
import shlex
import sys
from typing import Any

from src.harness.process_supervisor import ProcessSupervisor, ServiceProcess
from src.harness.protocol_client import ProtocolClient
from src.harness.upstream_mock import UpstreamMock
from src.shared.config import HarnessConfig

logger = logging.getLogger(__name__)


def build_service_command(config: HarnessConfig) -> list[str]:
    """Command line for the service-under-test.

    ``HARNESS_SERVICE_COMMAND`` may use ``{secret}``, ``{mock_url}`` and
    ``{port}`` placeholders; without it the bundled service is run with
    the current interpreter.
    """
    if not config.service_command:
        return [sys.executable, "-m", "src.session_service"]
    rendered = config.service_command.format(
        secret=config.api_key,
        mock_url=config.mock_url,
        port=config.service_port,
    )
    return shlex.split(rendered)


def build_service_env(config: HarnessConfig) -> dict[str, str]:
    return {
        "SECRET": config.api_key,
        "MOCK_URL": config.mock_url,
        "SERVICE_HOST": config.service_host,
        "SERVICE_PORT": str(config.service_port),
        "ENDPOINT_PATH": config.endpoint_path,
        "LOG_LEVEL": config.log_level,
    }


class HarnessEnvironment:
    """Context manager owning one test's mock, service process and client."""

    def __init__(
        self,
        config: HarnessConfig | None = None,
        mock: UpstreamMock | None = None,
        supervisor: ProcessSupervisor | None = None,
    ) -> None:
        self.config = config or HarnessConfig()
        self.mock = mock or UpstreamMock(port=self.config.mock_port, host=self.config.mock_host)
        self.supervisor = supervisor or ProcessSupervisor(
            ready_attempts=self.config.ready_attempts,
            ready_interval_s=self.config.ready_interval_s,
            probe_timeout_s=self.config.ready_probe_timeout_s,
            terminate_grace_s=self.config.terminate_grace_s,
        )
        self.process: ServiceProcess | None = None
        self.client: ProtocolClient | None = None

    def __enter__(self) -> HarnessEnvironment:
        self.mock.start()
        try:
            self.process = self.supervisor.launch(
                build_service_command(self.config),
                env=build_service_env(self.config),
                cwd=self.config.service_workdir,
            )
            self.supervisor.await_ready(self.config.service_url + "/", self.process)
            self.client = ProtocolClient(
                self.config.service_url,
                api_key=self.config.api_key,
                endpoint_path=self.config.endpoint_path,
                timeout_s=self.config.request_timeout_s,
            )
        except BaseException:
            self.close()
            raise
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Tear down in reverse order: client, process, stubs, mock."""
        if self.client is not None:
            self.client.close()
            self.client = None
        try:
            if self.process is not None:
                self.supervisor.terminate(self.process)
                self.process = None
        finally:
            self.mock.reset_stubs()
            self.mock.stop()
