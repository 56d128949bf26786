"""Lifecycle management for the service-under-test child process.

Launches the service with its configuration injected through the
environment, polls it until it answers HTTP, and terminates it. Merged
stdout/stderr is drained by a reader thread and kept for diagnostics.
At most one child is alive per supervisor.
"""
from __future__ import annotations

import logging
import os
import subprocess
import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Mapping, Sequence

import httpx

from src.shared.constants import READY_ATTEMPTS, READY_INTERVAL_S
from src.shared.errors import ProcessExitedError, StartupTimeout, SupervisorBusyError

logger = logging.getLogger(__name__)

_OUTPUT_MAX_LINES = 2000


@dataclass
class ServiceProcess:
    """Handle for a launched service process."""

    command: list[str]
    popen: subprocess.Popen[str]
    started_at: float = field(default_factory=time.monotonic)
    _lines: deque[str] = field(
        default_factory=lambda: deque(maxlen=_OUTPUT_MAX_LINES), init=False, repr=False
    )
    _reader: threading.Thread | None = field(default=None, init=False, repr=False)

    @property
    def pid(self) -> int:
        return self.popen.pid

    @property
    def returncode(self) -> int | None:
        return self.popen.poll()

    def is_alive(self) -> bool:
        return self.popen.poll() is None

    def output(self) -> str:
        """Captured stdout/stderr so far (most recent lines only)."""
        return "".join(list(self._lines))

    def _drain(self) -> None:
        stream = self.popen.stdout
        if stream is None:
            return
        for line in iter(stream.readline, ""):
            self._lines.append(line)
        stream.close()

    def start_reader(self) -> None:
        self._reader = threading.Thread(
            target=self._drain, name=f"service-output-{self.pid}", daemon=True
        )
        self._reader.start()

    def join_reader(self, timeout: float = 2.0) -> None:
        if self._reader is not None:
            self._reader.join(timeout=timeout)


class ProcessSupervisor:
    """Launch, probe, and terminate the service-under-test.

    Args:
        ready_attempts: Number of readiness probes before giving up.
        ready_interval_s: Pause between probes.
        probe_timeout_s: Connect/read timeout of a single probe.
        terminate_grace_s: Time allowed for a graceful exit before kill.
    """

    def __init__(
        self,
        ready_attempts: int = READY_ATTEMPTS,
        ready_interval_s: float = READY_INTERVAL_S,
        probe_timeout_s: float = 0.5,
        terminate_grace_s: float = 5.0,
    ) -> None:
        self.ready_attempts = ready_attempts
        self.ready_interval_s = ready_interval_s
        self.probe_timeout_s = probe_timeout_s
        self.terminate_grace_s = terminate_grace_s
        self._active: ServiceProcess | None = None

    @property
    def active(self) -> ServiceProcess | None:
        if self._active is not None and not self._active.is_alive():
            return None
        return self._active

    def launch(
        self,
        command: Sequence[str],
        env: Mapping[str, str] | None = None,
        cwd: Path | str | None = None,
    ) -> ServiceProcess:
        """Start *command* with *env* layered over the parent environment.

        Raises:
            SupervisorBusyError: A previously launched child is still alive.
        """
        current = self.active
        if current is not None:
            raise SupervisorBusyError(current.pid)

        child_env = dict(os.environ)
        child_env.update(env or {})
        cmd = [str(part) for part in command]
        logger.info("Launching service: %s (cwd=%s)", " ".join(cmd), cwd or os.getcwd())

        popen = subprocess.Popen(
            cmd,
            cwd=str(cwd) if cwd is not None else None,
            env=child_env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            text=True,
            errors="replace",
        )
        handle = ServiceProcess(command=cmd, popen=popen)
        handle.start_reader()
        self._active = handle
        return handle

    def await_ready(self, url: str, handle: ServiceProcess | None = None) -> int:
        """Poll *url* until anything answers with a status in [100, 599].

        Connection failures are retried. Returns the status code of the
        first answer.

        Raises:
            ProcessExitedError: *handle* exited before answering.
            StartupTimeout: No answer after ``ready_attempts`` probes.
        """
        logger.info(
            "Waiting for %s (attempts=%d, interval=%ss)",
            url, self.ready_attempts, self.ready_interval_s,
        )
        timeout = httpx.Timeout(self.probe_timeout_s)
        with httpx.Client(timeout=timeout) as client:
            for attempt in range(1, self.ready_attempts + 1):
                if handle is not None and not handle.is_alive():
                    handle.join_reader()
                    raise ProcessExitedError(handle.returncode, handle.output())
                try:
                    resp = client.get(url)
                except httpx.HTTPError as exc:
                    logger.debug("Probe %d/%d failed: %s", attempt, self.ready_attempts, exc)
                else:
                    if 100 <= resp.status_code <= 599:
                        logger.info("Service is up after %d probe(s): status %d",
                                    attempt, resp.status_code)
                        return resp.status_code
                time.sleep(self.ready_interval_s)

        output = handle.output() if handle is not None else ""
        raise StartupTimeout(url, self.ready_attempts, output)

    def terminate(self, handle: ServiceProcess | None = None) -> int | None:
        """Stop *handle* (default: the active child) and return its exit code.

        Sends SIGTERM, waits ``terminate_grace_s``, then kills. Safe to call
        on a process that has already exited.
        """
        handle = handle or self._active
        if handle is None:
            return None

        if handle.is_alive():
            logger.info("Terminating service pid=%d", handle.pid)
            handle.popen.terminate()
            try:
                handle.popen.wait(timeout=self.terminate_grace_s)
            except subprocess.TimeoutExpired:
                logger.warning("Service pid=%d ignored SIGTERM; killing", handle.pid)
                handle.popen.kill()
                try:
                    handle.popen.wait(timeout=self.terminate_grace_s)
                except subprocess.TimeoutExpired:
                    logger.error(
                        "Service pid=%d still alive %ss after SIGKILL",
                        handle.pid, self.terminate_grace_s,
                    )

        handle.join_reader()
        if handle is self._active:
            self._active = None
        logger.info("Service pid=%d exited with %s", handle.pid, handle.returncode)
        return handle.returncode

    @contextmanager
    def running(
        self,
        command: Sequence[str],
        ready_url: str,
        env: Mapping[str, str] | None = None,
        cwd: Path | str | None = None,
    ) -> Iterator[ServiceProcess]:
        """Launch and await readiness; always terminate on exit."""
        handle = self.launch(command, env=env, cwd=cwd)
        try:
            self.await_ready(ready_url, handle)
            yield handle
        finally:
            self.terminate(handle)
