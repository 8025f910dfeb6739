"""
Engine nodes.

A node serves the generated configuration. ``SubprocessNode`` runs the
command from ``FB_ENGINE_COMMAND`` and waits for its health endpoint;
``StaticNode`` serves nothing and reports started as soon as it is asked to,
which is what builds without an engine binary and the tests use.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import threading
import time
from pathlib import Path
from typing import Callable, Optional

import httpx

logger = logging.getLogger(__name__)

StartedHandler = Callable[[], None]
FailedHandler = Callable[[Exception], None]

DEFAULT_READY_TIMEOUT = 30.0
DEFAULT_CLOSE_TIMEOUT = 5.0
READY_POLL_INTERVAL = 0.2


class EngineNode:
    """Base of the engine handles owned by the supervisor."""

    def start(self, config_path: Path, on_started: StartedHandler, on_failed: FailedHandler) -> None:
        raise NotImplementedError

    def reload(self, config_path: Path) -> None:
        """The configuration file changed in place."""

    def close(self) -> None:
        raise NotImplementedError

    @property
    def running(self) -> bool:
        raise NotImplementedError


class StaticNode(EngineNode):
    def __init__(self):
        self.config_path: Optional[Path] = None
        self.reloads = 0
        self._running = False

    def start(self, config_path: Path, on_started: StartedHandler, on_failed: FailedHandler) -> None:
        self.config_path = config_path
        self._running = True
        on_started()

    def reload(self, config_path: Path) -> None:
        self.config_path = config_path
        self.reloads += 1

    def close(self) -> None:
        self._running = False

    @property
    def running(self) -> bool:
        return self._running


class SubprocessNode(EngineNode):
    """
    Engine process started with ``<command> --config <path>``.

    Args:
        command: Engine command line
        health_url: Polled until it answers, then the node counts as started
        ready_timeout: Seconds to wait for the health endpoint
        close_timeout: Seconds to wait for the process after terminate
    """

    def __init__(
        self,
        command: str,
        health_url: str,
        ready_timeout: float = DEFAULT_READY_TIMEOUT,
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
    ):
        self.command = shlex.split(command)
        self.health_url = health_url
        self.ready_timeout = ready_timeout
        self.close_timeout = close_timeout
        self.process: Optional[subprocess.Popen] = None
        self._closed = threading.Event()

    def start(self, config_path: Path, on_started: StartedHandler, on_failed: FailedHandler) -> None:
        args = [*self.command, "--config", config_path.as_posix()]
        logger.debug(f"Starting engine process {args}")
        self.process = subprocess.Popen(args)
        self._closed.clear()
        threading.Thread(
            target=self._wait_ready, args=(on_started, on_failed), name="engine-ready", daemon=True
        ).start()

    def _wait_ready(self, on_started: StartedHandler, on_failed: FailedHandler) -> None:
        deadline = time.monotonic() + self.ready_timeout
        with httpx.Client(timeout=READY_POLL_INTERVAL * 5) as client:
            while time.monotonic() < deadline and not self._closed.is_set():
                if self.process is None or self.process.poll() is not None:
                    on_failed(RuntimeError(f"engine process exited with {self.process.returncode if self.process else None}"))
                    return
                try:
                    client.get(self.health_url)
                except httpx.HTTPError:
                    time.sleep(READY_POLL_INTERVAL)
                    continue
                on_started()
                return
        if not self._closed.is_set():
            on_failed(TimeoutError(f"engine not ready after {self.ready_timeout}s"))

    def close(self) -> None:
        self._closed.set()
        if self.process is None or self.process.poll() is not None:
            return
        self.process.terminate()
        try:
            self.process.wait(timeout=self.close_timeout)
        except subprocess.TimeoutExpired:
            logger.warning("Engine process did not exit in time, killing it")
            self.process.kill()
            self.process.wait()

    @property
    def running(self) -> bool:
        return self.process is not None and self.process.poll() is None
