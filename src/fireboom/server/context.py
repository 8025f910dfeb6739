"""
Runtime context of one working directory.

The context owns every long-lived component and wires them together; its
initializers run in priority order through the InitRegistry:

10  environment and logging
20  notifier collectors
30  model loading
40  authentication key and introspection command
50  hook report health check

``boot`` then builds the engine configuration and starts the engine.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from ..build import CommandRunner, EngineBuilder, Introspector
from ..configs import ConfigRegistry, Environment
from ..configs.authkey import load_or_create_key
from ..configs.logger import configure_logging
from ..configs.registry import (
    KEY_ACTIVE,
    KEY_BUILD_ONLY,
    KEY_DEV_MODE,
    KEY_ENABLE_AUTH,
    KEY_ENABLE_LOGIC_DELETE,
    KEY_ENABLE_REBUILD,
    KEY_ENGINE_FIRST_STATUS,
    KEY_GLOBAL_START_TIME,
    KEY_IGNORE_MERGE_ENVIRONMENT,
    KEY_REGENERATE_KEY,
)
from ..core.consts import (
    ENGINE_BUILD_FAILED,
    ENV_API_PUBLIC_URL,
    ENV_ENGINE_COMMAND,
    ENV_INTROSPECT_COMMAND,
    ENV_LOG_LEVEL,
    GENERATED_CONFIG,
)
from ..core.errcode import CustomError
from ..core.utils import now_time
from ..engine import EngineNode, EngineSupervisor, StaticNode, SubprocessNode
from ..initreg import InitRegistry
from ..messaging import EventBus
from ..models import ModelSet
from ..notifier import HookReporter, Notifier
from ..store import DataLocks

logger = logging.getLogger(__name__)

Runner = Callable[[Callable[[], Any]], None]


def run_in_thread(fn: Callable[[], Any]) -> None:
    threading.Thread(target=fn, name="fireboom-runner", daemon=True).start()


class Context:
    """
    Every component of a running control plane.

    Args:
        workdir: Project working directory
        flags: CLI flags keyed like the registry (``enable-auth``, ``dev-mode``...)
        runner: Runs restarts and rebuilds in the background; tests pass ``lambda fn: fn()``
        node_factory: Engine node factory, chosen from ``FB_ENGINE_COMMAND`` when omitted
        console_logging: Attach the stderr log handler

    Usage:
        context = Context(".", {"dev-mode": True})
        context.init()
        context.boot()
    """

    def __init__(
        self,
        workdir: str | Path = ".",
        flags: Optional[Mapping[str, Any]] = None,
        runner: Runner = run_in_thread,
        node_factory: Optional[Callable[[], EngineNode]] = None,
        console_logging: bool = True,
    ):
        self.workdir = Path(workdir).resolve()
        self.registry = ConfigRegistry(flags)
        self.runner = runner
        self.console_logging = console_logging
        self.bus = EventBus()
        self.locks = DataLocks()
        self.environment = Environment(
            self.workdir,
            active=self.registry.get_str(KEY_ACTIVE),
            ignore_merge=self.registry.get_bool(KEY_IGNORE_MERGE_ENVIRONMENT),
            registry=self.registry,
        )
        self.models = ModelSet(
            self.workdir,
            self.bus,
            self.locks,
            logic_delete=self.registry.get_bool(KEY_ENABLE_LOGIC_DELETE),
        )
        self.introspector = Introspector(
            self.workdir,
            self.models.datasource_texts,
            self.environment.values,
            self.models.server_url,
        )
        self.builder = EngineBuilder(self.models, self.bus, self.environment.values, self.introspector)
        self.supervisor = EngineSupervisor(
            self.builder,
            self.models,
            self.bus,
            self.registry,
            node_factory or self._create_node,
        )
        self.notifier = Notifier(self.models, self.registry, self.bus)
        self.hook_reporter = HookReporter(self.models, self.supervisor, self.registry, self.workdir, runner)
        self.notifier.set_hook_reporter(self.hook_reporter)
        self.auth_key = ""

        self.inits = InitRegistry()
        self.inits.register(10, self._init_environment)
        self.inits.register(20, self._init_notifier)
        self.inits.register(30, self._init_models)
        self.inits.register(40, self._init_auth_key)
        self.inits.register(40, self._init_introspection)
        self.inits.register(50, self._init_hook_report)

    @property
    def dev_mode(self) -> bool:
        return self.registry.get_bool(KEY_DEV_MODE)

    @property
    def auth_enabled(self) -> bool:
        return self.registry.get_bool(KEY_ENABLE_AUTH)

    def init(self) -> bool:
        return self.inits.run_all()

    # Initializers

    def _init_environment(self) -> None:
        self.registry.set_time(KEY_GLOBAL_START_TIME, now_time())
        self.environment.load()
        configure_logging(self.environment.get(ENV_LOG_LEVEL, "info"), console=self.console_logging)

    def _init_notifier(self) -> None:
        self.notifier.attach()

    def _init_models(self) -> None:
        errors = self.models.init()
        if errors:
            logger.warning(f"Models loaded with errors: {sorted(errors)}")
        self.models.set_mutate_runner(self.runner)
        self.models.set_after_mutate(self.restart)
        self.locks.start()

    def _init_auth_key(self) -> None:
        if self.auth_enabled or self.registry.get_bool(KEY_REGENERATE_KEY):
            self.auth_key = load_or_create_key(self.workdir, self.registry.get_bool(KEY_REGENERATE_KEY))

    def _init_introspection(self) -> None:
        command = self.environment.get(ENV_INTROSPECT_COMMAND)
        self.introspector.runner = CommandRunner(command, self.introspector.execute_timeout)

    def _init_hook_report(self) -> None:
        if not self.registry.get_bool(KEY_BUILD_ONLY):
            self.hook_reporter.start()

    def _create_node(self) -> EngineNode:
        command = self.environment.get(ENV_ENGINE_COMMAND)
        if not command:
            return StaticNode()
        public_url = self.environment.get(ENV_API_PUBLIC_URL).rstrip("/")
        return SubprocessNode(command, f"{public_url}/health")

    # Lifecycle

    def restart(self) -> bool:
        """Full build and engine restart, dropped while another one runs."""
        return self.supervisor.build_and_start()

    def build(self) -> bool:
        """Headless build; returns False when it failed."""
        try:
            self.builder.build()
        except CustomError as e:
            logger.error(f"Build failed: {e}")
            return False
        return True

    def boot(self) -> None:
        """
        Bring the engine up.

        Development mode and ``--enable-rebuild`` always build first; otherwise an
        existing generated configuration is started as is.
        """
        config_path = self.builder.generated_path(GENERATED_CONFIG)
        if self.dev_mode or self.registry.get_bool(KEY_ENABLE_REBUILD) or not config_path.exists():
            self.restart()
        else:
            try:
                self.supervisor.start()
            except CustomError as e:
                logger.error(f"Engine start failed: {e}")
        if not self.supervisor.started and not self.supervisor.busy:
            self.registry.set_if_absent(KEY_ENGINE_FIRST_STATUS, ENGINE_BUILD_FAILED)

    def close(self) -> None:
        self.hook_reporter.stop()
        self.supervisor.close()
        self.locks.stop()
        self.notifier.detach()
