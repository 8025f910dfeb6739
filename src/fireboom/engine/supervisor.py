"""
Engine supervisor.

``build_and_start`` is serialized by a try-lock: while a restart is in flight
a new request is dropped, the running one picks up the latest state. The lock
is handed to the engine node and released by the started handler, which also
closes the bus burst and records the engine start time.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from ..build import EngineBuilder
from ..configs.registry import (
    KEY_DEV_MODE,
    KEY_ENGINE_PREPARE_TIME,
    KEY_ENGINE_START_TIME,
    ConfigRegistry,
)
from ..core.consts import (
    ENGINE_INCREMENT_START,
    ENGINE_START_FAILED,
    ENGINE_START_SUCCEED,
    ENGINE_STARTING,
    ENGINE_STATUS_FIELD,
    GENERATED_CONFIG,
    STORE_OPERATION,
)
from ..core.errcode import CustomError, ErrCode, new_custom_error
from ..core.utils import now_time
from ..messaging import BreakData, Channel, Event, EventBus
from ..models import ModelSet
from .node import EngineNode, StaticNode

logger = logging.getLogger(__name__)

Hook = Callable[[], None]


class EngineSupervisor:
    """
    Builds the configuration and (re)starts the engine node.

    Args:
        builder: Engine configuration builder
        models: Model set, read by the invalid operation handler
        bus: Event bus
        registry: Config registry holding the dev flag and timestamps
        node_factory: Creates a fresh node per start

    Usage:
        supervisor = EngineSupervisor(builder, models, bus, registry)
        supervisor.build_and_start()
    """

    def __init__(
        self,
        builder: EngineBuilder,
        models: ModelSet,
        bus: EventBus,
        registry: ConfigRegistry,
        node_factory: Callable[[], EngineNode] = StaticNode,
    ):
        self.builder = builder
        self.models = models
        self.bus = bus
        self.registry = registry
        self.node_factory = node_factory
        self.node: Optional[EngineNode] = None
        self._mutex = threading.Lock()
        self._hooks_lock = threading.Lock()
        self._first_started_hooks: list[Hook] = []
        self._every_started_hooks: list[Hook] = []
        self._started_once = False
        self._subscribed = False

    @property
    def started(self) -> bool:
        return self.node is not None and self.node.running

    @property
    def busy(self) -> bool:
        return self._mutex.locked()

    def add_on_first_started(self, hook: Hook) -> None:
        """Run ``hook`` once, after the first successful start (immediately when already started)."""
        with self._hooks_lock:
            if not self._started_once:
                self._first_started_hooks.append(hook)
                return
        hook()

    def add_on_every_started(self, hook: Hook) -> None:
        """Run ``hook`` once, after the next successful start."""
        with self._hooks_lock:
            self._every_started_hooks.append(hook)

    def build_and_start(self) -> bool:
        """
        Full build followed by an engine restart.

        Returns:
            False when another restart was already running
        """
        if not self._mutex.acquire(blocking=False):
            logger.debug("Engine restart already in progress")
            return False

        handed_over = False
        try:
            self.registry.set_time(KEY_ENGINE_PREPARE_TIME, now_time())
            self.builder.release()
            self.close()
            self.builder.build()
            self.subscribe()
            handed_over = self.start(self._mutex.release)
        except CustomError as e:
            logger.debug(f"Engine restart aborted: {e.message}")
        finally:
            if not handed_over:
                self._mutex.release()
        return True

    def start(self, release: Optional[Callable[[], None]] = None) -> bool:
        """
        Start a new node on the current configuration.

        Returns:
            True when the node accepted the start; ``release`` is then called by the started handler
        """
        starting_time = now_time()
        logger.info("start begin", extra={ENGINE_STATUS_FIELD: ENGINE_STARTING})
        node = self.node_factory()
        config_path = self.builder.generated_path(GENERATED_CONFIG)

        def on_started() -> None:
            try:
                self._on_started(starting_time)
            finally:
                if release is not None:
                    release()

        def on_failed(error: Exception) -> None:
            try:
                self._start_failed(error)
            finally:
                if release is not None:
                    release()

        try:
            self.node = node
            node.start(config_path, on_started, on_failed)
        except (OSError, ValueError) as e:
            self.node = None
            self._start_failed(e)
            raise new_custom_error("engine", e, ErrCode.EngineRestartError)
        return True

    def _start_failed(self, error: Exception) -> None:
        logger.error(f"start failed: {error}", extra={ENGINE_STATUS_FIELD: ENGINE_START_FAILED, "error": str(error)})

    def _on_started(self, starting_time) -> None:
        self.bus.ensure_break()
        now = now_time()
        fields: dict[str, Any] = {ENGINE_STATUS_FIELD: ENGINE_START_SUCCEED}
        prepare_time = self.registry.get_time(KEY_ENGINE_PREPARE_TIME)
        if self.registry.get_bool(KEY_DEV_MODE) and prepare_time is not None:
            fields["buildCost"] = (starting_time - prepare_time).total_seconds()
        fields["startCost"] = (now - starting_time).total_seconds()
        self.registry.set_time(KEY_ENGINE_START_TIME, now)
        logger.info("start finish", extra=fields)

        with self._hooks_lock:
            hooks = list(self._every_started_hooks)
            self._every_started_hooks.clear()
            if not self._started_once:
                self._started_once = True
                hooks.extend(self._first_started_hooks)
                self._first_started_hooks.clear()
        for hook in hooks:
            try:
                hook()
            except Exception as e:
                logger.error(f"Started hook failed: {e}", exc_info=True)

    def close(self) -> None:
        node, self.node = self.node, None
        if node is not None:
            node.close()
            logger.debug("Engine node closed")

    # Incremental starts

    def _increment(self, event: Event, value: Any) -> None:
        if self.node is not None:
            self.node.reload(self.builder.generated_path(GENERATED_CONFIG))
        logger.info(str(event.value), extra={ENGINE_STATUS_FIELD: ENGINE_INCREMENT_START, STORE_OPERATION: value})

    def _print_break(self, channel: Channel) -> Callable[[BreakData], None]:
        def handler(data: BreakData) -> None:
            logger.info(
                str(Event.BREAK.value),
                extra={
                    ENGINE_STATUS_FIELD: ENGINE_START_SUCCEED,
                    "cause": f"{channel.value} {data.event.value}",
                    "cost": data.cost,
                },
            )
        return handler

    def subscribe(self) -> None:
        """Follow the builder's chains; must run after the builder subscribed."""
        if self._subscribed:
            return
        self._subscribed = True

        def single(event: Event, key: Callable[[Any], str]):
            def run(data: Any) -> Any:
                self._increment(event, key(data))
                return data
            return run

        def batch(event: Event, key: Callable[[Any], str]):
            def run(items: list) -> list:
                self._increment(event, [key(item) for item in items])
                return items
            return run

        def path_of(operation: Any) -> str:
            return operation.path

        def invalid(path: str) -> Optional[str]:
            if not self.models.operation.exists(path):
                return None
            self.models.operation.set_runtime(path, invalid=True)
            if not self.models.operation.get(path).enabled:
                return None
            self._increment(Event.INVALID, path)
            return path

        self.bus.subscribe(Channel.OPERATION, Event.INSERT, single(Event.INSERT, path_of))
        self.bus.subscribe(Channel.OPERATION, Event.UPDATE, single(Event.UPDATE, path_of))
        self.bus.subscribe(Channel.OPERATION, Event.DELETE, single(Event.DELETE, str))
        self.bus.subscribe(Channel.OPERATION, Event.BATCH_INSERT, batch(Event.BATCH_INSERT, path_of))
        self.bus.subscribe(Channel.OPERATION, Event.BATCH_UPDATE, batch(Event.BATCH_UPDATE, path_of))
        self.bus.subscribe(Channel.OPERATION, Event.BATCH_DELETE, batch(Event.BATCH_DELETE, str))
        self.bus.subscribe(Channel.OPERATION, Event.INVALID, invalid)

        if self.registry.get_bool(KEY_DEV_MODE):
            for channel in (Channel.OPERATION, Channel.STORAGE):
                self.bus.subscribe(channel, Event.BREAK, self._print_break(channel))
        logger.debug("Engine supervisor subscribed")
