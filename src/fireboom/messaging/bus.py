"""
In-process event bus between the model store, the builder, the engine
supervisor and the live notifier.

Publisher - the model store publishes data events on the channel named after
            the model
Subscriber - handlers registered per (channel, event) run synchronously in
             registration order; each one receives the payload returned by the
             previous one, and returning None stops the chain
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict

logger = logging.getLogger(__name__)


class Channel(str, Enum):
    ENGINE = "engine"
    LOG = "log"
    QUESTION = "question"
    HOOK_PROXY = "hookProxy"
    LICENSE = "license"
    HOOK_REPORT = "hookReport"
    OPERATION = "operation"
    STORAGE = "storage"
    SDK = "sdk"
    DATASOURCE = "datasource"


class Event(str, Enum):
    INSERT = "insert"
    BATCH_INSERT = "batchInsert"
    UPDATE = "update"
    BATCH_UPDATE = "batchUpdate"
    DELETE = "delete"
    BATCH_DELETE = "batchDelete"
    INVALID = "invalid"
    RUNTIME = "runtime"
    BREAK = "break"


DATA_EVENTS = (
    Event.INSERT,
    Event.BATCH_INSERT,
    Event.UPDATE,
    Event.BATCH_UPDATE,
    Event.DELETE,
    Event.BATCH_DELETE,
)

Handler = Callable[[Any], Any]
NoticeHandler = Callable[[str, Event, Any], None]


@dataclass
class BreakData:
    """Payload of a Break event: the last event of the burst and its cost."""
    event: Event
    cost: float

    def to_dict(self) -> dict:
        return {"event": self.event.value, "cost": self.cost}


def _channel_name(channel: Channel | str) -> str:
    return channel.value if isinstance(channel, Channel) else str(channel)


class EventBus:
    """
    Synchronous typed pub/sub.

    Usage:
        bus = EventBus()

        @bus.on(Channel.OPERATION, Event.INSERT)
        def handle_insert(operation):
            return operation

        bus.publish(Channel.OPERATION, Event.INSERT, operation)
        bus.ensure_break()  # emits Break with the burst cost
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._handlers: Dict[tuple[str, Event], list[Handler]] = {}
        self._notices: Dict[Event, list[NoticeHandler]] = {}
        self._break_starts: Dict[str, tuple[float, Event]] = {}

    def on(self, channel: Channel | str, event: Event):
        """
        Decorator to register handler for channel/event.

        Usage:
            @bus.on(Channel.STORAGE, Event.DELETE)
            def handle_delete(name: str):
                return name
        """
        def decorator(func: Handler):
            self.subscribe(channel, event, func)
            return func
        return decorator

    def subscribe(self, channel: Channel | str, event: Event, handler: Handler) -> None:
        """
        Append ``handler`` to the chain of channel/event.

        Args:
            channel: Channel name
            event: Event kind
            handler: Function receiving the payload and returning the next one
        """
        key = (_channel_name(channel), event)
        with self._lock:
            self._handlers.setdefault(key, []).append(handler)
        logger.debug(f"Subscribed handler to {key[0]}/{event.value}")

    def notice(self, handler: NoticeHandler, *events: Event) -> None:
        """Register a listener observing every publish of ``events`` on all channels."""
        with self._lock:
            for event in events:
                self._notices.setdefault(event, []).append(handler)

    def has_subscribers(self, channel: Channel | str, event: Event) -> bool:
        with self._lock:
            return bool(self._handlers.get((_channel_name(channel), event)))

    def publish(self, channel: Channel | str, event: Event, data: Any) -> bool:
        """
        Deliver ``data`` through the handler chain of channel/event.

        Returns:
            True when the channel/event had subscribers
        """
        name = _channel_name(channel)
        with self._lock:
            handlers = list(self._handlers.get((name, event), ()))
            notices = list(self._notices.get(event, ()))
            if event != Event.BREAK and name not in self._break_starts:
                self._break_starts[name] = (time.perf_counter(), event)
            elif event != Event.BREAK:
                self._break_starts[name] = (self._break_starts[name][0], event)

        for notice in notices:
            try:
                notice(name, event, data)
            except Exception as e:
                logger.error(f"Error in notice for {name}/{event.value}: {e}", exc_info=True)

        if not handlers:
            return False

        self._run_chain(name, event, handlers, data)
        return True

    def direct_call(self, channel: Channel | str, event: Event, data: Any) -> Any:
        """Run the handler chain without notices or break accounting and return the final payload."""
        name = _channel_name(channel)
        with self._lock:
            handlers = list(self._handlers.get((name, event), ()))
        return self._run_chain(name, event, handlers, data)

    def ensure_break(self) -> list[BreakData]:
        """
        Close the current burst on every channel that saw events.

        Publishes a Break event per such channel carrying the last event and
        the elapsed time since the first event of the burst. Calling it again
        without events in between publishes nothing.
        """
        now = time.perf_counter()
        with self._lock:
            pending = self._break_starts
            self._break_starts = {}

        results = []
        for name, (started, last_event) in pending.items():
            data = BreakData(event=last_event, cost=now - started)
            self.publish(name, Event.BREAK, data)
            results.append(data)
        return results

    def _run_chain(self, name: str, event: Event, handlers: list[Handler], data: Any) -> Any:
        for handler in handlers:
            try:
                data = handler(data)
            except Exception as e:
                logger.error(f"Error in handler for {name}/{event.value}: {e}", exc_info=True)
                return None
            if data is None:
                return None
        return data
