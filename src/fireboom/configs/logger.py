"""
Logging setup and log collectors.

Structured fields are attached with ``extra={...}``. A ``CollectorHandler``
sits on the ``fireboom`` logger and hands every matching record to the
registered collectors; the live notifier builds its engine, question and log
frames this way.
"""

from __future__ import annotations

import logging
import sys
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from ..core.utils import strip_ansi

ROOT_LOGGER = "fireboom"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def level_name(levelno: int) -> str:
    return {logging.WARNING: "warn"}.get(levelno, logging.getLevelName(levelno).lower())


def record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Return the structured fields passed through ``extra``."""
    return {k: v for k, v in vars(record).items() if k not in _RESERVED_ATTRS and not k.startswith("_")}


@dataclass
class LogCollector:
    """
    Routes matching log records to a callback.

    A record matches when its level is in ``levels`` and, when
    ``identifier`` is set, it carries a field with that name.
    """
    name: str
    levels: frozenset[int]
    handle: Callable[[logging.LogRecord], None]
    identifier: Optional[str] = None

    def matches(self, record: logging.LogRecord) -> bool:
        if record.levelno not in self.levels:
            return False
        return self.identifier is None or hasattr(record, self.identifier)


class CollectorHandler(logging.Handler):
    """Logging handler dispatching records to registered collectors."""

    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self._collectors: list[LogCollector] = []
        self._collectors_lock = threading.Lock()

    def register(self, collector: LogCollector) -> None:
        with self._collectors_lock:
            self._collectors = [c for c in self._collectors if c.name != collector.name] + [collector]

    def unregister(self, name: str) -> None:
        with self._collectors_lock:
            self._collectors = [c for c in self._collectors if c.name != name]

    @property
    def collectors(self) -> list[LogCollector]:
        with self._collectors_lock:
            return list(self._collectors)

    def emit(self, record: logging.LogRecord) -> None:
        for collector in self.collectors:
            if not collector.matches(record):
                continue
            try:
                collector.handle(record)
            except Exception:
                self.handleError(record)


class ConsoleFormatter(logging.Formatter):
    """Formatter appending structured fields as ``key=value`` pairs."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        fields = record_fields(record)
        if fields:
            text += " " + " ".join(f"{k}={v}" for k, v in fields.items())
        return text


class AccessLogFilter(logging.Filter):
    """Filter out noisy health check and websocket access logs."""

    FILTERED_PATHS = ("/health", "/ws")

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        for path in self.FILTERED_PATHS:
            if f'"GET {path}' in message or f" {path} " in message:
                return False
        return True


def attach_collector_handler() -> CollectorHandler:
    """Install a new collector handler on the ``fireboom`` logger."""
    handler = CollectorHandler()
    logger = logging.getLogger(ROOT_LOGGER)
    logger.addHandler(handler)
    if logger.level == logging.NOTSET or logger.level > logging.INFO:
        logger.setLevel(logging.INFO)
    return handler


def detach_collector_handler(handler: CollectorHandler) -> None:
    logging.getLogger(ROOT_LOGGER).removeHandler(handler)


def configure_logging(level: str = "info", console: bool = True) -> None:
    """
    Configure the ``fireboom`` logger.

    Args:
        level: One of debug, info, warn, error
        console: Attach a stderr handler
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(_LEVELS.get(level.lower(), logging.INFO))
    if console and not any(getattr(h, "_fireboom_console", False) for h in logger.handlers):
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(ConsoleFormatter())
        stream._fireboom_console = True
        logger.addHandler(stream)
    logging.getLogger("uvicorn.access").addFilter(AccessLogFilter())


def plain_message(record: logging.LogRecord) -> str:
    return strip_ansi(record.getMessage())
