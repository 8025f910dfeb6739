"""
Process-wide typed configuration.

All reads and writes go through one lock so a reader always sees the latest
``set``. Values come from the command line flags and the merged environment.
"""

from __future__ import annotations

import argparse
import threading
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

# Flag keys, mirroring the CLI option names
KEY_WEB_PORT = "web-port"
KEY_ACTIVE = "active"
KEY_IGNORE_MERGE_ENVIRONMENT = "ignore-merge-environment"
KEY_ENABLE_AUTH = "enable-auth"
KEY_ENABLE_REBUILD = "enable-rebuild"
KEY_ENABLE_SWAGGER = "enable-swagger"
KEY_ENABLE_WEB_CONSOLE = "enable-web-console"
KEY_ENABLE_DEBUG_PPROF = "enable-debug-pprof"
KEY_REGENERATE_KEY = "regenerate-key"
KEY_ENABLE_HOOK_REPORT = "enable-hook-report"
KEY_ENABLE_LOGIC_DELETE = "enable-logic-delete"
KEY_DEV_MODE = "dev-mode"
KEY_BUILD_ONLY = "build-only"
KEY_WATCH = "enable-watch"

# Runtime timestamps and status
KEY_GLOBAL_START_TIME = "globalStartTime"
KEY_ENGINE_START_TIME = "engineStartTime"
KEY_ENGINE_PREPARE_TIME = "enginePrepareTime"
KEY_ENGINE_FIRST_STATUS = "engineFirstStatus"
KEY_ENGINE_STATUS = "engineStatus"

_TRUE_VALUES = {"1", "true", "yes", "on"}


class ConfigRegistry:
    """
    Locked key/value store with typed accessors.

    Usage:
        registry = ConfigRegistry()
        registry.set_bool(KEY_ENABLE_AUTH, True)
        registry.get_bool(KEY_ENABLE_AUTH)  # True
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        self._lock = threading.RLock()
        self._values: Dict[str, Any] = dict(values or {})

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def merge(self, values: Mapping[str, Any]) -> None:
        """Merge ``values`` over the current ones."""
        with self._lock:
            self._values.update(values)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._values)

    def get_bool(self, key: str) -> bool:
        value = self.get(key)
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_VALUES
        return bool(value)

    def set_bool(self, key: str, value: bool) -> None:
        self.set(key, bool(value))

    def get_str(self, key: str, default: str = "") -> str:
        value = self.get(key)
        return default if value is None else str(value)

    def set_str(self, key: str, value: str) -> None:
        self.set(key, value)

    def get_int(self, key: str, default: int = 0) -> int:
        value = self.get(key)
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def get_time(self, key: str) -> Optional[datetime]:
        value = self.get(key)
        return value if isinstance(value, datetime) else None

    def set_time(self, key: str, value: datetime) -> None:
        self.set(key, value)

    def set_if_absent(self, key: str, value: Any) -> bool:
        """Set ``key`` only when it holds no value yet."""
        with self._lock:
            if self._values.get(key) is not None:
                return False
            self._values[key] = value
            return True


def flags_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """Convert an argparse namespace into registry keys (``web_port`` -> ``web-port``)."""
    return {name.replace("_", "-"): value for name, value in vars(args).items() if name != "handler"}
