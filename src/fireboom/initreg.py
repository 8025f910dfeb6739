"""
Ordered one-shot initializers.

Components register their setup functions with a priority; ``run_all`` calls
them once per registry, lowest priority first. Equal priorities keep their
registration order.

Usage:
    registry = InitRegistry()
    registry.register(10, load_configs)
    registry.register(20, init_models)
    registry.run_all()
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class _InitMethod:
    priority: int
    order: int
    fn: Callable[[], None]
    name: str


class InitRegistry:
    """Registry of initializers sorted by priority."""

    def __init__(self):
        self._methods: list[_InitMethod] = []
        self._lock = threading.Lock()
        self._done = False

    def register(self, priority: int, fn: Callable[[], None], name: Optional[str] = None) -> None:
        """Register ``fn`` to run at ``priority``."""
        with self._lock:
            if self._done:
                raise RuntimeError("init registry already ran")
            self._methods.append(
                _InitMethod(priority, len(self._methods), fn, name or getattr(fn, "__name__", repr(fn)))
            )

    def run_all(self) -> bool:
        """
        Run every registered initializer once.

        Returns:
            True when this call ran them, False when they already ran
        """
        with self._lock:
            if self._done:
                return False
            self._done = True
            methods = sorted(self._methods, key=lambda m: (m.priority, m.order))

        for method in methods:
            logger.debug(f"Running initializer {method.name} (priority {method.priority})")
            method.fn()
        return True

    @property
    def done(self) -> bool:
        return self._done
