"""
Per-item advisory locks.

A lock remembers the user currently editing an item and when it was last
touched. Writes by another user fail while the lock is held; a lock left
untouched for ``AUTO_UNLOCK_MINUTES`` is released by the reaper thread.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Optional, TypeVar

from ..core.consts import SYSTEM_USER
from ..core.errcode import ErrCode, new_custom_error

logger = logging.getLogger(__name__)

AUTO_UNLOCK_MINUTES = 5
AUTO_UNLOCK_TICK_SECONDS = 10

R = TypeVar("R")


@dataclass
class DataLock:
    """Mutex plus the editing user and last access time."""
    mutex: threading.Lock = field(default_factory=threading.Lock)
    user: str = ""
    last_modify: float = 0.0

    def refresh(self, user: str) -> None:
        self.user = user
        self.last_modify = time.time()

    def reset(self) -> None:
        self.user = ""
        self.last_modify = 0.0


class DataLocks:
    """
    Registry of item locks keyed by file path.

    Usage:
        locks = DataLocks()
        locks.add("store/operation/users/list.json")
        locks.run("store/operation/users/list.json", "alice", "operation", action)
    """

    def __init__(self):
        self._locks: Dict[str, DataLock] = {}
        self._registry_lock = threading.Lock()
        self._stop = threading.Event()
        self._reaper: Optional[threading.Thread] = None

    def add(self, key: str) -> None:
        with self._registry_lock:
            self._locks[key] = DataLock()

    def ensure(self, key: str) -> None:
        with self._registry_lock:
            self._locks.setdefault(key, DataLock())

    def remove(self, key: str) -> None:
        with self._registry_lock:
            self._locks.pop(key, None)

    def get(self, key: str, user: str, mode: str) -> DataLock:
        with self._registry_lock:
            if user == SYSTEM_USER and key not in self._locks:
                self._locks[key] = DataLock()
            lock = self._locks.get(key)
        if lock is None:
            raise new_custom_error(mode, None, ErrCode.LoaderLockNotFoundError, key)
        return lock

    def editor(self, key: str) -> str:
        with self._registry_lock:
            lock = self._locks.get(key)
        return lock.user if lock else ""

    def run(
        self,
        key: str,
        user: str,
        mode: str,
        action: Callable[[DataLock], R],
        check_editor: bool = True,
    ) -> R:
        """
        Run ``action`` holding the item mutex.

        Raises:
            CustomError: LoaderDataExistEditorError when another user holds the lock
        """
        lock = self.get(key, user, mode)
        with lock.mutex:
            if check_editor:
                self._check_editor(lock, key, user, mode)
            return action(lock)

    def run_batch(self, keys: Iterable[str], user: str, mode: str, action: Callable[[], R]) -> R:
        """Claim every key for ``user``, run ``action`` and release them."""
        claimed = []
        try:
            for key in keys:
                lock = self.get(key, user, mode)
                with lock.mutex:
                    self._check_editor(lock, key, user, mode)
                    lock.refresh(user)
                claimed.append(lock)
            return action()
        finally:
            for lock in claimed:
                with lock.mutex:
                    lock.reset()

    def expire(self, now: Optional[float] = None) -> list[str]:
        """Release locks untouched for longer than the auto unlock interval."""
        deadline = (now or time.time()) - AUTO_UNLOCK_MINUTES * 60
        released = []
        with self._registry_lock:
            items = list(self._locks.items())
        for key, lock in items:
            with lock.mutex:
                if lock.user and lock.last_modify < deadline:
                    lock.reset()
                    released.append(key)
        for key in released:
            logger.info(f"[{key}] unlocked after {AUTO_UNLOCK_MINUTES} minutes without activity")
        return released

    def start(self) -> None:
        """Start the reaper thread."""
        if self._reaper is not None:
            return
        self._stop.clear()
        self._reaper = threading.Thread(target=self._reap, name="data-lock-reaper", daemon=True)
        self._reaper.start()

    def stop(self) -> None:
        self._stop.set()
        if self._reaper is not None:
            self._reaper.join(timeout=1)
            self._reaper = None

    def _reap(self) -> None:
        while not self._stop.wait(AUTO_UNLOCK_TICK_SECONDS):
            self.expire()

    @staticmethod
    def _check_editor(lock: DataLock, key: str, user: str, mode: str) -> None:
        if lock.user and lock.user != user and user != SYSTEM_USER:
            raise new_custom_error(mode, None, ErrCode.LoaderDataExistEditorError, key, lock.user)
