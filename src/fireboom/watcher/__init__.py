"""Development file watcher replaying external edits of ``store/`` and ``upload/``."""

from __future__ import annotations

from .watcher import WATCH_USER, StoreWatcher

__all__ = ["StoreWatcher", "WATCH_USER"]
