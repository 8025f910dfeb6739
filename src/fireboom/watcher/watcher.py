from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from fastapi.concurrency import run_in_threadpool
from watchfiles import awatch

from ..core.consts import ROOT_STORE, ROOT_UPLOAD
from ..core.errcode import CustomError
from ..models import ModelSet
from ..store import Model, ModelText, MultipleTextRW

logger = logging.getLogger(__name__)

WATCH_USER = "$$watcher$$"


def _hidden(path: Path, root: Path) -> bool:
    return any(part.startswith(".") for part in path.relative_to(root).parts)


def _under(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


class StoreWatcher:
    """
    Replay edits made outside the server through the store.

    Data files are re-read with ``Model.reload``; a changed text publishes an
    update of its item; any change below ``upload/`` calls ``on_upload``.
    """

    def __init__(self, models: ModelSet, on_upload: Optional[Callable[[], Any]] = None):
        self.models = models
        self.workdir = models.workdir.resolve()
        self.on_upload = on_upload
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def directories(self) -> list[Path]:
        return [self.workdir / ROOT_STORE, self.workdir / ROOT_UPLOAD]

    async def start(self) -> None:
        if self._task is not None:
            return
        for directory in self.directories:
            directory.mkdir(parents=True, exist_ok=True)
        self._task = asyncio.create_task(self._watch())
        logger.info(f"Watcher started for {[d.as_posix() for d in self.directories]}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Watcher stopped")

    async def _watch(self) -> None:
        async for changes in awatch(*self.directories):
            paths = {Path(p).resolve() for _, p in changes}
            try:
                await run_in_threadpool(self.replay, paths)
            except Exception:
                logger.exception("Error replaying watched changes")

    def replay(self, paths: Iterable[Path]) -> int:
        """
        Apply changed ``paths`` to the store.

        Returns:
            Number of paths that matched a model, a text or the upload directory
        """
        matched = 0
        upload_changed = False
        for path in sorted(paths):
            if not _under(path, self.workdir) or _hidden(path, self.workdir):
                continue
            if _under(path, self.workdir / ROOT_UPLOAD):
                upload_changed = True
                matched += 1
                continue
            if self._replay_data(path) or self._replay_text(path):
                matched += 1
        if upload_changed and self.on_upload is not None:
            logger.info("Upload directory changed")
            self.on_upload()
        return matched

    def _replay_data(self, path: Path) -> bool:
        for model in self.models.all():
            data_name = self._data_name(model, path)
            if data_name is None:
                continue
            logger.debug(f"Watched change on {model.name} [{data_name}]")
            try:
                model.reload(data_name, WATCH_USER)
            except CustomError as e:
                logger.warning(f"Watched file {path} not loaded", extra={model.name: data_name, "error": e.message})
            return True
        return False

    @staticmethod
    def _data_name(model: Model, path: Path) -> Optional[str]:
        if model.is_embed:
            return None
        if model.is_multiple:
            root = model.root_path.resolve()
            if not _under(path, root) or not path.name.endswith(model.extension):
                return None
            return path.relative_to(root).as_posix()[: -len(model.extension)]
        if model.get_path().resolve() == path:
            return getattr(model.rw, "data_name", None)
        return None

    def _replay_text(self, path: Path) -> bool:
        for model in self.models.all():
            for text in model.text_items:
                data_name = self._text_data_name(text, path)
                if data_name is None or not model.exists(data_name):
                    continue
                model.notify_text_updated(data_name, WATCH_USER)
                return True
        return False

    @staticmethod
    def _text_data_name(text: ModelText, path: Path) -> Optional[str]:
        if not isinstance(text.rw, MultipleTextRW):
            return None
        root = text.root_path.resolve()
        if not _under(path, root) or not path.name.endswith(text.extension):
            return None
        candidate = path.relative_to(root).as_posix()[: -len(text.extension)]
        try:
            resolved = text.path(candidate).resolve()
        except CustomError:
            return None
        return candidate if resolved == path else None
