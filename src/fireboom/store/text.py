"""
Text companions of a model (GraphQL documents, hook sources, Prisma schemas,
history snapshots).

EmbedTextRW    - read-only text bundled with the package
SingleTextRW   - one text file with a fixed name
MultipleTextRW - one text file per data name of the rely model

A multiple text follows its rely model: copying, renaming or deleting an item
does the same to its text, and writing a text publishes an update of the item.
"""

from __future__ import annotations

import logging
import shutil
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, Optional

from ..core.errcode import ErrCode, new_custom_error
from ..core.utils import normalize_path, remove_file, write_file

if TYPE_CHECKING:
    from .model import Model

logger = logging.getLogger(__name__)

NameFunc = Callable[..., tuple[str, bool]]


def default_basename(*elem: str) -> NameFunc:
    """Text named after the data name (plus fixed suffix elements)."""
    def name(data_name: str, offset: int = 0, *optional: str) -> tuple[str, bool]:
        return normalize_path(data_name, *elem), True
    return name


@dataclass
class EmbedTextRW:
    name: str
    content: str


@dataclass
class SingleTextRW:
    name: str
    enabled: Optional[Callable[..., bool]] = None


@dataclass
class MultipleTextRW:
    name: NameFunc
    enabled: Optional[Callable[..., bool]] = None


class ModelText:
    """
    Text files attached to a model.

    Args:
        title: Name used as error mode and in logs
        root: Directory relative to the working directory
        extension: File extension including the dot
        rw: EmbedTextRW, SingleTextRW or MultipleTextRW
        read_cache: Cache contents keyed by path and modification time
        skip_rely_update: Do not publish an item update after writes
        exportable: Include the text when exporting the rely model
    """

    def __init__(
        self,
        title: str,
        root: str,
        extension: str,
        rw: EmbedTextRW | SingleTextRW | MultipleTextRW,
        read_cache: bool = False,
        skip_rely_update: bool = False,
        exportable: bool = True,
    ):
        self.title = title
        self.root = root
        self.extension = extension
        self.rw = rw
        self.read_cache = read_cache
        self.skip_rely_update = skip_rely_update
        self.exportable = exportable
        self.rely_model: Optional["Model"] = None
        self.workdir = Path(".")
        self._cache: Dict[str, tuple[float, str]] = {}
        self._cache_lock = threading.Lock()
        self._nonces: Dict[str, int] = {}

    def bind(self, workdir: str | Path, rely_model: Optional["Model"] = None) -> "ModelText":
        """Attach to the working directory and, for multiple texts, to the rely model."""
        self.workdir = Path(workdir)
        if rely_model is not None:
            self.rely_model = rely_model
            rely_model.add_text_item(self)
        elif isinstance(self.rw, MultipleTextRW):
            raise new_custom_error(self.title, None, ErrCode.LoaderWriteableRelyModelRequiredError)
        return self

    @property
    def root_path(self) -> Path:
        return self.workdir / self.root

    def path(self, data_name: str, *optional: str, offset: int = 0) -> Path:
        """Resolve the file path of ``data_name``."""
        if isinstance(self.rw, MultipleTextRW):
            basename, append_extension = self.rw.name(data_name, offset, *optional)
            if not basename:
                raise new_custom_error(self.title, None, ErrCode.LoaderBasenameEmptyErr)
            if append_extension:
                basename += self.extension
            return self.root_path / basename
        if data_name and data_name != self.rw.name and (
            self.rely_model is None or not self.rely_model.exists(data_name)
        ):
            raise new_custom_error(self.title, None, ErrCode.LoaderDataFilepathError, self.rw.name, data_name)
        return self.root_path / f"{self.rw.name}{self.extension}"

    def relative_path(self, data_name: str, *optional: str) -> str:
        return self.path(data_name, *optional).relative_to(self.workdir).as_posix()

    def enabled(self, data_name: str, *optional: str) -> bool:
        """Combine the rw enabled function with the rely model item."""
        enabled = getattr(self.rw, "enabled", None)
        if enabled is None or self.rely_model is None or not self.rely_model.exists(data_name):
            return False
        return bool(enabled(self.rely_model.get(data_name), *optional))

    def exists(self, data_name: str, *optional: str) -> bool:
        if isinstance(self.rw, EmbedTextRW):
            return True
        return self.path(data_name, *optional).is_file()

    def nonce(self, data_name: str) -> int:
        """Edit counter of ``data_name``, bumped on every write, rename and removal."""
        with self._cache_lock:
            return self._nonces.get(data_name, 0)

    def _forget(self, path: Path) -> None:
        with self._cache_lock:
            self._cache.pop(path.as_posix(), None)

    def _bump(self, data_name: str) -> None:
        with self._cache_lock:
            self._nonces[data_name] = self._nonces.get(data_name, 0) + 1

    def read(self, data_name: str, *optional: str) -> str:
        if isinstance(self.rw, EmbedTextRW):
            if data_name and data_name != self.rw.name:
                raise new_custom_error(self.title, None, ErrCode.LoaderDataFilepathError, self.rw.name, data_name)
            return self.rw.content

        path = self.path(data_name, *optional)
        try:
            mtime = path.stat().st_mtime
        except OSError as e:
            raise new_custom_error(self.title, e, ErrCode.LoaderFileReadError, path.as_posix())

        key = path.as_posix()
        if self.read_cache:
            with self._cache_lock:
                cached = self._cache.get(key)
            if cached and cached[0] == mtime:
                return cached[1]

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise new_custom_error(self.title, e, ErrCode.LoaderFileReadError, key)

        if self.read_cache:
            with self._cache_lock:
                self._cache[key] = (mtime, content)
        return content

    def write(self, data_name: str, user: str, content: str | bytes, *optional: str) -> None:
        """Write the text, holding the rely model item lock, then publish an item update."""
        self._check_allow_modify()
        if self.rely_model is None:
            self._write_file(data_name, content, *optional)
            return

        rely = self.rely_model
        rely.locks.run(
            rely.lock_key(data_name),
            user,
            rely.name,
            lambda _lock: self._write_file(data_name, content, *optional),
        )
        if not self.skip_rely_update and rely.exists(data_name):
            rely.notify_text_updated(data_name, user, *optional)

    def remove(self, data_name: str, user: str, *optional: str) -> None:
        self._check_allow_modify()
        if self.rely_model is None:
            self._remove(data_name, *optional)
            return

        rely = self.rely_model
        rely.locks.run(rely.lock_key(data_name), user, rely.name, lambda _lock: self._remove(data_name, *optional))

    def modified_time(self, data_name: str, *optional: str) -> float:
        return self.path(data_name, *optional).stat().st_mtime

    # Rely model actions

    def copy_for(self, src: str, dst: str) -> None:
        src_path, dst_path = self.path(src), self.path(dst)
        if not src_path.exists():
            return
        dst_path.parent.mkdir(parents=True, exist_ok=True)
        if src_path.is_dir():
            shutil.copytree(src_path, dst_path, dirs_exist_ok=True)
        else:
            shutil.copyfile(src_path, dst_path)
        self._bump(dst)

    def rename_for(self, src: str, dst: str) -> None:
        src_path, dst_path = self.path(src), self.path(dst)
        if not src_path.exists():
            return
        dst_path.parent.mkdir(parents=True, exist_ok=True)
        src_path.replace(dst_path)
        self._bump(src)
        self._bump(dst)

    def remove_for(self, data_name: str) -> None:
        self._remove(data_name)

    # Private

    def _check_allow_modify(self) -> None:
        if isinstance(self.rw, EmbedTextRW):
            raise new_custom_error(self.title, None, ErrCode.LoaderEmbedNotAllowModifyErr)
        if not self.root or not self.extension:
            raise new_custom_error(self.title, None, ErrCode.LoaderRootOrExtensionEmptyErr)

    def _write_file(self, data_name: str, content: str | bytes, *optional: str) -> None:
        path = self.path(data_name, *optional)
        try:
            write_file(path, content)
        except OSError as e:
            raise new_custom_error(self.title, e, ErrCode.FileWriteError, path.as_posix())
        self._forget(path)
        self._bump(data_name)
        logger.debug(f"Text [{self.title}] written for {data_name}")

    def _remove(self, data_name: str, *optional: str) -> None:
        path = self.path(data_name, *optional)
        if path.is_dir():
            shutil.rmtree(path)
        else:
            remove_file(path, stop_at=self.root_path)
        self._forget(path)
        self._bump(data_name)

    def __repr__(self) -> str:
        return f"ModelText({self.title!r}, root={self.root!r})"


def read_optional(text: ModelText, data_name: str, *optional: str) -> Optional[str]:
    """Read the text, returning None when the file does not exist."""
    if not text.exists(data_name, *optional):
        return None
    return text.read(data_name, *optional)
