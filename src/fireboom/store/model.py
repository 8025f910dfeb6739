"""
File-backed typed model.

A model stores pydantic items as JSON files under a root directory and keeps
them cached in memory. The DataRW variant decides the file layout:

- EmbedDataRW: one read-only item bundled with the package
- SingleDataRW: one item with a fixed data name (``root/<dataName>.<ext>``)
- MultipleDataRW: many items keyed by data name (``root/<dataName>.<ext>``,
  data names may contain ``/``)

Every successful mutation runs the DataHook, then publishes a data event on
the bus channel named after the model. When nobody consumed the event the
``after_mutate`` hook runs in the background (it usually rebuilds the engine).

Usage:
    model = Model("role", "store/role", ".json", MultipleDataRW("code"), Role)
    model.bind(workdir, bus=bus, locks=locks)
    model.init()
    model.insert({"code": "admin"}, user="alice")
"""

from __future__ import annotations

import copy
import json
import logging
import os
import shutil
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Generic, Iterable, Optional, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from ..core.consts import SYSTEM_USER
from ..core.errcode import CustomError, ErrCode, new_custom_error
from ..core.utils import remove_file, write_file
from ..messaging import Event, EventBus
from .lock import DataLocks
from .modifies import DataModifies, merge_data, overwrite_if_empty
from .text import ModelText
from .tree import MISSING, DataTree, build_trees

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass
class EmbedDataRW:
    data_name: str
    content: str


@dataclass
class SingleDataRW:
    data_name: str
    init_data: Optional[Dict[str, Any]] = None
    ignore_merge_if_existed: bool = False


@dataclass
class MultipleDataRW:
    name_field: str
    filter: Optional[Callable[[Any], bool]] = None
    logic_delete: Optional[Callable[[Any], None]] = None
    merge_data: Optional[Dict[str, Any]] = None


DataRW = EmbedDataRW | SingleDataRW | MultipleDataRW


@dataclass
class DataHook(Generic[T]):
    """Callbacks around model mutations."""
    on_insert: Optional[Callable[[T], None]] = None
    on_update: Optional[Callable[[T, T, str], None]] = None

    after_init: Optional[Callable[[Dict[str, T]], None]] = None
    after_mutate: Optional[Callable[[], None]] = None

    after_insert: Optional[Callable[[T, str], bool]] = None
    after_update: Optional[Callable[[T, DataModifies, str, tuple], None]] = None
    after_rename: Optional[Callable[[T, T, str], None]] = None
    after_delete: Optional[Callable[[str, str], None]] = None

    after_batch_insert: Optional[Callable[[list[T], str, list[Any]], bool]] = None
    after_batch_update: Optional[Callable[[list[tuple[T, DataModifies]], str], None]] = None
    after_batch_rename: Optional[Callable[[list[T], list[T], str], None]] = None
    after_batch_delete: Optional[Callable[[list[str], str], None]] = None


class DataMutation(BaseModel):
    """Body of copy/rename requests."""
    model_config = ConfigDict(extra="ignore")

    src: str
    dst: str
    overload: bool = False
    user: str = ""


def run_in_thread(fn: Callable[[], None]) -> None:
    threading.Thread(target=fn, name="after-mutate", daemon=True).start()


class Model(Generic[T]):
    """
    Typed repository over JSON files.

    Args:
        name: Model name, also the bus channel and error mode
        root: Directory relative to the working directory
        extension: Data file extension
        rw: DataRW variant
        item_type: Pydantic model of the items
        hook: DataHook callbacks
        tree_extra: Builds the ``extra`` of data tree nodes
        batch_extra_field: Field read from batch insert payloads and passed
            to ``after_batch_insert``
    """

    def __init__(
        self,
        name: str,
        root: str,
        extension: str,
        rw: DataRW,
        item_type: type[T],
        hook: Optional[DataHook[T]] = None,
        tree_extra: Optional[Callable[[T], Any]] = None,
        batch_extra_field: Optional[str] = None,
        load_error_ignored: bool = False,
    ):
        self.name = name
        self.root = root
        self.extension = extension
        self.rw = rw
        self.item_type = item_type
        self.hook = hook or DataHook()
        self.tree_extra = tree_extra
        self.batch_extra_field = batch_extra_field
        self.load_error_ignored = load_error_ignored

        self.workdir = Path(".")
        self.bus: Optional[EventBus] = None
        self.locks = DataLocks()
        self.mutate_runner: Callable[[Callable[[], None]], None] = run_in_thread
        self.load_errored = False

        self._lock = threading.RLock()
        self._cache: Dict[str, T] = {}
        self._text_items: list[ModelText] = []
        self._inited = False

    # Wiring

    def bind(
        self,
        workdir: str | Path,
        bus: Optional[EventBus] = None,
        locks: Optional[DataLocks] = None,
        logic_delete: bool = True,
    ) -> "Model[T]":
        self.workdir = Path(workdir)
        self.bus = bus
        if locks is not None:
            self.locks = locks
        if not logic_delete and isinstance(self.rw, MultipleDataRW):
            self.rw.logic_delete = None
        return self

    def add_text_item(self, text: ModelText) -> None:
        self._text_items.append(text)

    @property
    def text_items(self) -> list[ModelText]:
        return list(self._text_items)

    @property
    def is_multiple(self) -> bool:
        return isinstance(self.rw, MultipleDataRW)

    @property
    def is_embed(self) -> bool:
        return isinstance(self.rw, EmbedDataRW)

    @property
    def root_path(self) -> Path:
        return self.workdir / self.root

    def init(self) -> list[CustomError]:
        """Load every file into the cache and run ``after_init``."""
        with self._lock:
            if self._inited:
                return []
            self._inited = True
            errors = self._load()

        succeed = len(self._cache)
        if errors and not self.load_error_ignored:
            self.load_errored = succeed == 0
            for err in errors:
                logger.error(
                    "Load file errored",
                    extra={self.name: err.format_args[0] if err.format_args else "", "error": str(err)},
                )
        logger.debug(f"Model {self.name} loaded: {succeed} succeed, {len(errors)} failed")

        if not errors and self.hook.after_init:
            self.hook.after_init(self._snapshot())
        return errors

    # Paths and names

    def get_path(self, data_name: Optional[str] = None) -> Path:
        if isinstance(self.rw, MultipleDataRW):
            if not data_name:
                raise new_custom_error(self.name, None, ErrCode.LoaderNameEmptyError)
            return self.root_path / f"{data_name}{self.extension}"
        return self.root_path / f"{self.rw.data_name}{self.extension}"

    def lock_key(self, data_name: Optional[str] = None) -> str:
        return self.get_path(data_name).as_posix()

    def data_name_of(self, item: T | Dict[str, Any]) -> str:
        if isinstance(self.rw, MultipleDataRW):
            if isinstance(item, dict):
                return str(item.get(self.rw.name_field) or "")
            return str(getattr(item, self.rw.name_field, "") or "")
        return self.rw.data_name

    def set_data_name(self, item: T, data_name: str) -> None:
        if isinstance(self.rw, MultipleDataRW):
            setattr(item, self.rw.name_field, data_name)

    @property
    def archive_base(self) -> Path:
        """Directory zip entry names are relative to (``store`` for ``store/operation``)."""
        return self.workdir / Path(self.root).parts[0]

    def archive_name(self, path: Path) -> str:
        return path.relative_to(self.archive_base).as_posix()

    # Serialization

    def parse(self, payload: Any) -> T:
        if isinstance(payload, (bytes, str)):
            try:
                payload = json.loads(payload)
            except ValueError as e:
                raise new_custom_error(self.name, e, ErrCode.ParamBindError)
        if isinstance(payload, self.item_type):
            return payload.model_copy(deep=True)
        try:
            return self.item_type.model_validate(payload)
        except ValidationError as e:
            raise new_custom_error(self.name, e, ErrCode.ParamBindError)

    def dump(self, item: T) -> Dict[str, Any]:
        return item.model_dump(mode="json", by_alias=True, exclude_none=True)

    def encode(self, item: T) -> str:
        return json.dumps(self.dump(item), indent=2, ensure_ascii=False)

    # Reads

    def exists(self, data_name: str) -> bool:
        with self._lock:
            item = self._cache.get(data_name)
            return item is not None and self._filter(item)

    def get(self, data_name: str) -> T:
        with self._lock:
            item = self._cache.get(data_name)
            if item is None or not self._filter(item):
                raise new_custom_error(self.name, None, ErrCode.LoaderDataNotExistError, data_name)
            return item.model_copy(deep=True)

    def _cached(self, data_name: str) -> T:
        """Cached item without copying; callers hold ``_lock``."""
        item = self._cache.get(data_name)
        if item is None or not self._filter(item):
            raise new_custom_error(self.name, None, ErrCode.LoaderDataNotExistError, data_name)
        return item

    def first(self) -> Optional[T]:
        items = self.list()
        return items[0] if items else None

    def get_with_lock_user(self, data_name: str) -> Dict[str, Any]:
        item = self.get(data_name)
        return {"data": self.dump(item), "user": self.locks.editor(self.lock_key(data_name))}

    def list(self, *conditions: Callable[[T], bool]) -> list[T]:
        """Items passing the filter and any of ``conditions``, sorted by data name."""
        with self._lock:
            items = [
                item.model_copy(deep=True)
                for item in self._cache.values()
                if self._filter(item) and (not conditions or any(c(item) for c in conditions))
            ]
        items.sort(key=self.data_name_of)
        return items

    def list_by_names(self, data_names: Iterable[str]) -> list[T]:
        names = set(data_names)
        return self.list(lambda item: self.data_name_of(item) in names)

    def data_names(self) -> list[str]:
        return [self.data_name_of(item) for item in self.list()]

    def get_trees(self) -> list[DataTree]:
        self._check_multiple()

        def lookup(data_name: str) -> Any:
            with self._lock:
                item = self._cache.get(data_name)
                if item is None or not self._filter(item):
                    return MISSING
                return self.tree_extra(item) if self.tree_extra else None

        return build_trees(self.root_path, self.extension, lookup)

    def set_runtime(self, data_name: str, **fields: Any) -> bool:
        """Set runtime-only attributes on the cached item."""
        with self._lock:
            item = self._cache.get(data_name)
            if item is None:
                return False
            for key, value in fields.items():
                setattr(item, key, value)
            return True

    # Writes

    def insert(self, payload: Any, user: str) -> T:
        self._check_allow_modify()
        item = self.parse(payload)
        with self._lock:
            self._insert_not_lock(item)
        self._after_insert(item, user)
        return item.model_copy(deep=True)

    def insert_or_update(self, payload: Any) -> T:
        """Insert or replace as the system user, used for configs the server maintains itself."""
        self._check_allow_modify()
        item = self.parse(payload)
        data_name = self.data_name_of(item)
        with self._lock:
            existed = self._cache.get(data_name)
            if existed is not None:
                if self.hook.on_update:
                    self.hook.on_update(existed, item, SYSTEM_USER)
                modifies = merge_data(self.dump(existed), self.dump(item))[1]
            else:
                if self.hook.on_insert:
                    self.hook.on_insert(item)
                modifies = None
            self._store(item)

        if existed is None:
            self._after_insert(item, SYSTEM_USER)
        elif not modifies.none_modified():
            self._after_update(item, modifies, SYSTEM_USER, ())
        return item.model_copy(deep=True)

    def insert_batch(self, payloads: Sequence[Any], user: str, overwrite: bool = False) -> list[Dict[str, Any]]:
        """
        Insert many items.

        Existing items are skipped unless ``overwrite`` is set.

        Returns:
            ``[{dataName, succeed}]`` for every attempted item
        """
        self._check_allow_modify()
        results: list[Dict[str, Any]] = []
        stored: list[T] = []
        extras: list[Any] = []
        with self._lock:
            for raw in payloads:
                if not isinstance(raw, dict):
                    continue
                item = self.parse(raw)
                data_name = self.data_name_of(item)
                existed = self._cache.get(data_name) if data_name else None
                if existed is not None and self._filter(existed) and not overwrite:
                    continue
                try:
                    if existed is not None and self._filter(existed):
                        if self.hook.on_update:
                            self.hook.on_update(existed, item, user)
                    elif self.hook.on_insert:
                        self.hook.on_insert(item)
                    self._store(item)
                except CustomError as e:
                    logger.warning(f"Batch insert of {self.name} [{data_name}] failed: {e}")
                    results.append({"dataName": data_name, "succeed": False})
                    continue
                results.append({"dataName": data_name, "succeed": True})
                stored.append(item)
                if self.batch_extra_field:
                    extras.append(raw.get(self.batch_extra_field))

        self._after_batch_insert(stored, user, extras)
        return results

    def update(self, payload: Any, user: str, watch_actions: Sequence[str] = ()) -> T:
        """
        Merge an incremental update into an existing item.

        Raises:
            CustomError: LoaderDataNotExistError, LoaderNoneModifiedError,
                LoaderDataExistEditorError
        """
        self._check_allow_modify()
        modify = self._payload_dict(payload)
        data_name = self.data_name_of(modify)
        if not data_name:
            raise new_custom_error(self.name, None, ErrCode.LoaderNameEmptyError)
        if not self.exists(data_name):
            raise new_custom_error(self.name, None, ErrCode.LoaderDataNotExistError, data_name)

        def action(lock):
            try:
                with self._lock:
                    src = self._cached(data_name)
                    return self._merge(data_name, src, modify, user)
            finally:
                lock.reset()

        dst, modifies = self.locks.run(self.lock_key(data_name), user, self.name, action)
        if modifies.none_modified():
            if watch_actions:
                return self.get(data_name)
            raise new_custom_error(self.name, None, ErrCode.LoaderNoneModifiedError, data_name)

        self._after_update(dst, modifies, user, tuple(watch_actions))
        return dst.model_copy(deep=True)

    def update_batch(self, payloads: Sequence[Any], user: str) -> list[T]:
        self._check_allow_modify()
        modifies_list = [self._payload_dict(p) for p in payloads]
        names = [self.data_name_of(m) for m in modifies_list]
        for data_name in names:
            if not self.exists(data_name):
                raise new_custom_error(self.name, None, ErrCode.LoaderDataNotExistError, data_name)

        updated: list[tuple[T, DataModifies]] = []

        def action():
            with self._lock:
                for data_name, modify in zip(names, modifies_list):
                    try:
                        dst, modifies = self._merge(data_name, self._cached(data_name), modify, user)
                    except CustomError as e:
                        logger.warning(f"Batch update of {self.name} [{data_name}] failed: {e}")
                        continue
                    if not modifies.none_modified():
                        updated.append((dst, modifies))

        self.locks.run_batch([self.lock_key(n) for n in names], user, self.name, action)
        self._after_batch_update(updated, user)
        return [item.model_copy(deep=True) for item, _ in updated]

    def delete(self, data_name: str, user: str) -> None:
        self._check_allow_modify()
        if not self.exists(data_name):
            raise new_custom_error(self.name, None, ErrCode.LoaderDataNotExistError, data_name)

        def action(_lock):
            with self._lock:
                self._cached(data_name)
                self._delete_not_lock([data_name])

        self.locks.run(self.lock_key(data_name), user, self.name, action)
        self._after_delete(data_name, user)

    def delete_batch(self, data_names: Sequence[str], user: str) -> None:
        self._check_allow_modify()
        if not data_names:
            raise new_custom_error(self.name, None, ErrCode.DataEmptyListError)
        for data_name in data_names:
            if not self.exists(data_name):
                raise new_custom_error(self.name, None, ErrCode.LoaderDataNotExistError, data_name)

        def action():
            with self._lock:
                self._delete_not_lock(list(data_names))

        self.locks.run_batch([self.lock_key(n) for n in data_names], user, self.name, action)
        self._after_batch_delete(list(data_names), user)

    def copy(self, mutation: DataMutation) -> T:
        with self._lock:
            src, dst = self._check_mutation(mutation.src, mutation.dst)
            for text in self._text_items:
                text.copy_for(mutation.src, mutation.dst)
            self._insert_not_lock(dst)
        self._after_insert(dst, mutation.user)
        return dst.model_copy(deep=True)

    def rename(self, mutation: DataMutation) -> T:
        if not self.exists(mutation.src):
            raise new_custom_error(self.name, None, ErrCode.LoaderDataNotExistError, mutation.src)

        def action(lock):
            try:
                with self._lock:
                    src, dst = self._check_mutation(mutation.src, mutation.dst)
                    if self.hook.on_update:
                        self.hook.on_update(src, dst, mutation.user)
                    self._migrate(src, dst)
                    return src, dst
            finally:
                lock.reset()

        src, dst = self.locks.run(self.lock_key(mutation.src), mutation.user, self.name, action)
        self._after_rename(src, dst, mutation.user)
        return dst.model_copy(deep=True)

    def rename_by_parent(self, mutation: DataMutation) -> list[str]:
        """
        Rename every item under the ``src`` directory to ``dst``.

        Returns:
            Destination data names that already exist. When not empty and
            ``overload`` is false nothing is renamed.
        """
        with self._lock:
            srcs = self._list_by_parent(mutation.src)
            dsts = []
            repeats = []
            for item in srcs:
                dst = item.model_copy(deep=True)
                dst_name = mutation.dst + self.data_name_of(item)[len(mutation.src):]
                self.set_data_name(dst, dst_name)
                dsts.append(dst)
                if self.exists(dst_name):
                    repeats.append(dst_name)
            if repeats and not mutation.overload:
                return repeats
            if not srcs:
                return repeats

        def action():
            with self._lock:
                for src_item, dst_item in zip(srcs, dsts):
                    if self.data_name_of(src_item) not in self._cache:
                        continue
                    try:
                        if self.hook.on_update:
                            self.hook.on_update(src_item, dst_item, mutation.user)
                    except CustomError as e:
                        logger.warning(f"Rename of {self.name} [{self.data_name_of(src_item)}] skipped: {e}")
                        continue
                    self._migrate(src_item, dst_item)
                src_dir = self.root_path / mutation.src
                if src_dir.is_dir() and not any(src_dir.rglob(f"*{self.extension}")):
                    shutil.rmtree(src_dir)

        self.locks.run_batch([self.lock_key(self.data_name_of(s)) for s in srcs], mutation.user, self.name, action)
        self._after_batch_rename(srcs, dsts, mutation.user)
        return repeats

    def copy_by_parent(self, mutation: DataMutation) -> list[str]:
        """Copy every item under ``src`` to ``dst``; returns colliding names like ``rename_by_parent``."""
        with self._lock:
            srcs = self._list_by_parent(mutation.src)
            dsts, repeats = [], []
            for item in srcs:
                dst = item.model_copy(deep=True)
                dst_name = mutation.dst + self.data_name_of(item)[len(mutation.src):]
                self.set_data_name(dst, dst_name)
                if self.exists(dst_name):
                    repeats.append(dst_name)
                dsts.append(dst)
            if repeats and not mutation.overload:
                return repeats

            copied = []
            for src_item, dst_item in zip(srcs, dsts):
                dst_name = self.data_name_of(dst_item)
                for text in self._text_items:
                    text.copy_for(self.data_name_of(src_item), dst_name)
                if self.hook.on_insert:
                    self.hook.on_insert(dst_item)
                self._store(dst_item)
                copied.append(dst_item)
        self._after_batch_insert(copied, mutation.user, [])
        return repeats

    def delete_by_parent(self, src: str, user: str) -> list[str]:
        with self._lock:
            names = [self.data_name_of(item) for item in self._list_by_parent(src)]

        def action():
            with self._lock:
                self._delete_not_lock(names)
                src_dir = self.root_path / src
                if src_dir.is_dir():
                    shutil.rmtree(src_dir)

        self.locks.run_batch([self.lock_key(n) for n in names], user, self.name, action)
        if names:
            self._after_batch_delete(names, user)
        return names

    def try_lock(self, data_name: str, user: str) -> None:
        """Mark ``user`` as the editor of ``data_name``."""
        if not self.exists(data_name):
            raise new_custom_error(self.name, None, ErrCode.LoaderDataNotExistError, data_name)
        self.locks.run(self.lock_key(data_name), user, self.name, lambda lock: lock.refresh(user))

    def notify_text_updated(self, data_name: str, user: str, *optional: str) -> None:
        """Publish an item update after one of its texts changed."""
        self._after_update(self.get(data_name), DataModifies(), user, optional)

    def reload(self, data_name: str, user: str = SYSTEM_USER) -> Optional[T]:
        """Re-read one data file changed outside the store and publish the change."""
        self._check_allow_modify()
        path = self.get_path(data_name)
        if not path.exists():
            if self.exists(data_name):
                with self._lock:
                    self._cache.pop(data_name, None)
                    self.locks.remove(self.lock_key(data_name))
                self._after_delete(data_name, user)
            return None

        item = self._read_file(path)
        with self._lock:
            existed = self._cache.get(data_name)
            self._cache[data_name] = item
            self.locks.ensure(self.lock_key(data_name))
        if existed is None:
            self._after_insert(item, user)
        else:
            modifies = merge_data(self.dump(existed), self.dump(item))[1]
            if not modifies.none_modified():
                self._after_update(item, modifies, user, ())
        return item.model_copy(deep=True)

    # Private: loading

    def _load(self) -> list[CustomError]:
        errors: list[CustomError] = []
        if isinstance(self.rw, MultipleDataRW):
            if not self.root_path.exists():
                return errors
            for dirpath, dirnames, filenames in os.walk(self.root_path):
                dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
                for filename in sorted(filenames):
                    if filename.startswith(".") or not filename.endswith(self.extension):
                        continue
                    path = Path(dirpath) / filename
                    try:
                        self._read_to_cache(path)
                    except CustomError as e:
                        errors.append(e)
        elif isinstance(self.rw, SingleDataRW):
            try:
                self._read_single(self.rw)
            except CustomError as e:
                errors.append(e)
        else:
            try:
                item = self.parse(self.rw.content)
            except CustomError as e:
                errors.append(e)
            else:
                self._cache[self.rw.data_name] = item
        return errors

    def _read_file(self, path: Path) -> T:
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise new_custom_error(self.name, e, ErrCode.LoaderFileReadError, path.as_posix())
        try:
            return self.item_type.model_validate(json.loads(content))
        except (ValueError, ValidationError) as e:
            raise new_custom_error(self.name, e, ErrCode.LoaderFileUnmarshalError, path.as_posix())

    def _read_to_cache(self, path: Path) -> None:
        item = self._read_file(path)
        data_name = self.data_name_of(item)
        expected = self.get_path(data_name) if data_name else None
        if expected is None or expected.resolve() != path.resolve():
            rel = path.relative_to(self.root_path).as_posix()
            raise new_custom_error(self.name, None, ErrCode.LoaderDataFilepathError, data_name or rel, path.as_posix())
        self._cache[data_name] = item
        self.locks.add(self.lock_key(data_name))

    def _read_single(self, rw: SingleDataRW) -> None:
        path = self.get_path()
        if not path.exists():
            if rw.init_data is None:
                raise new_custom_error(self.name, None, ErrCode.LoaderFileNotExistError, path.as_posix())
            item = self.parse(copy.deepcopy(rw.init_data))
            self._write(path, item)
        else:
            item = self._read_file(path)
            if rw.init_data is not None and not rw.ignore_merge_if_existed:
                filled, modified = overwrite_if_empty(self.dump(item), rw.init_data)
                if modified:
                    item = self.parse(filled)
                    self._write(path, item)
        self._cache[rw.data_name] = item
        self.locks.add(self.lock_key())

    # Private: mutations

    def _payload_dict(self, payload: Any) -> Dict[str, Any]:
        if isinstance(payload, (bytes, str)):
            try:
                payload = json.loads(payload)
            except ValueError as e:
                raise new_custom_error(self.name, e, ErrCode.ParamBindError)
        if isinstance(payload, BaseModel):
            payload = self.dump(payload)
        if not isinstance(payload, dict):
            raise new_custom_error(self.name, None, ErrCode.ParamBindError)
        return payload

    def _merge(self, data_name: str, src: T, modify: Dict[str, Any], user: str) -> tuple[T, DataModifies]:
        if isinstance(self.rw, MultipleDataRW):
            modify = {k: v for k, v in modify.items() if k != self.rw.name_field}
        merged, modifies = merge_data(self.dump(src), modify)
        if modifies.none_modified():
            return src.model_copy(deep=True), modifies

        if isinstance(self.rw, MultipleDataRW) and self.rw.merge_data:
            merged = overwrite_if_empty(merged, self.rw.merge_data, True)[0]
        dst = self.parse(merged)
        self._carry_runtime(src, dst)
        if self.hook.on_update:
            self.hook.on_update(src, dst, user)
        self._store(dst)
        return dst, modifies

    def _carry_runtime(self, src: T, dst: T) -> None:
        for field_name, info in type(src).model_fields.items():
            if info.exclude:
                setattr(dst, field_name, getattr(src, field_name))

    def _insert_not_lock(self, item: T) -> None:
        data_name = self._require_name(item)
        if self.exists(data_name):
            raise new_custom_error(self.name, None, ErrCode.LoaderDataExistError, data_name)
        if self.hook.on_insert:
            self.hook.on_insert(item)
        self._store(item)

    def _require_name(self, item: T) -> str:
        data_name = self.data_name_of(item)
        if not data_name:
            raise new_custom_error(self.name, None, ErrCode.LoaderNameEmptyError)
        if data_name.startswith("/") or ".." in data_name.split("/"):
            raise new_custom_error(self.name, None, ErrCode.ParamIllegalError, data_name)
        return data_name

    def _store(self, item: T) -> None:
        if isinstance(self.rw, EmbedDataRW):
            raise new_custom_error(self.name, None, ErrCode.LoaderEmbedNotAllowModifyErr)
        data_name = self._require_name(item)
        path = self.get_path(data_name)
        self._write(path, item)
        self._cache[data_name] = item
        self.locks.ensure(self.lock_key(data_name))

    def _write(self, path: Path, item: T) -> None:
        try:
            write_file(path, self.encode(item))
        except OSError as e:
            raise new_custom_error(self.name, e, ErrCode.FileWriteError, path.as_posix())

    def _delete_not_lock(self, data_names: list[str]) -> None:
        rw = self._check_multiple()
        for data_name in data_names:
            item = self._cache.get(data_name)
            if item is None:
                continue
            for text in self._text_items:
                text.remove_for(data_name)
            if rw.logic_delete is not None:
                rw.logic_delete(item)
                self._store(item)
                continue
            remove_file(self.get_path(data_name), stop_at=self.root_path)
            self._cache.pop(data_name, None)
            self.locks.remove(self.lock_key(data_name))

    def _check_mutation(self, src: str, dst: str) -> tuple[T, T]:
        self._check_multiple()
        if self.exists(dst):
            raise new_custom_error(self.name, None, ErrCode.LoaderDataExistError, dst)
        src_item = self.get(src)
        dst_item = src_item.model_copy(deep=True)
        self.set_data_name(dst_item, dst)
        self._require_name(dst_item)
        return src_item, dst_item

    def _migrate(self, src: T, dst: T) -> None:
        self._store(dst)
        src_name, dst_name = self.data_name_of(src), self.data_name_of(dst)
        for text in self._text_items:
            text.rename_for(src_name, dst_name)
        src_path, dst_path = self.get_path(src_name), self.get_path(dst_name)
        self._cache.pop(src_name, None)
        self.locks.remove(self.lock_key(src_name))
        if src_path != dst_path:
            remove_file(src_path, stop_at=self.root_path)

    def _list_by_parent(self, src: str) -> list[T]:
        src = src.rstrip("/")
        prefixes = (f"{src}/", f"{src}.")
        return [
            item.model_copy(deep=True)
            for item in sorted(self._cache.values(), key=self.data_name_of)
            if self._filter(item) and self.data_name_of(item).startswith(prefixes)
        ]

    def _filter(self, item: T) -> bool:
        if isinstance(self.rw, MultipleDataRW) and self.rw.filter is not None:
            return bool(self.rw.filter(item))
        return True

    def _check_allow_modify(self) -> None:
        if isinstance(self.rw, EmbedDataRW):
            raise new_custom_error(self.name, None, ErrCode.LoaderEmbedNotAllowModifyErr)

    def _check_multiple(self) -> MultipleDataRW:
        if not isinstance(self.rw, MultipleDataRW):
            raise new_custom_error(self.name, None, ErrCode.LoaderMultipleOnlyError)
        return self.rw

    def _snapshot(self) -> Dict[str, T]:
        with self._lock:
            return {k: v.model_copy(deep=True) for k, v in self._cache.items() if self._filter(v)}

    # Private: hooks and events

    def _publish(self, event: Event, data: Any) -> bool:
        if self.bus is None:
            return False
        return self.bus.publish(self.name, event, data)

    def _after_mutate(self, ignore: bool) -> None:
        if ignore or self.hook.after_mutate is None:
            return
        self.mutate_runner(self.hook.after_mutate)

    def _after_insert(self, item: T, user: str) -> None:
        ignore = user == SYSTEM_USER
        if self.hook.after_insert and not self.hook.after_insert(item.model_copy(deep=True), user):
            ignore = True
        ignore = ignore or self._publish(Event.INSERT, item.model_copy(deep=True))
        self._after_mutate(ignore)

    def _after_update(self, item: T, modifies: DataModifies, user: str, watch_actions: tuple) -> None:
        if self.hook.after_update:
            self.hook.after_update(item.model_copy(deep=True), modifies, user, watch_actions)
        ignore = user == SYSTEM_USER or self._publish(Event.UPDATE, item.model_copy(deep=True))
        self._after_mutate(ignore)

    def _after_rename(self, src: T, dst: T, user: str) -> None:
        if self.hook.after_rename:
            self.hook.after_rename(src, dst, user)
        ignore = user == SYSTEM_USER or (
            self._publish(Event.DELETE, self.data_name_of(src)) and self._publish(Event.INSERT, dst.model_copy(deep=True))
        )
        self._after_mutate(ignore)

    def _after_delete(self, data_name: str, user: str) -> None:
        if self.hook.after_delete:
            self.hook.after_delete(data_name, user)
        ignore = user == SYSTEM_USER or self._publish(Event.DELETE, data_name)
        self._after_mutate(ignore)

    def _after_batch_insert(self, items: list[T], user: str, extras: list[Any]) -> None:
        if not items:
            return
        ignore = user == SYSTEM_USER
        if self.hook.after_batch_insert and not self.hook.after_batch_insert(
            [i.model_copy(deep=True) for i in items], user, extras
        ):
            ignore = True
        ignore = ignore or self._publish(Event.BATCH_INSERT, [i.model_copy(deep=True) for i in items])
        self._after_mutate(ignore)

    def _after_batch_update(self, updated: list[tuple[T, DataModifies]], user: str) -> None:
        if not updated:
            return
        if self.hook.after_batch_update:
            self.hook.after_batch_update(updated, user)
        ignore = user == SYSTEM_USER or self._publish(
            Event.BATCH_UPDATE, [item.model_copy(deep=True) for item, _ in updated]
        )
        self._after_mutate(ignore)

    def _after_batch_rename(self, srcs: list[T], dsts: list[T], user: str) -> None:
        if self.hook.after_batch_rename:
            self.hook.after_batch_rename(srcs, dsts, user)
        ignore = user == SYSTEM_USER or (
            self._publish(Event.BATCH_DELETE, [self.data_name_of(s) for s in srcs])
            and self._publish(Event.BATCH_INSERT, [d.model_copy(deep=True) for d in dsts])
        )
        self._after_mutate(ignore)

    def _after_batch_delete(self, data_names: list[str], user: str) -> None:
        if self.hook.after_batch_delete:
            self.hook.after_batch_delete(data_names, user)
        ignore = user == SYSTEM_USER or self._publish(Event.BATCH_DELETE, list(data_names))
        self._after_mutate(ignore)

    def __repr__(self) -> str:
        return f"Model({self.name!r}, root={self.root!r})"


