"""Tests for the file-backed model store."""

from __future__ import annotations

import json
import threading
import time
from pathlib import Path
from typing import Optional

import pytest
from pydantic import BaseModel

from fireboom.core.errcode import CustomError, ErrCode
from fireboom.messaging import Event, EventBus
from fireboom.store import DataMutation, EmbedDataRW, Model, MultipleDataRW, SingleDataRW, merge_data


class Item(BaseModel):
    code: str
    remark: str = ""
    enabled: bool = False
    extra: Optional[dict] = None


class Setting(BaseModel):
    name: str = ""
    port: int = 0


def make_model(workdir: Path, bus: Optional[EventBus] = None, **kwargs) -> Model[Item]:
    model = Model("role", "store/role", ".json", MultipleDataRW("code"), Item, **kwargs)
    model.bind(workdir, bus=bus)
    model.mutate_runner = lambda fn: fn()
    model.init()
    return model


def capture(bus: EventBus, channel: str, event: Event) -> list:
    seen: list = []
    bus.subscribe(channel, event, lambda data: seen.append(data) or data)
    return seen


class TestMerge:
    def test_add_remove_overwrite(self) -> None:
        merged, modifies = merge_data(
            {"a": 1, "b": "x", "c": {"d": 1, "e": 2}},
            {"a": 2, "b": None, "f": True, "c": {"d": 5}},
        )
        assert merged == {"a": 2, "c": {"d": 5, "e": 2}, "f": True}
        assert modifies.flatten() == {"a": "overwrite", "b": "remove", "f": "add", "c.d": "overwrite"}
        assert modifies.get_detail("c.d").origin == 1

    def test_type_mismatch_ignored(self) -> None:
        merged, modifies = merge_data({"a": 1}, {"a": "1"})
        assert merged == {"a": 1}
        assert modifies.none_modified()


class TestMultipleModel:
    def test_insert_writes_file_and_publishes(self, tmp_path: Path) -> None:
        bus = EventBus()
        inserted = capture(bus, "role", Event.INSERT)
        model = make_model(tmp_path, bus)

        model.insert({"code": "admin", "remark": "root"}, user="alice")

        path = tmp_path / "store/role/admin.json"
        assert json.loads(path.read_text(encoding="utf-8"))["remark"] == "root"
        assert [item.code for item in inserted] == ["admin"]
        assert model.get("admin").remark == "root"

    def test_insert_duplicate_fails(self, tmp_path: Path) -> None:
        model = make_model(tmp_path)
        model.insert({"code": "admin"}, user="alice")
        with pytest.raises(CustomError) as exc:
            model.insert({"code": "admin"}, user="alice")
        assert exc.value.code == ErrCode.LoaderDataExistError

    def test_illegal_name_rejected(self, tmp_path: Path) -> None:
        model = make_model(tmp_path)
        with pytest.raises(CustomError) as exc:
            model.insert({"code": "../escape"}, user="alice")
        assert exc.value.code == ErrCode.ParamIllegalError

    def test_after_mutate_only_without_consumers(self, tmp_path: Path) -> None:
        calls: list[str] = []
        bus = EventBus()
        model = make_model(tmp_path, bus)
        model.hook.after_mutate = lambda: calls.append("rebuild")

        model.insert({"code": "a"}, user="alice")
        assert calls == ["rebuild"]

        capture(bus, "role", Event.INSERT)
        model.insert({"code": "b"}, user="alice")
        assert calls == ["rebuild"]

    def test_system_user_writes_are_silent(self, tmp_path: Path) -> None:
        calls: list[str] = []
        bus = EventBus()
        inserted = capture(bus, "role", Event.INSERT)
        model = make_model(tmp_path, bus)
        model.hook.after_mutate = lambda: calls.append("rebuild")

        model.insert_or_update({"code": "a"})
        model.insert_or_update({"code": "a", "remark": "changed"})

        assert inserted == []
        assert calls == []
        assert model.get("a").remark == "changed"
        assert model.list()[0].code == "a"
        assert model.data_names() == ["a"]

    def test_update_merges_and_reports_unchanged(self, tmp_path: Path) -> None:
        bus = EventBus()
        updated = capture(bus, "role", Event.UPDATE)
        model = make_model(tmp_path, bus)
        model.insert({"code": "a", "remark": "x"}, user="alice")

        result = model.update({"code": "a", "enabled": True}, user="alice")
        assert result.enabled is True
        assert result.remark == "x"
        assert len(updated) == 1

        with pytest.raises(CustomError) as exc:
            model.update({"code": "a", "enabled": True}, user="alice")
        assert exc.value.code == ErrCode.LoaderNoneModifiedError

        # a watch action turns "nothing changed" into a plain read
        assert model.update({"code": "a", "enabled": True}, user="alice", watch_actions=["x"]).enabled

    def test_update_missing_fails(self, tmp_path: Path) -> None:
        model = make_model(tmp_path)
        with pytest.raises(CustomError) as exc:
            model.update({"code": "nope", "remark": "x"}, user="alice")
        assert exc.value.code == ErrCode.LoaderDataNotExistError

    def test_locked_by_other_user(self, tmp_path: Path) -> None:
        model = make_model(tmp_path)
        model.insert({"code": "a"}, user="alice")
        model.try_lock("a", "bob")

        with pytest.raises(CustomError) as exc:
            model.update({"code": "a", "remark": "x"}, user="alice")
        assert exc.value.code == ErrCode.LoaderDataExistEditorError
        assert model.get_with_lock_user("a")["user"] == "bob"

        # the holder may write and the write releases the lock
        model.update({"code": "a", "remark": "x"}, user="bob")
        assert model.get_with_lock_user("a")["user"] == ""

    def test_update_racing_delete_finishes(self, tmp_path: Path) -> None:
        model = make_model(tmp_path)
        model.insert({"code": "x"}, user="alice")
        deadline = time.monotonic() + 0.5

        def updates() -> None:
            i = 0
            while time.monotonic() < deadline:
                i += 1
                try:
                    model.update({"code": "x", "remark": str(i)}, user="alice")
                except CustomError:
                    pass

        def recreates() -> None:
            while time.monotonic() < deadline:
                try:
                    model.delete("x", user="alice")
                    model.insert({"code": "x"}, user="alice")
                except CustomError:
                    pass

        threads = [threading.Thread(target=updates), threading.Thread(target=recreates)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert [thread.is_alive() for thread in threads] == [False, False]

    def test_update_after_concurrent_delete_reports_missing(self, tmp_path: Path) -> None:
        model = make_model(tmp_path)
        model.insert({"code": "x"}, user="alice")
        locked_run = model.locks.run

        def delete_first(key, user, mode, action, check_editor=True):
            model._cache.pop("x", None)
            return locked_run(key, user, mode, action, check_editor)

        model.locks.run = delete_first
        with pytest.raises(CustomError) as exc:
            model.update({"code": "x", "remark": "late"}, user="alice")
        assert exc.value.code == ErrCode.LoaderDataNotExistError

    def test_delete_removes_empty_directories(self, tmp_path: Path) -> None:
        bus = EventBus()
        deleted = capture(bus, "role", Event.DELETE)
        model = make_model(tmp_path, bus)
        model.insert({"code": "group/a"}, user="alice")

        model.delete("group/a", user="alice")

        assert not (tmp_path / "store/role/group").exists()
        assert deleted == ["group/a"]
        assert model.exists("group/a") is False

    def test_logic_delete_keeps_file(self, tmp_path: Path) -> None:
        def mark(item: Item) -> None:
            item.extra = {"deleted": True}

        rw = MultipleDataRW("code", filter=lambda item: not (item.extra or {}).get("deleted"), logic_delete=mark)
        model = Model("role", "store/role", ".json", rw, Item)
        model.bind(tmp_path)
        model.mutate_runner = lambda fn: fn()
        model.init()
        model.insert({"code": "a"}, user="alice")

        model.delete("a", user="alice")

        assert (tmp_path / "store/role/a.json").exists()
        assert model.exists("a") is False

    def test_batch_insert_skips_existing(self, tmp_path: Path) -> None:
        model = make_model(tmp_path)
        model.insert({"code": "a", "remark": "old"}, user="alice")

        results = model.insert_batch([{"code": "a", "remark": "new"}, {"code": "b"}], user="alice")
        assert results == [{"dataName": "b", "succeed": True}]
        assert model.get("a").remark == "old"

        model.insert_batch([{"code": "a", "remark": "new"}], user="alice", overwrite=True)
        assert model.get("a").remark == "new"

    def test_copy_and_rename(self, tmp_path: Path) -> None:
        model = make_model(tmp_path)
        model.insert({"code": "a", "remark": "r"}, user="alice")

        model.copy(DataMutation(src="a", dst="b", user="alice"))
        assert model.get("b").remark == "r"

        model.rename(DataMutation(src="b", dst="c", user="alice"))
        assert model.data_names() == ["a", "c"]
        assert not (tmp_path / "store/role/b.json").exists()

        with pytest.raises(CustomError) as exc:
            model.rename(DataMutation(src="a", dst="c", user="alice"))
        assert exc.value.code == ErrCode.LoaderDataExistError

    def test_rename_by_parent_reports_collisions(self, tmp_path: Path) -> None:
        model = make_model(tmp_path)
        for code in ("src/a", "src/b", "dst/a"):
            model.insert({"code": code}, user="alice")

        repeats = model.rename_by_parent(DataMutation(src="src", dst="dst", user="alice"))
        assert repeats == ["dst/a"]
        assert model.exists("src/b")

        model.rename_by_parent(DataMutation(src="src", dst="dst", overload=True, user="alice"))
        assert model.data_names() == ["dst/a", "dst/b"]
        assert not (tmp_path / "store/role/src").exists()

    def test_delete_by_parent(self, tmp_path: Path) -> None:
        model = make_model(tmp_path)
        for code in ("g/a", "g/b", "other"):
            model.insert({"code": code}, user="alice")

        assert model.delete_by_parent("g", user="alice") == ["g/a", "g/b"]
        assert model.data_names() == ["other"]

    def test_trees(self, tmp_path: Path) -> None:
        model = make_model(tmp_path, tree_extra=lambda item: item.enabled)
        model.insert({"code": "z"}, user="alice")
        model.insert({"code": "g/a", "enabled": True}, user="alice")

        trees = [tree.to_dict() for tree in model.get_trees()]
        assert trees[0]["name"] == "g"
        assert trees[0]["isDir"] is True
        assert trees[0]["items"][0] == {"name": "a", "path": "g/a", "isDir": False, "extension": ".json", "extra": True}
        assert trees[1]["path"] == "z"

    def test_load_reports_misplaced_files(self, tmp_path: Path) -> None:
        root = tmp_path / "store/role"
        root.mkdir(parents=True)
        (root / "a.json").write_text(json.dumps({"code": "a"}), encoding="utf-8")
        (root / "wrong.json").write_text(json.dumps({"code": "other"}), encoding="utf-8")
        (root / "broken.json").write_text("{", encoding="utf-8")

        model = Model("role", "store/role", ".json", MultipleDataRW("code"), Item)
        model.bind(tmp_path)
        errors = model.init()

        assert sorted(e.code for e in errors) == [ErrCode.LoaderFileUnmarshalError, ErrCode.LoaderDataFilepathError]
        assert model.data_names() == ["a"]

    def test_reload_picks_up_external_edits(self, tmp_path: Path) -> None:
        bus = EventBus()
        updated = capture(bus, "role", Event.UPDATE)
        deleted = capture(bus, "role", Event.DELETE)
        model = make_model(tmp_path, bus)
        model.insert({"code": "a"}, user="alice")
        path = tmp_path / "store/role/a.json"

        path.write_text(json.dumps({"code": "a", "remark": "edited"}), encoding="utf-8")
        model.reload("a", user="watcher")
        assert model.get("a").remark == "edited"
        assert len(updated) == 1

        path.unlink()
        assert model.reload("a", user="watcher") is None
        assert deleted == ["a"]


class TestSingleModel:
    def test_created_from_init_data(self, tmp_path: Path) -> None:
        model = Model("globalSetting", "store/config", ".json", SingleDataRW("global.setting", {"port": 9123}), Setting)
        model.bind(tmp_path)
        assert model.init() == []
        assert model.get("global.setting").port == 9123
        assert (tmp_path / "store/config/global.setting.json").exists()

    def test_empty_fields_filled_from_init_data(self, tmp_path: Path) -> None:
        path = tmp_path / "store/config/global.setting.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"name": "", "port": 1}), encoding="utf-8")

        model = Model("globalSetting", "store/config", ".json", SingleDataRW("global.setting", {"name": "fb"}), Setting)
        model.bind(tmp_path)
        model.init()

        assert model.get("global.setting").model_dump() == {"name": "fb", "port": 1}

    def test_missing_without_init_data(self, tmp_path: Path) -> None:
        model = Model("globalSetting", "store/config", ".json", SingleDataRW("global.setting"), Setting)
        model.bind(tmp_path)
        errors = model.init()
        assert [e.code for e in errors] == [ErrCode.LoaderFileNotExistError]
        assert model.load_errored is True


class TestEmbedModel:
    def make(self, tmp_path: Path) -> Model[Setting]:
        model = Model("bundled", "", ".json", EmbedDataRW("bundled", '{"name": "fb", "port": 1}'), Setting)
        model.bind(tmp_path)
        assert model.init() == []
        return model

    def test_loaded_from_content(self, tmp_path: Path) -> None:
        model = self.make(tmp_path)
        assert model.is_embed is True
        assert model.get("bundled").model_dump() == {"name": "fb", "port": 1}
        assert model.first().port == 1
        assert list(tmp_path.iterdir()) == []

    def test_writes_rejected(self, tmp_path: Path) -> None:
        model = self.make(tmp_path)
        for write in (
            lambda: model.update({"port": 2}, user="alice"),
            lambda: model.insert({"name": "x"}, user="alice"),
            lambda: model.insert_or_update({"port": 3}),
            lambda: model.delete("bundled", user="alice"),
        ):
            with pytest.raises(CustomError) as err:
                write()
            assert err.value.code == ErrCode.LoaderEmbedNotAllowModifyErr
        assert model.first().port == 1
