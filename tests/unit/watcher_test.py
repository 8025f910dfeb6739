"""Tests for replaying external edits through the store."""

from __future__ import annotations

import json

import pytest

from fireboom.messaging import Channel, Event
from fireboom.server import Context
from fireboom.watcher import StoreWatcher


def capture(context: Context, event: Event) -> list:
    seen: list = []
    context.bus.subscribe(Channel.OPERATION, event, lambda data: seen.append(data) or data)
    return seen


class TestReplay:
    def test_data_file_edit_updates_item(self, context: Context) -> None:
        updated = capture(context, Event.UPDATE)
        path = context.workdir / "store/operation/users/list.json"
        path.write_text(json.dumps({"path": "users/list", "enabled": True, "title": "Users"}), encoding="utf-8")

        assert StoreWatcher(context.models).replay([path]) == 1

        assert context.models.operation.get("users/list").title == "Users"
        assert [item.path for item in updated] == ["users/list"]

    def test_new_and_removed_files(self, context: Context) -> None:
        inserted = capture(context, Event.INSERT)
        deleted = capture(context, Event.DELETE)
        watcher = StoreWatcher(context.models)
        path = context.workdir / "store/operation/users/get.json"

        path.write_text(json.dumps({"path": "users/get", "enabled": True}), encoding="utf-8")
        watcher.replay([path])
        assert context.models.operation.exists("users/get")
        assert [item.path for item in inserted] == ["users/get"]

        path.unlink()
        watcher.replay([path])
        assert not context.models.operation.exists("users/get")
        assert deleted == ["users/get"]

    def test_text_edit_publishes_item_update(self, context: Context) -> None:
        updated = capture(context, Event.UPDATE)
        path = context.workdir / "store/operation/users/list.graphql"
        path.write_text("query { main_users { id } }", encoding="utf-8")

        assert StoreWatcher(context.models).replay([path]) == 1
        assert [item.path for item in updated] == ["users/list"]

    def test_text_without_item_ignored(self, context: Context) -> None:
        path = context.workdir / "store/operation/orphan.graphql"
        path.write_text("query { a }", encoding="utf-8")
        assert StoreWatcher(context.models).replay([path]) == 0

    @pytest.mark.parametrize("relative", ["store/operation/.hidden.json", "store/.git/config.json"])
    def test_hidden_paths_ignored(self, context: Context, relative: str) -> None:
        assert StoreWatcher(context.models).replay([context.workdir / relative]) == 0

    def test_outside_workdir_ignored(self, context: Context, tmp_path_factory) -> None:
        outside = tmp_path_factory.mktemp("elsewhere") / "a.json"
        assert StoreWatcher(context.models).replay([outside]) == 0

    def test_upload_change_runs_callback_once(self, context: Context) -> None:
        calls: list[str] = []
        watcher = StoreWatcher(context.models, on_upload=lambda: calls.append("restart"))
        upload = context.workdir / "upload/graphql"

        assert watcher.replay([upload / "main.graphql", upload / "other.graphql"]) == 2
        assert calls == ["restart"]

    def test_unreadable_file_reported_not_raised(self, context: Context) -> None:
        path = context.workdir / "store/operation/users/list.json"
        path.write_text("{", encoding="utf-8")

        assert StoreWatcher(context.models).replay([path]) == 1
        assert context.models.operation.exists("users/list")

