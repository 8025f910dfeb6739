"""Tests for the config registry, environment files, auth key and initializers."""

from __future__ import annotations

import argparse
from pathlib import Path

import pytest

from fireboom.configs import ConfigRegistry, Environment
from fireboom.configs.authkey import KEY_LENGTH, key_path, load_or_create_key
from fireboom.configs.registry import KEY_ENABLE_AUTH, KEY_WEB_PORT, flags_from_args
from fireboom.core.errcode import CustomError, ErrCode
from fireboom.initreg import InitRegistry


class TestConfigRegistry:
    def test_typed_accessors(self) -> None:
        registry = ConfigRegistry({KEY_WEB_PORT: "9123", KEY_ENABLE_AUTH: "true"})
        assert registry.get_int(KEY_WEB_PORT) == 9123
        assert registry.get_bool(KEY_ENABLE_AUTH) is True
        assert registry.get_bool("missing") is False
        assert registry.get_str("missing", "x") == "x"

    def test_set_if_absent(self) -> None:
        registry = ConfigRegistry()
        assert registry.set_if_absent("a", 1) is True
        assert registry.set_if_absent("a", 2) is False
        assert registry.get("a") == 1

    def test_flags_from_args(self) -> None:
        args = argparse.Namespace(web_port=8080, enable_auth=True, handler=print)
        assert flags_from_args(args) == {"web-port": 8080, "enable-auth": True}


class TestEnvironment:
    def test_load_creates_default_file(self, tmp_path: Path) -> None:
        registry = ConfigRegistry()
        env = Environment(tmp_path, registry=registry)
        values = env.load()

        assert (tmp_path / ".env").exists()
        assert values["FB_SERVER_URL"] == "http://localhost:9992"
        assert registry.get_str("FB_LOG_LEVEL") == "info"

    def test_workdir_file_overrides_defaults(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text('FB_LOG_LEVEL="debug"\nCUSTOM="1"\n', encoding="utf-8")
        env = Environment(tmp_path)
        env.load()
        assert env.get("FB_LOG_LEVEL") == "debug"
        assert env.get("CUSTOM") == "1"
        assert env.get("FB_API_LISTEN_PORT") == "9991"

    def test_ignore_merge_skips_defaults(self, tmp_path: Path) -> None:
        (tmp_path / ".env.prod").write_text('ONLY="yes"\n', encoding="utf-8")
        env = Environment(tmp_path, active="prod", ignore_merge=True)
        assert env.load() == {"ONLY": "yes"}

    def test_bundled_defaults_are_read_only(self, tmp_path: Path) -> None:
        env = Environment(tmp_path)
        assert 'FB_LOG_LEVEL="info"' in env.defaults.read("")
        assert env.defaults.exists("") is True

        with pytest.raises(CustomError) as err:
            env.defaults.write("", "alice", 'FB_LOG_LEVEL="debug"\n')
        assert err.value.code == ErrCode.LoaderEmbedNotAllowModifyErr
        assert not (tmp_path / ".env").exists()

    def test_update_reports_modifies(self, tmp_path: Path) -> None:
        registry = ConfigRegistry()
        env = Environment(tmp_path, registry=registry)
        env.load()

        modifies = env.update({"FB_LOG_LEVEL": "debug", "NEW_KEY": "v", "FB_SERVER_URL": None, "ABSENT": None})
        assert modifies == {"FB_LOG_LEVEL": "overwrite", "NEW_KEY": "add", "FB_SERVER_URL": "remove"}
        assert registry.get("FB_SERVER_URL") is None
        assert "NEW_KEY=" in env.text()
        assert "FB_SERVER_URL" not in env.text()

        assert env.update({"NEW_KEY": "v"}) == {}


class TestAuthKey:
    def test_created_then_reused(self, tmp_path: Path) -> None:
        key = load_or_create_key(tmp_path)
        assert len(key) == KEY_LENGTH
        assert load_or_create_key(tmp_path) == key

    def test_regenerate(self, tmp_path: Path) -> None:
        key = load_or_create_key(tmp_path)
        assert load_or_create_key(tmp_path, regenerate=True) != key

    def test_malformed_key_replaced(self, tmp_path: Path) -> None:
        key_path(tmp_path).write_text("short", encoding="utf-8")
        assert len(load_or_create_key(tmp_path)) == KEY_LENGTH


class TestInitRegistry:
    def test_priority_then_registration_order(self) -> None:
        calls: list[str] = []
        registry = InitRegistry()
        registry.register(20, lambda: calls.append("b"))
        registry.register(10, lambda: calls.append("a"))
        registry.register(20, lambda: calls.append("c"))

        assert registry.run_all() is True
        assert calls == ["a", "b", "c"]
        assert registry.run_all() is False
        assert calls == ["a", "b", "c"]

    def test_register_after_run_fails(self) -> None:
        registry = InitRegistry()
        registry.run_all()
        with pytest.raises(RuntimeError):
            registry.register(10, lambda: None)
