"""Tests for the engine supervisor and the context boot sequence."""

from __future__ import annotations

from pathlib import Path

from fireboom.configs.registry import KEY_ENGINE_FIRST_STATUS, KEY_ENGINE_START_TIME
from fireboom.core.consts import ENGINE_BUILD_FAILED
from fireboom.engine import EngineNode, StaticNode
from fireboom.server import Context


class BrokenNode(EngineNode):
    def start(self, config_path, on_started, on_failed) -> None:
        raise OSError("engine binary missing")

    def close(self) -> None:
        pass

    @property
    def running(self) -> bool:
        return False


class LateNode(StaticNode):
    """Reports failure through the callback instead of raising."""

    def start(self, config_path, on_started, on_failed) -> None:
        on_failed(RuntimeError("health check timed out"))


class TestBuildAndStart:
    def test_builds_then_starts(self, context: Context) -> None:
        assert context.supervisor.build_and_start() is True

        assert context.supervisor.started is True
        assert context.supervisor.busy is False
        assert context.supervisor.node.config_path == context.builder.generated_path("fireboom.config")
        assert context.registry.get_time(KEY_ENGINE_START_TIME) is not None

    def test_dropped_while_running(self, context: Context) -> None:
        supervisor = context.supervisor
        supervisor._mutex.acquire()
        try:
            assert supervisor.build_and_start() is False
            assert supervisor.started is False
        finally:
            supervisor._mutex.release()

    def test_restart_replaces_node(self, context: Context) -> None:
        context.restart()
        first = context.supervisor.node

        context.restart()

        assert context.supervisor.node is not first
        assert first.running is False

    def test_node_error_releases_lock(self, make_context) -> None:
        context = make_context()
        context.supervisor.node_factory = BrokenNode
        context.init()

        assert context.supervisor.build_and_start() is True
        assert context.supervisor.started is False
        assert context.supervisor.busy is False

    def test_failed_callback_releases_lock(self, make_context) -> None:
        context = make_context()
        context.supervisor.node_factory = LateNode
        context.init()

        context.supervisor.build_and_start()
        assert context.supervisor.busy is False
        assert context.supervisor.started is False


class TestStartedHooks:
    def test_first_started_runs_once(self, context: Context) -> None:
        calls: list[str] = []
        context.supervisor.add_on_first_started(lambda: calls.append("first"))
        context.supervisor.add_on_every_started(lambda: calls.append("next"))

        context.restart()
        context.restart()
        assert calls == ["next", "first"]

        # registering after the first start runs immediately
        context.supervisor.add_on_first_started(lambda: calls.append("late"))
        assert calls[-1] == "late"

    def test_failing_hook_does_not_break_start(self, context: Context) -> None:
        def broken() -> None:
            raise RuntimeError("boom")

        context.supervisor.add_on_every_started(broken)
        context.restart()
        assert context.supervisor.started is True


class TestBoot:
    def test_builds_when_no_configuration(self, context: Context) -> None:
        context.boot()

        assert context.builder.generated_path("fireboom.config").exists()
        assert context.supervisor.started is True

    def test_existing_configuration_started_as_is(self, workdir: Path, make_context) -> None:
        config = workdir / "exported/generated/fireboom.config.json"
        config.parent.mkdir(parents=True)
        config.write_text("{}", encoding="utf-8")
        context = make_context()
        context.init()

        context.boot()

        assert context.supervisor.started is True
        assert config.read_text(encoding="utf-8") == "{}"
        assert context.builder.configuration.operations == []

    def test_dev_mode_always_rebuilds(self, workdir: Path, make_context) -> None:
        config = workdir / "exported/generated/fireboom.config.json"
        config.parent.mkdir(parents=True)
        config.write_text("{}", encoding="utf-8")
        context = make_context({"dev-mode": True})
        context.init()

        context.boot()

        assert config.read_text(encoding="utf-8") != "{}"
        assert [o.path for o in context.builder.configuration.operations] == ["users/list"]

    def test_failed_start_recorded(self, make_context) -> None:
        context = make_context()
        context.supervisor.node_factory = BrokenNode
        context.init()

        context.boot()

        assert context.registry.get_str(KEY_ENGINE_FIRST_STATUS) == ENGINE_BUILD_FAILED
