"""Tests for the live notifier: frames, pulls, collectors and questions."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import pytest
from pydantic import BaseModel

from fireboom.configs import ConfigRegistry
from fireboom.configs.logger import attach_collector_handler, detach_collector_handler
from fireboom.configs.registry import KEY_ENGINE_STATUS
from fireboom.core.consts import ENGINE_BUILDING, ENGINE_STATUS_FIELD
from fireboom.messaging import Event, EventBus
from fireboom.models.license import LICENSE_DATASOURCE, LICENSE_IMPORT, LICENSE_OPERATION, build_license_model, check_limit
from fireboom.notifier import EVENT_PULL, EVENT_PUSH, EngineState, Frame, NotifierManager, QuestionBoard
from fireboom.notifier.collectors import LicenseWarnings, log_collector
from fireboom.store import Model, MultipleDataRW


class Role(BaseModel):
    code: str


@pytest.fixture
def collector_handler():
    handler = attach_collector_handler()
    yield handler
    detach_collector_handler(handler)


class TestFrame:
    def test_optional_keys_omitted(self) -> None:
        assert Frame("log", EVENT_PUSH, {"a": 1}).to_dict() == {"channel": "log", "event": "push", "data": {"a": 1}}

    def test_request_id_echoed(self) -> None:
        frame = Frame("engine", EVENT_PULL, error="x", request_id="r1").to_dict()
        assert frame["requestId"] == "r1"
        assert frame["error"] == "x"


class TestPull:
    def test_registered_channel(self) -> None:
        manager = NotifierManager()
        manager.register_pull("engine", lambda data: {"echo": data})

        frame = manager.pull({"channel": "engine", "event": "pull", "data": 1, "requestId": "7"})
        assert frame.data == {"echo": 1}
        assert frame.request_id == "7"
        assert frame.error is None

    def test_unknown_channel(self) -> None:
        frame = NotifierManager().pull({"channel": "nope", "event": "pull"})
        assert frame.error == "channel [nope] not supported"


class TestPush:
    @pytest.mark.asyncio
    async def test_push_reaches_connections(self) -> None:
        manager = NotifierManager()
        received: list[dict] = []

        async def send(payload: dict) -> None:
            received.append(payload)

        connection = manager.connect(send)
        manager.push(Frame("log", EVENT_PUSH, "hello"))
        await asyncio.sleep(0.05)

        assert received == [{"channel": "log", "event": "push", "data": "hello"}]

        manager.disconnect(connection)
        manager.push(Frame("log", EVENT_PUSH, "again"))
        await asyncio.sleep(0.05)
        assert len(received) == 1
        assert manager.connection_count == 0

    @pytest.mark.asyncio
    async def test_failed_write_closes_connection(self) -> None:
        manager = NotifierManager()

        async def send(payload: dict) -> None:
            raise RuntimeError("gone")

        connection = manager.connect(send)
        assert await manager.send(connection, {"x": 1}) is False
        assert connection.closed is True
        assert manager.connection_count == 0

    @pytest.mark.asyncio
    async def test_send_tasks_tracked_until_done(self) -> None:
        manager = NotifierManager()
        release = asyncio.Event()

        async def send(payload: dict) -> None:
            await release.wait()

        manager.connect(send)
        manager.push(Frame("log", EVENT_PUSH, "held"))
        await asyncio.sleep(0.05)
        assert manager.pending_sends == 1

        release.set()
        await asyncio.sleep(0.05)
        assert manager.pending_sends == 0


class TestCollectors:
    def test_engine_status_recorded(self, collector_handler) -> None:
        registry = ConfigRegistry()
        manager = NotifierManager()
        engine = EngineState(registry)
        collector_handler.register(engine.collector(manager))

        logging.getLogger("fireboom.tests").info("build begin", extra={ENGINE_STATUS_FIELD: ENGINE_BUILDING})

        assert registry.get_str(KEY_ENGINE_STATUS) == ENGINE_BUILDING
        assert engine.snapshot()[ENGINE_STATUS_FIELD] == ENGINE_BUILDING

    def test_records_without_field_skipped(self, collector_handler) -> None:
        registry = ConfigRegistry()
        collector_handler.register(EngineState(registry).collector(NotifierManager()))

        logging.getLogger("fireboom.tests").info("plain")

        assert registry.get_str(KEY_ENGINE_STATUS) == ""

    def test_log_collector_ignores_notifier_records(self, collector_handler) -> None:
        pushed: list[Frame] = []
        manager = NotifierManager()
        manager.push = pushed.append
        collector_handler.register(log_collector(manager))

        logging.getLogger("fireboom.notifier.manager").info("loop")
        logging.getLogger("fireboom.tests").warning("\x1b[31mred\x1b[0m", extra={"operation": "a"})

        assert len(pushed) == 1
        assert pushed[0].data["msg"] == "red"
        assert pushed[0].data["level"] == "warn"
        assert pushed[0].data["fields"] == {"operation": "a"}


class TestQuestionBoard:
    def test_collected_then_cleared_by_data_event(self, tmp_path: Path, collector_handler) -> None:
        bus = EventBus()
        model = Model("role", "store/role", ".json", MultipleDataRW("code"), Role)
        model.bind(tmp_path, bus=bus)
        model.mutate_runner = lambda fn: fn()
        model.init()
        board = QuestionBoard({"role": model}, {"role": lambda name: {"seen": name}})
        board.subscribe(bus)
        pushed: list[Frame] = []
        manager = NotifierManager()
        manager.push = pushed.append
        collector_handler.register(board.collector("role", manager))

        log = logging.getLogger("fireboom.tests")
        log.warning("role invalid", extra={"role": "admin", "error": "bad"})
        log.warning("role invalid", extra={"role": "admin", "error": "bad"})
        log.info("not a question", extra={"role": "admin"})

        questions = board.questions("role")
        assert len(questions) == 1
        assert questions[0] == {
            "level": "warn",
            "model": "role",
            "name": "admin",
            "msg": "role invalid",
            "extra": {"seen": "admin"},
            "fields": {"error": "bad"},
        }
        assert len(pushed) == 2

        model.insert({"code": "admin"}, user="alice")
        assert board.questions() == []

    def test_unrelated_events_keep_questions(self) -> None:
        board = QuestionBoard({})
        board.add({"model": "role", "name": "a", "msg": "m"})
        board.notice("role", Event.INSERT, "a")
        board.notice("operation", Event.BREAK, "a")
        assert len(board.questions()) == 1


class TestLicenseWarnings:
    @pytest.fixture
    def license_model(self, tmp_path: Path) -> Model:
        content = json.dumps(
            {
                "defaultLimits": {LICENSE_OPERATION: 0, LICENSE_DATASOURCE: 1, LICENSE_IMPORT: -1},
                "wsPushRequired": [LICENSE_OPERATION],
            }
        )
        model = build_license_model(content)
        model.bind(tmp_path)
        model.init()
        return model

    def test_pushed_module_over_limit_warns(self, license_model: Model, collector_handler) -> None:
        pushed: list[Frame] = []
        manager = NotifierManager()
        manager.push = pushed.append
        licenses = LicenseWarnings()
        collector_handler.register(licenses.collector(manager))

        assert check_limit(license_model, LICENSE_OPERATION, 2) is True

        warnings = licenses.warnings()
        assert len(warnings) == 1
        assert warnings[0]["data"] == {"function": LICENSE_OPERATION, "limits": 0, "cause": "empty"}
        assert [frame.channel for frame in pushed] == ["license"]

    def test_silent_and_unlimited_modules(self, license_model: Model, collector_handler) -> None:
        licenses = LicenseWarnings()
        collector_handler.register(licenses.collector(NotifierManager()))

        assert check_limit(license_model, LICENSE_DATASOURCE, 2) is True
        assert check_limit(license_model, LICENSE_DATASOURCE, 1) is False
        assert check_limit(license_model, LICENSE_IMPORT, 1000) is False
        assert licenses.warnings() == []
