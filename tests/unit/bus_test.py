"""Tests for the in-process event bus."""

from __future__ import annotations

from fireboom.messaging import BreakData, Channel, Event, EventBus


class TestHandlerChain:
    def test_publish_without_subscribers(self) -> None:
        bus = EventBus()
        assert bus.publish(Channel.OPERATION, Event.INSERT, "a") is False

    def test_handlers_receive_previous_result(self) -> None:
        bus = EventBus()
        seen: list[str] = []

        @bus.on(Channel.OPERATION, Event.INSERT)
        def first(value):
            seen.append(value)
            return value + "-first"

        @bus.on(Channel.OPERATION, Event.INSERT)
        def second(value):
            seen.append(value)
            return value

        assert bus.publish(Channel.OPERATION, Event.INSERT, "op") is True
        assert seen == ["op", "op-first"]

    def test_none_stops_chain(self) -> None:
        bus = EventBus()
        seen: list[str] = []
        bus.subscribe(Channel.STORAGE, Event.DELETE, lambda value: None)
        bus.subscribe(Channel.STORAGE, Event.DELETE, seen.append)

        bus.publish(Channel.STORAGE, Event.DELETE, "s3")
        assert seen == []

    def test_handler_error_stops_chain(self) -> None:
        bus = EventBus()

        def broken(value):
            raise RuntimeError("boom")

        bus.subscribe(Channel.SDK, Event.UPDATE, broken)
        assert bus.direct_call(Channel.SDK, Event.UPDATE, "x") is None

    def test_direct_call_returns_final_payload(self) -> None:
        bus = EventBus()
        bus.subscribe("custom", Event.RUNTIME, lambda value: value * 2)
        bus.subscribe("custom", Event.RUNTIME, lambda value: value + 1)
        assert bus.direct_call("custom", Event.RUNTIME, 3) == 7

    def test_string_and_enum_channels_match(self) -> None:
        bus = EventBus()
        bus.subscribe("operation", Event.UPDATE, lambda value: value)
        assert bus.has_subscribers(Channel.OPERATION, Event.UPDATE) is True
        assert bus.has_subscribers(Channel.OPERATION, Event.DELETE) is False


class TestNotices:
    def test_notice_sees_every_channel(self) -> None:
        bus = EventBus()
        seen: list[tuple] = []
        bus.notice(lambda name, event, data: seen.append((name, event, data)), Event.INSERT)

        bus.publish(Channel.OPERATION, Event.INSERT, 1)
        bus.publish("role", Event.INSERT, 2)
        bus.publish("role", Event.DELETE, 3)

        assert seen == [("operation", Event.INSERT, 1), ("role", Event.INSERT, 2)]


class TestBreak:
    def test_break_per_channel_with_last_event(self) -> None:
        bus = EventBus()
        breaks: list[BreakData] = []
        bus.subscribe(Channel.OPERATION, Event.BREAK, lambda data: breaks.append(data) or data)

        bus.publish(Channel.OPERATION, Event.INSERT, "a")
        bus.publish(Channel.OPERATION, Event.UPDATE, "a")
        bus.publish(Channel.STORAGE, Event.DELETE, "b")

        results = bus.ensure_break()
        assert len(results) == 2
        assert len(breaks) == 1
        assert breaks[0].event == Event.UPDATE
        assert breaks[0].cost >= 0
        assert breaks[0].to_dict()["event"] == "update"

    def test_second_break_is_empty(self) -> None:
        bus = EventBus()
        bus.publish(Channel.OPERATION, Event.INSERT, "a")
        assert len(bus.ensure_break()) == 1
        assert bus.ensure_break() == []
