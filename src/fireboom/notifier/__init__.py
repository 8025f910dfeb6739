"""
Live notifier - websocket frames for the engine, log, question, hookReport
and license channels.

Usage:
    notifier = Notifier(models, registry, bus)
    notifier.attach()
    ...
    await notifier.manager.serve(websocket)
"""

from __future__ import annotations

import logging
from typing import Optional

from ..configs.logger import CollectorHandler, attach_collector_handler, detach_collector_handler
from ..configs.registry import ConfigRegistry
from ..messaging import Channel, EventBus
from ..models import ModelSet
from .collectors import EngineState, LicenseWarnings, QuestionBoard, log_collector
from .hookreport import Health, HealthReport, HookReporter
from .manager import EVENT_PULL, EVENT_PUSH, Frame, NotifierManager

logger = logging.getLogger(__name__)

__all__ = [
    "EVENT_PULL",
    "EVENT_PUSH",
    "EngineState",
    "Frame",
    "Health",
    "HealthReport",
    "HookReporter",
    "LicenseWarnings",
    "Notifier",
    "NotifierManager",
    "QuestionBoard",
]


class Notifier:
    """
    Wires the log collectors to the websocket manager.

    Args:
        models: Model set; one question collector is registered per model
        registry: Config registry holding the engine state
        bus: Event bus whose data events clear questions
    """

    def __init__(self, models: ModelSet, registry: ConfigRegistry, bus: EventBus):
        self.manager = NotifierManager()
        self.engine = EngineState(registry)
        self.questions = QuestionBoard({m.name: m for m in models.all()}, models.question_extras())
        self.model_names = [m.name for m in models.all()]
        self.hook_reporter: Optional[HookReporter] = None
        self.licenses = LicenseWarnings()
        self.handler: Optional[CollectorHandler] = None
        self.questions.subscribe(bus)

        self.manager.register_pull(Channel.ENGINE.value, lambda _data: self.engine.snapshot())
        self.manager.register_pull(Channel.QUESTION.value, lambda _data: self.questions.questions())
        self.manager.register_pull(Channel.LICENSE.value, lambda _data: self.licenses.warnings())

    def set_hook_reporter(self, reporter: HookReporter) -> None:
        self.hook_reporter = reporter
        self.manager.register_pull(Channel.HOOK_REPORT.value, lambda _data: reporter.snapshot())
        if self.handler is not None:
            self.handler.register(reporter.collector(self.manager))

    def attach(self) -> CollectorHandler:
        """Install the collector handler on the ``fireboom`` logger."""
        if self.handler is not None:
            return self.handler
        handler = attach_collector_handler()
        handler.register(self.engine.collector(self.manager))
        for name in self.model_names:
            handler.register(self.questions.collector(name, self.manager))
        handler.register(self.licenses.collector(self.manager))
        handler.register(log_collector(self.manager))
        if self.hook_reporter is not None:
            handler.register(self.hook_reporter.collector(self.manager))
        self.handler = handler
        return handler

    def detach(self) -> None:
        if self.handler is not None:
            detach_collector_handler(self.handler)
            self.handler = None
