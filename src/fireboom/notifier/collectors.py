"""
Log collectors feeding the notifier channels.

engine    - records carrying ``engineStatus``; keeps the engine state
question  - warnings and errors carrying a model name field; one collector per model
license   - warnings carrying ``licenseStatus``
log       - every record, colours stripped
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Mapping, Optional

from ..configs.logger import LogCollector, level_name, plain_message, record_fields
from ..configs.registry import (
    KEY_ENGINE_FIRST_STATUS,
    KEY_ENGINE_START_TIME,
    KEY_ENGINE_STATUS,
    KEY_GLOBAL_START_TIME,
    ConfigRegistry,
)
from ..core.consts import ENGINE_STATUS_FIELD, FB_COMMIT, FB_VERSION, LICENSE_STATUS_FIELD
from ..core.utils import format_time
from ..messaging import DATA_EVENTS, Channel, Event, EventBus
from ..store import Model
from .manager import EVENT_PUSH, Frame, NotifierManager

logger = logging.getLogger(__name__)

NOTIFIER_LOGGER = __name__.rsplit(".", 1)[0]
ERROR_LEVELS = frozenset({logging.ERROR, logging.CRITICAL})
QUESTION_LEVELS = frozenset({logging.WARNING, logging.ERROR, logging.CRITICAL})
ENGINE_LEVELS = frozenset({logging.INFO, logging.ERROR})
ALL_LEVELS = frozenset({logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL})


def _time(value) -> str:
    return format_time(value) if value is not None else ""


class EngineState:
    """Engine status as pushed on the ``engine`` channel."""

    def __init__(self, registry: ConfigRegistry):
        self.registry = registry

    def snapshot(self) -> Dict[str, Any]:
        status = self.registry.get_str(KEY_ENGINE_STATUS) or self.registry.get_str(KEY_ENGINE_FIRST_STATUS)
        return {
            ENGINE_STATUS_FIELD: status,
            "engineStartTime": _time(self.registry.get_time(KEY_ENGINE_START_TIME)),
            "globalStartTime": _time(self.registry.get_time(KEY_GLOBAL_START_TIME)),
            "fbVersion": FB_VERSION,
            "fbCommit": FB_COMMIT,
        }

    def collector(self, manager: NotifierManager) -> LogCollector:
        def handle(record: logging.LogRecord) -> None:
            self.registry.set_str(KEY_ENGINE_STATUS, str(getattr(record, ENGINE_STATUS_FIELD)))
            manager.push(Frame(Channel.ENGINE.value, EVENT_PUSH, self.snapshot()))

        return LogCollector(Channel.ENGINE.value, ENGINE_LEVELS, handle, ENGINE_STATUS_FIELD)


class QuestionBoard:
    """
    Load and validation problems, grouped by model.

    Each question is ``{level, model, name, msg, extra}``. Any data event on
    a model clears the questions of the data names it carries.
    """

    def __init__(self, models: Mapping[str, Model], extras: Optional[Mapping[str, Callable[[str], Any]]] = None):
        self.models = dict(models)
        self.extras = dict(extras or {})
        self._lock = threading.Lock()
        self._questions: list[Dict[str, Any]] = []

    def questions(self, model: Optional[str] = None) -> list[Dict[str, Any]]:
        with self._lock:
            return [dict(q) for q in self._questions if model is None or q["model"] == model]

    def add(self, question: Dict[str, Any]) -> None:
        with self._lock:
            self._questions = [
                q for q in self._questions if (q["model"], q["name"], q["msg"]) != (question["model"], question["name"], question["msg"])
            ]
            self._questions.append(question)

    def clear(self, model: str, names: list[str]) -> int:
        with self._lock:
            before = len(self._questions)
            self._questions = [q for q in self._questions if not (q["model"] == model and q["name"] in names)]
            return before - len(self._questions)

    def data_names(self, model: Model, data: Any) -> list[str]:
        items = data if isinstance(data, list) else [data]
        names = []
        for item in items:
            if isinstance(item, str):
                names.append(item)
            elif item is not None and hasattr(item, "model_dump"):
                names.append(model.data_name_of(item))
        return names

    def notice(self, channel: str, event: Event, data: Any) -> None:
        model = self.models.get(channel)
        if model is None or event not in DATA_EVENTS:
            return
        names = self.data_names(model, data)
        if names and self.clear(channel, names):
            logger.debug(f"Questions cleared for {channel} {names}")

    def collector(self, model_name: str, manager: NotifierManager) -> LogCollector:
        def handle(record: logging.LogRecord) -> None:
            name = str(getattr(record, model_name))
            fields = record_fields(record)
            fields.pop(model_name, None)
            extra_of = self.extras.get(model_name)
            question = {
                "level": level_name(record.levelno),
                "model": model_name,
                "name": name,
                "msg": plain_message(record),
                "extra": extra_of(name) if extra_of else None,
            }
            if fields:
                question["fields"] = {k: str(v) for k, v in fields.items()}
            self.add(question)
            manager.push(Frame(Channel.QUESTION.value, EVENT_PUSH, question))

        return LogCollector(f"{Channel.QUESTION.value}.{model_name}", QUESTION_LEVELS, handle, model_name)

    def subscribe(self, bus: EventBus) -> None:
        bus.notice(self.notice, *DATA_EVENTS)


class LicenseWarnings:
    """Limit warnings pushed on the ``license`` channel."""

    def __init__(self):
        self._lock = threading.Lock()
        self._warnings: list[Dict[str, Any]] = []

    def warnings(self) -> list[Dict[str, Any]]:
        with self._lock:
            return [dict(w) for w in self._warnings]

    def collector(self, manager: NotifierManager) -> LogCollector:
        def handle(record: logging.LogRecord) -> None:
            warning = {"msg": plain_message(record), "data": getattr(record, LICENSE_STATUS_FIELD)}
            with self._lock:
                self._warnings.append(warning)
            manager.push(Frame(Channel.LICENSE.value, EVENT_PUSH, warning))

        return LogCollector(Channel.LICENSE.value, QUESTION_LEVELS, handle, LICENSE_STATUS_FIELD)


def log_collector(manager: NotifierManager) -> LogCollector:
    def handle(record: logging.LogRecord) -> None:
        # Connection errors of the notifier itself would loop back here
        if record.name.startswith(NOTIFIER_LOGGER):
            return
        data = {
            "time": format_time(),
            "level": level_name(record.levelno),
            "logger": record.name,
            "msg": plain_message(record),
            "fields": {k: str(v) for k, v in record_fields(record).items()},
        }
        manager.push(Frame(Channel.LOG.value, EVENT_PUSH, data))

    return LogCollector(Channel.LOG.value, ALL_LEVELS, handle)
