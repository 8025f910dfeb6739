"""
Hook server health report.

After the first engine start the reporter checks ``<serverUrl>/health`` on a
timer. The interval adapts to the outcome: 5 seconds while no server sdk is
enabled or the engine is down, 10 seconds while the hook server answers and
1 second while it fails.

With ``enable-hook-report`` set, the function and proxy operations and the
customized GraphQL datasources the hook server reports are reconciled with
the store. Any change (or a newer report) triggers a full restart; the report
is logged once the engine is back.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..configs.logger import LogCollector
from ..configs.registry import KEY_ENABLE_HOOK_REPORT, ConfigRegistry
from ..core.errcode import CustomError
from ..core.utils import format_time, normalize_path, now_time
from ..engine import EngineSupervisor
from ..messaging import Channel
from ..models import Datasource, DatasourceKind, ModelSet, Operation, OperationEngine
from ..models.datasource import CustomGraphql
from ..models.sdk import SdkType
from ..store import Model
from .manager import EVENT_PUSH, Frame, NotifierManager

logger = logging.getLogger(__name__)

HOOK_REPORT_TIME = "hookReportTime"
HOOK_REPORT_STATUS = "hookReportStatus"
HOOK_FUNCTION_PARENT = "function"
HOOK_PROXY_PARENT = "proxy"

INTERVAL_FAILED = 1.0
INTERVAL_IDLE = 5.0
INTERVAL_HEALTHY = 10.0

STATUS_OK = 200
STATUS_FAILED = 500

Runner = Callable[[Callable[[], Any]], None]


class HealthReport(BaseModel):
    customizes: list[str] = Field(default_factory=list)
    functions: list[str] = Field(default_factory=list)
    proxys: list[str] = Field(default_factory=list)
    time: Optional[datetime] = None

    @field_validator("customizes", "functions", "proxys", mode="before")
    @classmethod
    def _null_list(cls, value):
        return value or []

    @field_validator("time")
    @classmethod
    def _aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.astimezone()
        return value


class Health(BaseModel):
    status: str = ""
    report: HealthReport = Field(default_factory=HealthReport)
    workdir: str = ""


def _run_in_thread(fn: Callable[[], Any]) -> None:
    threading.Thread(target=fn, name="hook-report-restart", daemon=True).start()


def migrate_report_data(
    model: Model,
    names: list[str],
    condition: Callable[[Any], bool],
    build_item: Callable[[str], Any],
) -> int:
    """
    Enable items named in ``names``, disable the other items passing
    ``condition`` and insert the missing ones.

    Returns:
        Number of items written
    """
    pending = [name for name in names if name]
    affected = 0
    for item in model.list(condition):
        data_name = model.data_name_of(item)
        existed = data_name in pending
        if existed:
            pending.remove(data_name)
        if item.enabled == existed:
            continue

        item.enabled = existed
        try:
            model.insert_or_update(item)
        except CustomError as e:
            logger.warning("health report data failed", extra={model.name: data_name, "error": e.message})
            continue
        logger.info("health report data modified", extra={model.name: data_name, "existed": existed})
        affected += 1

    for data_name in pending:
        if model.exists(data_name):
            logger.warning(
                "health report data failed",
                extra={model.name: data_name, "error": f"{data_name} already exists with another kind"},
            )
            continue
        try:
            model.insert_or_update(build_item(data_name))
        except CustomError as e:
            logger.warning("health report data failed", extra={model.name: data_name, "error": e.message})
            continue
        logger.info("health report data added", extra={model.name: data_name})
        affected += 1
    return affected


def migrate_customizes(models: ModelSet, customizes: list[str]) -> int:
    def build(name: str) -> Datasource:
        return Datasource(
            name=name,
            enabled=True,
            kind=DatasourceKind.GRAPHQL,
            custom_graphql=CustomGraphql(customized=True),
        )

    return migrate_report_data(models.datasource, customizes, lambda item: item.is_customize, build)


def migrate_operations(models: ModelSet, paths: list[str], engine: OperationEngine, parent: str) -> int:
    def build(path: str) -> Operation:
        return Operation(path=path, enabled=True, engine=engine)

    prefixed = [normalize_path(parent, path) for path in paths if path]
    return migrate_report_data(models.operation, prefixed, lambda item: item.engine == engine, build)


class HookReporter:
    """
    Periodic health check of the hook server.

    Args:
        models: Model set, read for the server url and reconciled with the report
        supervisor: Engine supervisor, restarted when the report changed
        registry: Config registry holding ``enable-hook-report``
        workdir: Reports from a hook server running elsewhere are ignored
        runner: Runs the restart, a thread by default
        client: httpx client used for the health check
    """

    def __init__(
        self,
        models: ModelSet,
        supervisor: EngineSupervisor,
        registry: ConfigRegistry,
        workdir: str | Path = ".",
        runner: Runner = _run_in_thread,
        client: Optional[httpx.Client] = None,
    ):
        self.models = models
        self.supervisor = supervisor
        self.registry = registry
        self.workdir = str(Path(workdir).resolve())
        self.runner = runner
        self.client = client or httpx.Client(timeout=5.0)
        self.time = now_time()
        self.status = 0
        self.interval = INTERVAL_FAILED
        self._mutex = threading.Lock()
        self._pending = False
        self._pending_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def snapshot(self) -> Dict[str, Any]:
        return {"time": format_time(self.time), "status": self.status}

    def start(self) -> None:
        """Begin probing after the first engine start."""
        self.supervisor.add_on_first_started(self._start_timer)

    def _start_timer(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._loop, name="hook-report", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def _loop(self) -> None:
        first = True
        while not self._stop.wait(self.interval):
            try:
                self.report(first)
            except Exception as e:
                logger.error(f"Hook report failed: {e}", exc_info=True)
            first = False

    def _server_sdk_enabled(self) -> bool:
        return bool(self.models.sdk.list(lambda sdk: sdk.enabled and sdk.type == SdkType.SERVER))

    def _fetch(self, enable_report: bool) -> Optional[Health]:
        server_url = self.models.server_url()
        if not server_url:
            return None
        params = {KEY_ENABLE_HOOK_REPORT: "true" if enable_report else "false"}
        try:
            response = self.client.get(f"{server_url.rstrip('/')}/health", params=params)
        except httpx.HTTPError as e:
            logger.debug(f"Hook health request failed: {e}")
            return None
        if response.status_code != STATUS_OK:
            return None
        try:
            return Health.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.debug(f"Hook health response unreadable: {e}")
            return None

    def report(self, first: bool = False) -> bool:
        """
        Run one health check.

        Returns:
            True when a restart was requested
        """
        if not self._mutex.acquire(blocking=False):
            return False
        restart = False
        try:
            restart = self._report(first)
        finally:
            if not restart:
                self._mutex.release()
        return restart

    def _report(self, first: bool) -> bool:
        if not self._server_sdk_enabled() or not self.supervisor.started:
            self.interval = INTERVAL_IDLE
            return False

        enable_report = self.registry.get_bool(KEY_ENABLE_HOOK_REPORT)
        health = self._fetch(enable_report)
        if health is not None:
            if health.workdir and not health.workdir.startswith(self.workdir):
                return False
            self.interval = INTERVAL_HEALTHY
            report, self.status = health.report, STATUS_OK
        else:
            self.interval = INTERVAL_FAILED
            report = HealthReport()
            if self.status == STATUS_OK:
                report.time, self.status = now_time(), STATUS_FAILED
            else:
                report.time = self.time

        changed = report.time is not None and report.time > self.time
        if (changed or first) and report.time is not None:
            self.time = report.time

        if enable_report:
            affected = migrate_customizes(self.models, report.customizes)
            affected += migrate_operations(self.models, report.functions, OperationEngine.FUNCTION, HOOK_FUNCTION_PARENT)
            affected += migrate_operations(self.models, report.proxys, OperationEngine.PROXY, HOOK_PROXY_PARENT)
            if affected > 0 or changed:
                with self._pending_lock:
                    self._pending = True
                self.supervisor.add_on_every_started(self._restarted)
                self.runner(self._restart)
                return True

        if changed or first:
            self.print_report()
        return False

    def _restart(self) -> None:
        self.supervisor.build_and_start()
        # An aborted build never reaches the started hooks
        if not self.supervisor.busy and not self.supervisor.started:
            self._finish_restart()

    def _restarted(self) -> None:
        if self._finish_restart():
            self.print_report(restartInvoked=True)
            self.interval = INTERVAL_FAILED

    def _finish_restart(self) -> bool:
        with self._pending_lock:
            if not self._pending:
                return False
            self._pending = False
        self._mutex.release()
        return True

    def print_report(self, **fields: Any) -> None:
        logger.info(
            "health report changed",
            extra={HOOK_REPORT_TIME: format_time(self.time), HOOK_REPORT_STATUS: self.status, **fields},
        )

    def collector(self, manager: NotifierManager) -> LogCollector:
        def handle(record: logging.LogRecord) -> None:
            manager.push(Frame(Channel.HOOK_REPORT.value, EVENT_PUSH, self.snapshot()))

        return LogCollector(Channel.HOOK_REPORT.value, frozenset({logging.INFO}), handle, HOOK_REPORT_TIME)
