"""
Stored models of the control plane.

ModelSet builds every model and text, binds them to the working directory,
bus and lock registry, and loads them.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ..core.errcode import CustomError
from ..messaging import EventBus
from ..store import DataLocks, Model
from .authentication import Authentication, build_authentication_model
from .datasource import Datasource, DatasourceKind, DatasourceTexts, build_datasource_model, datasource_question_extra
from .fragment import FragmentStore
from .license import License, build_license_model, check_limit
from .operation import (
    Operation,
    OperationEngine,
    OperationTexts,
    OperationType,
    build_operation_model,
    operation_question_extra,
)
from .role import Role, build_role_model
from .sdk import Sdk, build_sdk_model
from .settings import (
    OPERATION_MERGE_DEFAULTS,
    GlobalOperation,
    GlobalSetting,
    JaegerConfig,
    build_global_operation_model,
    build_global_setting_model,
)
from .storage import Storage, build_storage_model, storage_question_extra

logger = logging.getLogger(__name__)

__all__ = [
    "Authentication",
    "Datasource",
    "DatasourceKind",
    "GlobalOperation",
    "GlobalSetting",
    "License",
    "ModelSet",
    "Operation",
    "OperationEngine",
    "OperationType",
    "Role",
    "Sdk",
    "Storage",
]


class ModelSet:
    """
    Every model of one working directory.

    Args:
        workdir: Project working directory
        bus: Event bus the models publish on
        locks: Shared lock registry
        logic_delete: Stamp ``deleteTime`` instead of removing files
    """

    def __init__(
        self,
        workdir: str | Path,
        bus: EventBus,
        locks: Optional[DataLocks] = None,
        logic_delete: bool = False,
    ):
        self.workdir = Path(workdir)
        self.bus = bus
        self.locks = locks or DataLocks()

        self.operation_texts = OperationTexts()
        self.datasource_texts = DatasourceTexts()

        self.operation = build_operation_model(self.operation_texts, OPERATION_MERGE_DEFAULTS)
        self.datasource = build_datasource_model(self.datasource_texts)
        self.storage = build_storage_model()
        self.role = build_role_model()
        self.authentication = build_authentication_model()
        self.sdk = build_sdk_model()
        self.global_setting = build_global_setting_model()
        self.global_operation = build_global_operation_model()
        self.license = build_license_model()

        self.fragments = FragmentStore(self.workdir)
        self.jaeger = JaegerConfig(self.workdir)

        for model in self.all():
            model.bind(self.workdir, bus=bus, locks=self.locks, logic_delete=logic_delete)
        for text in self.operation_texts.all():
            text.bind(self.workdir, self.operation)
        for text in self.datasource_texts.all():
            text.bind(self.workdir, self.datasource)

    def all(self) -> list[Model]:
        return [
            self.global_setting,
            self.global_operation,
            self.datasource,
            self.operation,
            self.storage,
            self.role,
            self.authentication,
            self.sdk,
            self.license,
        ]

    def multiple(self) -> list[Model]:
        return [model for model in self.all() if model.is_multiple]

    def rebuild_models(self) -> list[Model]:
        """Models whose unconsumed changes require a full engine rebuild."""
        return [
            self.global_setting,
            self.global_operation,
            self.datasource,
            self.operation,
            self.storage,
            self.role,
            self.authentication,
        ]

    def by_name(self, name: str) -> Model:
        for model in self.all():
            if model.name == name:
                return model
        raise KeyError(name)

    def init(self) -> Dict[str, list[CustomError]]:
        errors = {}
        for model in self.all():
            model_errors = model.init()
            if model_errors:
                errors[model.name] = model_errors
        self.jaeger.load()
        return errors

    def set_after_mutate(self, fn: Callable[[], None]) -> None:
        for model in self.rebuild_models():
            model.hook.after_mutate = fn

    def set_mutate_runner(self, runner: Callable[[Callable[[], None]], None]) -> None:
        for model in self.all():
            model.mutate_runner = runner

    def question_extras(self) -> Dict[str, Callable[[str], Any]]:
        """Item summaries attached to question frames, keyed by model name."""
        return {
            self.operation.name: operation_question_extra(self.operation),
            self.datasource.name: datasource_question_extra(self.datasource),
            self.storage.name: storage_question_extra(self.storage),
        }

    def server_url(self) -> str:
        setting = self.global_setting.first()
        if setting is None or setting.server_options is None or setting.server_options.server_url is None:
            return ""
        return setting.server_options.server_url.resolve()

    def check_license(self, module: str, amount: int = 1) -> bool:
        """True when ``amount`` is over the bundled license limit of ``module``."""
        return check_limit(self.license, module, amount)
