"""
Operations and their texts.

An operation is stored as ``store/operation/<path>.json``; its GraphQL
document lives next to it as ``<path>.graphql`` and earlier versions of the
document as ``.<basename>/<version>.graphql``. Function and proxy operations
are described by JSON files the hook server writes under ``custom-ts``.

Invalid, internal, operation type and authorization config are set by the
compiler at build time and never written to disk.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional

from pydantic import Field

from ..core.consts import EXT_GRAPHQL, EXT_JSON, EXT_TS, ROOT_STORE, STORE_OPERATION, SYSTEM_USER
from ..core.utils import normalize_path
from ..store import Model, ModelText, MultipleDataRW, MultipleTextRW, default_basename
from .common import StoreItem, TimestampedItem, logic_delete, not_deleted, timestamp_hook

logger = logging.getLogger(__name__)

HOOK_ROOT = "custom-ts"
FIELD_ORIGIN_CONTENT = "originContent"


class OperationEngine(str, Enum):
    GRAPHQL = "GRAPHQL"
    FUNCTION = "FUNCTION"
    PROXY = "PROXY"


class OperationType(str, Enum):
    QUERY = "query"
    MUTATION = "mutation"
    SUBSCRIPTION = "subscription"


OPERATION_METHODS = {
    OperationType.QUERY: "GET",
    OperationType.MUTATION: "POST",
    OperationType.SUBSCRIPTION: "GET",
}

OPERATION_HOOKS = (
    "preResolve",
    "mutatingPreResolve",
    "mockResolve",
    "customResolve",
    "postResolve",
    "mutatingPostResolve",
)


class MockResolveConfig(StoreItem):
    enabled: bool = False
    sub_sequent_hooks: bool = False


class OperationHooksConfiguration(StoreItem):
    pre_resolve: bool = False
    mutating_pre_resolve: bool = False
    mock_resolve: Optional[MockResolveConfig] = None
    custom_resolve: bool = False
    post_resolve: bool = False
    mutating_post_resolve: bool = False

    def hook_enabled(self, hook: str) -> bool:
        if hook == "mockResolve":
            return self.mock_resolve is not None and self.mock_resolve.enabled
        return bool(getattr(self, _snake(hook), False))


class OperationCacheConfig(StoreItem):
    enabled: bool = False
    max_age: int = 0
    public: bool = False
    stale_while_revalidate: int = 0


class OperationLiveQueryConfig(StoreItem):
    enabled: bool = False
    polling_interval_seconds: int = 0


class OperationAuthenticationConfig(StoreItem):
    auth_required: bool = False


class OperationRateLimit(StoreItem):
    enabled: bool = False
    requests: int = 0
    per_second: int = 0


class OperationSemaphore(StoreItem):
    enabled: bool = False
    tickets: int = 0
    timeout_seconds: int = 0


class Operation(TimestampedItem):
    path: str = ""
    enabled: bool = False
    title: str = ""
    remark: str = ""
    engine: OperationEngine = OperationEngine.GRAPHQL
    hooks_configuration: Optional[OperationHooksConfiguration] = None
    rate_limit: Optional[OperationRateLimit] = None
    semaphore: Optional[OperationSemaphore] = None
    config_customized: bool = False
    cache_config: Optional[OperationCacheConfig] = None
    live_query_config: Optional[OperationLiveQueryConfig] = None
    authentication_config: Optional[OperationAuthenticationConfig] = None

    invalid: bool = Field(default=False, exclude=True)
    internal: bool = Field(default=False, exclude=True)
    operation_type: Optional[OperationType] = Field(default=None, exclude=True)
    authorization_config: Optional[dict] = Field(default=None, exclude=True)

    @property
    def method(self) -> str:
        return OPERATION_METHODS.get(self.operation_type, "") if self.operation_type else ""


def _snake(name: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in name)


def operation_tree_extra(item: Operation) -> dict[str, Any]:
    return {
        "enabled": item.enabled,
        "invalid": item.invalid,
        "internal": item.internal,
        "liveQueryEnabled": bool(item.live_query_config and item.live_query_config.enabled),
        "method": item.method,
        "operationType": item.operation_type.value if item.operation_type else "",
        "engine": item.engine.value,
    }


def history_basename(data_name: str, offset: int = 0, *optional: str) -> tuple[str, bool]:
    """``users/list`` keeps its history under ``users/.list/``."""
    head, _, tail = data_name.rpartition("/")
    hidden = f"{head}/.{tail}" if head else f".{tail}"
    return normalize_path(hidden, *optional), bool(optional)


class OperationTexts:
    """Texts bound to the operation model."""

    def __init__(self):
        self.graphql = ModelText(
            "operation.graphql",
            normalize_path(ROOT_STORE, STORE_OPERATION),
            EXT_GRAPHQL,
            MultipleTextRW(default_basename(), enabled=lambda item, *_: item.enabled),
            read_cache=True,
        )
        self.graphql_history = ModelText(
            "operation.graphql.history",
            normalize_path(ROOT_STORE, STORE_OPERATION),
            EXT_GRAPHQL,
            MultipleTextRW(history_basename, enabled=lambda item, *_: True),
            skip_rely_update=True,
            exportable=False,
        )
        self.function = ModelText(
            "operation.function",
            normalize_path(HOOK_ROOT, "function"),
            EXT_JSON,
            MultipleTextRW(
                default_basename(),
                enabled=lambda item, *_: item.enabled and item.engine == OperationEngine.FUNCTION,
            ),
            exportable=False,
        )
        self.proxy = ModelText(
            "operation.proxy",
            normalize_path(HOOK_ROOT, "proxy"),
            EXT_JSON,
            MultipleTextRW(
                default_basename(),
                enabled=lambda item, *_: item.enabled and item.engine == OperationEngine.PROXY,
            ),
            exportable=False,
        )
        self.hooks = {hook: self._hook_text(hook) for hook in OPERATION_HOOKS}

    @staticmethod
    def _hook_text(hook: str) -> ModelText:
        def enabled(item: Operation, *_: str) -> bool:
            return item.enabled and item.hooks_configuration is not None and item.hooks_configuration.hook_enabled(hook)

        return ModelText(
            hook,
            normalize_path(HOOK_ROOT, STORE_OPERATION),
            EXT_TS,
            MultipleTextRW(default_basename(hook), enabled=enabled),
            exportable=False,
        )

    def all(self) -> list[ModelText]:
        return [self.graphql, self.graphql_history, self.function, self.proxy, *self.hooks.values()]

    def hook_options(self, data_name: str) -> dict[str, dict[str, Any]]:
        """``{hook: {relativeMaybe, existed, enabled}}`` for the operation hooks."""
        result = {}
        for hook, text in self.hooks.items():
            result[hook] = {
                "relativeMaybe": text.relative_path(data_name),
                "existed": text.exists(data_name),
                "enabled": text.enabled(data_name),
            }
        return result


def build_operation_model(texts: OperationTexts, merge_defaults: Optional[dict] = None) -> Model[Operation]:
    def after_batch_insert(items: list[Operation], _user: str, extras: list[Any]) -> bool:
        for item, content in zip(items, extras):
            if content:
                texts.graphql.write(item.path, SYSTEM_USER, content)
        return any(item.enabled for item in items)

    return Model(
        STORE_OPERATION,
        normalize_path(ROOT_STORE, STORE_OPERATION),
        EXT_JSON,
        MultipleDataRW(
            "path",
            filter=not_deleted,
            logic_delete=logic_delete,
            merge_data=merge_defaults,
        ),
        Operation,
        hook=timestamp_hook(
            after_insert=lambda item, _user: item.enabled,
            after_batch_insert=after_batch_insert,
        ),
        tree_extra=operation_tree_extra,
        batch_extra_field=FIELD_ORIGIN_CONTENT,
    )


def operation_question_extra(model: Model[Operation]):
    def extra(data_name: str) -> Optional[dict]:
        if not model.exists(data_name):
            return None
        model.set_runtime(data_name, invalid=True)
        item = model.get(data_name)
        return {"enabled": item.enabled, "engine": item.engine.value}
    return extra
