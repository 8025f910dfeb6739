"""
Operations builder.

Compiles every stored operation into its engine descriptor. GraphQL
operations go through the compiler; function and proxy operations are read
from the JSON descriptors the hook server writes. Operations that did not
change since the last build are reused: a compile is kept while the text edit
nonce, the shared fragments, the role codes and the field hashes of every
root field it selects stay the same.

After the first build the builder subscribes to the ``operation`` channel and
patches single operations incrementally.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..compiler import CompileResult, DirectiveRegistry, EngineKind, EngineOperation, OperationCompiler
from ..compiler import normalize_operation_name
from ..compiler.descriptor import OperationAuthenticationConfig, OperationAuthorizationConfig
from ..core.consts import STORE_OPERATION
from ..core.errcode import CustomError
from ..messaging import Channel, Event, EventBus
from ..models import ModelSet, Operation, OperationEngine, OperationType
from ..models.settings import GlobalOperation
from .fieldhash import FieldHashSet
from .typesystem import TypeSystem

logger = logging.getLogger(__name__)

OPERATION_FILE_NOT_FOUND_FORMAT = "operation file [%s] not found"
OPERATION_FILE_INVALID_FORMAT = "operation file [%s] invalid: %s"


@dataclass
class _Compiled:
    key: tuple
    context_hash: str
    field_hash: str
    result: CompileResult


def _schema(value: Any) -> Dict[str, Any]:
    """Schemas in hook descriptors are objects or JSON encoded strings."""
    if isinstance(value, str):
        value = json.loads(value) if value.strip() else {}
    return value if isinstance(value, dict) else {}


def _operation_type(value: str) -> Optional[OperationType]:
    try:
        return OperationType(value.lower())
    except ValueError:
        return None


def hooks_configuration(options: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    """Engine hooks config of an operation from its hook file options."""
    result: Dict[str, Any] = {}
    for hook, option in options.items():
        enabled = bool(option.get("enabled") and option.get("existed"))
        result[hook] = {"enabled": enabled} if hook == "mockResolve" else enabled
    return result


def merge_global_operation(item: Operation, operation: EngineOperation, global_operation: Optional[GlobalOperation]):
    """Fill the cache, live query and authentication config the operation does not customize."""
    global_operation = global_operation or GlobalOperation()
    if item.config_customized:
        cache, live_query = item.cache_config, item.live_query_config
    else:
        cache, live_query = global_operation.cache_config, global_operation.live_query_config
    operation.cache_config = cache.model_dump(by_alias=True) if cache else None
    operation.live_query_config = live_query.model_dump(by_alias=True) if live_query else None

    if operation.authentication_config is None:
        if item.config_customized and item.authentication_config is not None:
            auth = item.authentication_config
        else:
            auth = global_operation.authentication_configs.get(operation.operation_type.lower())
        if auth is not None:
            operation.authentication_config = OperationAuthenticationConfig(auth_required=auth.auth_required)

    operation.rate_limit = item.rate_limit.model_dump(by_alias=True) if item.rate_limit else None
    operation.semaphore = item.semaphore.model_dump(by_alias=True) if item.semaphore else None


class OperationsBuilder:
    """
    Compiles operations against the current type system.

    Args:
        models: Model set of the working directory
        registry: Directive registry shared with the schema export
    """

    def __init__(self, models: ModelSet, registry: DirectiveRegistry):
        self.models = models
        self.registry = registry
        self.lock = threading.RLock()
        self.compiler = OperationCompiler(None, {}, registry)
        self.field_hashes = FieldHashSet(None)
        self.fragments = ""
        self.context_hash = ""
        # Path -> descriptor of every operation, invalid ones included
        self.operations: Dict[str, EngineOperation] = {}
        self.errors: Dict[str, list[str]] = {}
        self.definitions: Dict[str, Any] = {}
        self._compiled: Dict[str, _Compiled] = {}
        self._subscribed = False

    def reset(self, type_system: TypeSystem) -> None:
        with self.lock:
            self.compiler = OperationCompiler(type_system.schema, type_system.field_datasources, self.registry)
            self.field_hashes = FieldHashSet(type_system.schema)

    def release(self) -> None:
        with self.lock:
            self.field_hashes = FieldHashSet(None)

    def build_all(self) -> list[EngineOperation]:
        """Compile every operation and return the enabled, valid descriptors."""
        with self.lock:
            self._load_context()
            self.operations.clear()
            self.errors.clear()
            self.definitions = {}
            items = self.models.operation.list()
            for item in items:
                self._build_item(item)

            paths = {item.path for item in items}
            for path in list(self._compiled):
                if path not in paths:
                    del self._compiled[path]
            return self.enabled_operations()

    def enabled_operations(self) -> list[EngineOperation]:
        result = []
        for path, operation in self.operations.items():
            if operation.invalid or not self.models.operation.exists(path):
                continue
            if self.models.operation.get(path).enabled:
                result.append(operation)
        return result

    def build_item(self, item: Operation) -> EngineOperation:
        with self.lock:
            return self._build_item(item)

    def remove_item(self, path: str) -> bool:
        with self.lock:
            self._compiled.pop(path, None)
            self.errors.pop(path, None)
            return self.operations.pop(path, None) is not None

    def _load_context(self) -> None:
        fragments = self.models.fragments.read_all()
        self.fragments = "\n\n".join(fragments[name] for name in sorted(fragments))
        codes = sorted(role.code for role in self.models.role.list())
        self.registry.set_role_codes(codes)
        digest = hashlib.sha256(self.fragments.encode())
        digest.update(",".join(codes).encode())
        self.context_hash = digest.hexdigest()

    def _build_item(self, item: Operation) -> EngineOperation:
        path = item.path
        if item.engine == OperationEngine.GRAPHQL:
            operation, errors = self._graphql(item)
        else:
            operation, errors = self._extension(item)

        operation.invalid = bool(errors)
        if not errors:
            merge_global_operation(item, operation, self.models.global_operation.first())
            operation.hooks_configuration = hooks_configuration(self.models.operation_texts.hook_options(path))

        self.operations[path] = operation
        if errors:
            self.errors[path] = errors
        else:
            self.errors.pop(path, None)

        self.models.operation.set_runtime(
            path,
            invalid=operation.invalid,
            internal=operation.internal,
            operation_type=_operation_type(operation.operation_type),
            authorization_config=operation.authorization_config.to_dict(),
        )
        if errors:
            logger.warning(
                f"Operation {path} invalid: {errors[0]}",
                extra={STORE_OPERATION: path, "error": "; ".join(errors)},
            )
        return operation

    def _graphql(self, item: Operation) -> tuple[EngineOperation, list[str]]:
        path = item.path
        text = self.models.operation_texts.graphql
        if not text.exists(path):
            operation = EngineOperation(name=normalize_operation_name(path), path=path)
            return operation, [OPERATION_FILE_NOT_FOUND_FORMAT % text.relative_path(path)]

        key = (text.nonce(path), text.modified_time(path), item.enabled)
        cached = self._compiled.get(path)
        if (
            cached is not None
            and cached.key == key
            and cached.context_hash == self.context_hash
            and cached.field_hash == self.field_hashes.operation_hash(cached.result.selected_fields)
        ):
            logger.debug(f"Operation {path} reused")
            result = cached.result
        else:
            try:
                content = text.read(path)
            except CustomError as e:
                operation = EngineOperation(name=normalize_operation_name(path), path=path)
                return operation, [e.message]
            result = self.compiler.compile(path, content, self.fragments, item.enabled)
            self._compiled[path] = _Compiled(
                key=key,
                context_hash=self.context_hash,
                field_hash=self.field_hashes.operation_hash(result.selected_fields),
                result=result,
            )

        self.definitions.update(result.definitions)
        return result.operation.model_copy(deep=True), list(result.errors)

    def _extension(self, item: Operation) -> tuple[EngineOperation, list[str]]:
        path = item.path
        texts = self.models.operation_texts
        text = texts.function if item.engine == OperationEngine.FUNCTION else texts.proxy
        operation = EngineOperation(
            name=normalize_operation_name(path),
            path=path,
            engine=EngineKind(item.engine.value),
            operation_type=OperationType.QUERY.value.upper(),
        )
        if not text.exists(path):
            return operation, [OPERATION_FILE_NOT_FOUND_FORMAT % text.relative_path(path)]

        try:
            data = json.loads(text.read(path))
            operation.operation_type = str(data.get("operationType") or OperationType.QUERY.value).upper()
            operation.variables_schema = _schema(data.get("variablesSchema"))
            operation.internal_variables_schema = _schema(data.get("internalVariablesSchema")) or operation.variables_schema
            operation.response_schema = _schema(data.get("responseSchema"))
            operation.internal = bool(data.get("internal"))
            operation.authorization_config = OperationAuthorizationConfig.model_validate(
                data.get("authorizationConfig") or {}
            )
            auth = data.get("authenticationConfig")
            if auth:
                operation.authentication_config = OperationAuthenticationConfig.model_validate(auth)
        except (CustomError, ValueError, AttributeError) as e:
            return operation, [OPERATION_FILE_INVALID_FORMAT % (text.relative_path(path), e)]
        return operation, []

    # Incremental builds

    def subscribe(self, bus: EventBus) -> None:
        """Register the incremental handlers once; they run first in each chain."""
        if self._subscribed:
            return
        self._subscribed = True

        def insert(item: Operation) -> Optional[EngineOperation]:
            operation = self.build_item(item)
            if operation.invalid:
                bus.publish(Channel.OPERATION, Event.INVALID, item.path)
                return None
            bus.publish(Channel.OPERATION, Event.RUNTIME, operation)
            return operation if item.enabled else None

        def delete(path: str) -> Optional[str]:
            return path if self.remove_item(path) else None

        def update(item: Operation) -> Optional[EngineOperation]:
            removed = delete(item.path) is not None
            operation = insert(item)
            if operation is None:
                if not removed:
                    return None
                # Empty name tells downstream handlers to only drop the entry
                return EngineOperation(name="", path=item.path)
            return operation

        def batch(handler):
            def run(items: list) -> Optional[list]:
                results = [r for r in (handler(item) for item in items) if r is not None]
                return results or None
            return run

        bus.subscribe(Channel.OPERATION, Event.INSERT, insert)
        bus.subscribe(Channel.OPERATION, Event.UPDATE, update)
        bus.subscribe(Channel.OPERATION, Event.DELETE, delete)
        bus.subscribe(Channel.OPERATION, Event.BATCH_INSERT, batch(insert))
        bus.subscribe(Channel.OPERATION, Event.BATCH_UPDATE, batch(update))
        bus.subscribe(Channel.OPERATION, Event.BATCH_DELETE, batch(delete))
        logger.debug("Operations builder subscribed")

    def operations_document(self) -> Dict[str, Any]:
        """Content of ``fireboom.operations.json``."""
        with self.lock:
            return {
                "operations": [self.operations[path].to_dict() for path in sorted(self.operations)],
                "definitions": dict(self.definitions),
                "invalids": sorted(path for path, op in self.operations.items() if op.invalid),
                "errors": {path: list(errors) for path, errors in sorted(self.errors.items())},
            }
