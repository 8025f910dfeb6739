"""
Engine configuration builder.

A full build introspects every enabled datasource, merges their schemas,
compiles all operations and writes the generated files:

    exported/generated/fireboom.config.json      engine configuration
    exported/generated/fireboom.operations.json  every operation, invalid ones included
    exported/generated/fireboom.app.schema.graphql
    exported/generated/swagger.json

After the first build the builder follows the ``operation`` and ``storage``
channels and patches the configuration in place.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import Field

from ..compiler import DirectiveRegistry, EngineOperation, WireModel, default_registry
from ..core.consts import (
    ENGINE_BUILD_FAILED,
    ENGINE_BUILD_SUCCEED,
    ENGINE_BUILDING,
    ENGINE_INCREMENT_BUILD,
    ENGINE_STATUS_FIELD,
    EXPORTED_GENERATED,
    EXT_GRAPHQL,
    EXT_JSON,
    GENERATED_CONFIG,
    GENERATED_GRAPHQL_SCHEMA,
    GENERATED_OPERATIONS,
    GENERATED_SWAGGER,
    ROOT_EXPORTED,
    STORE_DATASOURCE,
    STORE_STORAGE,
)
from ..core.errcode import CustomError, ErrCode, new_custom_error
from ..core.utils import json_dumps, write_file
from ..messaging import Channel, Event, EventBus
from ..models import Datasource, ModelSet, Storage
from ..models.license import LICENSE_DATASOURCE, LICENSE_OPERATION
from .introspect import Introspector
from .operations import OperationsBuilder
from .swagger import build_swagger
from .typesystem import (
    ROOT_TYPE_NAMES,
    DatasourceSchema,
    TypeSystem,
    TypeSystemError,
    check_datasource,
    merge_type_system,
    prefix_datasource,
)

logger = logging.getLogger(__name__)


class TypeField(WireModel):
    type_name: str
    field_names: list[str] = []


class FieldConfiguration(WireModel):
    type_name: str
    field_name: str
    argument_names: list[str] = []
    datasource: str = ""


class DatasourceConfiguration(WireModel):
    id: str
    kind: str
    root_nodes: list[TypeField] = []
    child_nodes: list[TypeField] = []
    custom: Dict[str, Any] = {}


class EngineConfiguration(WireModel):
    """What the engine consumes, serialized to ``fireboom.config.json``."""

    node_options: Dict[str, Any] = {}
    server_options: Dict[str, Any] = {}
    cors_configuration: Dict[str, Any] = {}
    allowed_host_names: list[Any] = []
    enable_graphql_endpoint: bool = True
    enable_csrf_protect: bool = Field(default=False, alias="enableCSRFProtect")
    force_https_redirects: bool = False
    global_rate_limit: Optional[Dict[str, Any]] = None
    authentication_config: Dict[str, Any] = {}
    datasource_configurations: list[DatasourceConfiguration] = []
    field_configurations: list[FieldConfiguration] = []
    operations: list[EngineOperation] = []
    s3_upload_configuration: list[Dict[str, Any]] = Field(default=[], alias="s3UploadConfiguration")

    def operation_index(self, path: str) -> int:
        return next((i for i, o in enumerate(self.operations) if o.path == path), -1)


def datasource_configuration(datasource: Datasource, source: DatasourceSchema) -> DatasourceConfiguration:
    custom = datasource.model_dump(
        mode="json",
        by_alias=True,
        exclude_none=True,
        include={"custom_rest", "custom_asyncapi", "custom_graphql", "custom_database"},
    )
    return DatasourceConfiguration(
        id=datasource.name,
        kind=datasource.kind.value,
        root_nodes=[
            TypeField(type_name=type_name, field_names=source.root_field_names(kind))
            for kind, type_name in ROOT_TYPE_NAMES.items()
            if source.root_fields.get(kind)
        ],
        child_nodes=[TypeField(type_name=name, field_names=fields) for name, fields in source.child_nodes().items()],
        custom=custom,
    )


def field_configurations(source: DatasourceSchema) -> list[FieldConfiguration]:
    return [
        FieldConfiguration(
            type_name=ROOT_TYPE_NAMES[kind],
            field_name=definition.name.value,
            argument_names=[arg.name.value for arg in definition.arguments or ()],
            datasource=source.name,
        )
        for kind, fields in source.root_fields.items()
        for definition in fields
    ]


class EngineBuilder:
    """
    Owns the in-memory engine configuration.

    Args:
        models: Model set of the working directory
        bus: Event bus
        env: Returns the merged environment
        introspector: Datasource introspection, built from ``models`` when omitted
        directives: Directive registry

    Usage:
        builder = EngineBuilder(models, bus, environment.values)
        builder.build()
        builder.configuration.operations
    """

    def __init__(
        self,
        models: ModelSet,
        bus: EventBus,
        env: Callable[[], Mapping[str, str]] = dict,
        introspector: Optional[Introspector] = None,
        directives: Optional[DirectiveRegistry] = None,
    ):
        self.models = models
        self.bus = bus
        self.env = env
        self.introspector = introspector or Introspector(
            models.workdir, models.datasource_texts, env, models.server_url
        )
        self.directives = directives or default_registry()
        self.operations = OperationsBuilder(models, self.directives)
        self.type_system = TypeSystem()
        self.configuration = EngineConfiguration()
        self.lock = threading.RLock()
        self._subscribed = False

    @property
    def generated_root(self) -> Path:
        return self.models.workdir / ROOT_EXPORTED / EXPORTED_GENERATED

    def generated_path(self, name: str, extension: str = EXT_JSON) -> Path:
        return self.generated_root / f"{name}{extension}"

    def release(self) -> None:
        """Drop caches that depend on the previous type system."""
        with self.lock:
            self.operations.release()
            self.type_system = TypeSystem()

    def build(self) -> EngineConfiguration:
        """
        Run a full build and write the generated files.

        Raises:
            CustomError: EngineCreateConfigError when the datasource schemas cannot be merged
        """
        logger.info("build begin", extra={ENGINE_STATUS_FIELD: ENGINE_BUILDING})
        try:
            with self.lock:
                self.type_system = self._type_system()
                self.operations.reset(self.type_system)
                configuration = self._configuration()
                configuration.operations = self.operations.build_all()
                self.configuration = configuration
                self.emit()
        except CustomError as e:
            logger.error(f"build failed: {e.message}", extra={ENGINE_STATUS_FIELD: ENGINE_BUILD_FAILED, "error": e.message})
            raise
        except OSError as e:
            logger.error(f"build failed: {e}", extra={ENGINE_STATUS_FIELD: ENGINE_BUILD_FAILED, "error": str(e)})
            raise new_custom_error("engine", e, ErrCode.EngineCreateConfigError)

        self.models.check_license(LICENSE_OPERATION, len(self.configuration.operations))
        self.models.check_license(LICENSE_DATASOURCE, len(self.configuration.datasource_configurations))
        self.subscribe()
        logger.info("build finish", extra={ENGINE_STATUS_FIELD: ENGINE_BUILD_SUCCEED})
        return self.configuration

    def _type_system(self) -> TypeSystem:
        sources = []
        for datasource in self.models.datasource.list(lambda item: item.enabled):
            try:
                sdl = self.introspector.graphql_schema(datasource)
                source = prefix_datasource(datasource.name, sdl)
                check_datasource(source)
            except CustomError as e:
                self._introspect_failed(datasource.name, e.message)
                continue
            except TypeSystemError as e:
                self._introspect_failed(datasource.name, str(e))
                continue
            sources.append(source)
            logger.debug(f"Datasource {datasource.name} merged")

        if not sources:
            logger.warning("empty datasource")
        try:
            return merge_type_system(sources)
        except TypeSystemError as e:
            raise new_custom_error("engine", e, ErrCode.EngineCreateConfigError)

    @staticmethod
    def _introspect_failed(name: str, message: str) -> None:
        logger.warning(f"Datasource {name} introspect failed: {message}", extra={STORE_DATASOURCE: name, "error": message})

    def _configuration(self) -> EngineConfiguration:
        setting = self.models.global_setting.first()
        data: Dict[str, Any] = {}
        if setting is not None:
            data = setting.model_dump(
                mode="json",
                by_alias=True,
                exclude_none=True,
                include={
                    "node_options",
                    "server_options",
                    "cors_configuration",
                    "allowed_host_names",
                    "enable_csrf_protect",
                    "force_https_redirects",
                    "global_rate_limit",
                },
            )
        configuration = EngineConfiguration.model_validate(data)

        datasources = {item.name: item for item in self.models.datasource.list()}
        for source in self.type_system.datasources:
            configuration.datasource_configurations.append(datasource_configuration(datasources[source.name], source))
            configuration.field_configurations.extend(field_configurations(source))

        providers = [item.token_based_provider() for item in self.models.authentication.list(lambda a: a.enabled)]
        configuration.authentication_config = {"tokenBased": {"providers": providers}}
        configuration.s3_upload_configuration = [
            item.upload_configuration() for item in self.models.storage.list(lambda s: s.enabled)
        ]
        return configuration

    def emit(self) -> None:
        """Write every generated file from the current state."""
        with self.lock:
            configuration = self.configuration
            write_file(self.generated_path(GENERATED_CONFIG), json_dumps(configuration.to_dict()))
            self.emit_operations()
            schema = "\n\n".join(part for part in (self.type_system.sdl.strip(), self.directives.sdl().strip()) if part)
            write_file(self.generated_path(GENERATED_GRAPHQL_SCHEMA, EXT_GRAPHQL), schema + "\n")
            swagger = build_swagger(configuration.operations, self.operations.definitions)
            write_file(self.generated_path(GENERATED_SWAGGER), json_dumps(swagger))

    def emit_operations(self) -> None:
        write_file(self.generated_path(GENERATED_OPERATIONS), json_dumps(self.operations.operations_document()))

    # Incremental builds

    def _increment(self, event: Event, field: str, value: Any) -> None:
        self.emit()
        logger.info(str(event.value), extra={ENGINE_STATUS_FIELD: ENGINE_INCREMENT_BUILD, field: value})

    def subscribe(self) -> None:
        """Follow model events once the first build is done."""
        if self._subscribed:
            return
        self._subscribed = True
        self.operations.subscribe(self.bus)
        self._subscribe_operation()
        self._subscribe_storage()
        logger.debug("Engine builder subscribed")

    def _subscribe_operation(self) -> None:
        def insert(operation: EngineOperation, report: bool = True) -> Optional[EngineOperation]:
            with self.lock:
                self.configuration.operations.append(operation)
            if report:
                self._increment(Event.INSERT, Channel.OPERATION.value, operation.path)
            return operation

        def delete(path: str, report: bool = True) -> Optional[str]:
            with self.lock:
                index = self.configuration.operation_index(path)
                if index == -1:
                    return None
                del self.configuration.operations[index]
            if report:
                self._increment(Event.DELETE, Channel.OPERATION.value, path)
            return path

        def update(operation: EngineOperation, report: bool = True) -> Optional[EngineOperation]:
            delete(operation.path, report=False)
            if operation.name:
                insert(operation, report=False)
            if report:
                self._increment(Event.UPDATE, Channel.OPERATION.value, operation.path)
            return operation

        def batch(handler, event: Event, key: Callable[[Any], str]):
            def run(items: list) -> Optional[list]:
                results = [r for r in (handler(item, report=False) for item in items) if r is not None]
                if not results:
                    return None
                self._increment(event, Channel.OPERATION.value, [key(r) for r in results])
                return results
            return run

        def runtime(operation: EngineOperation) -> None:
            self.emit_operations()

        def invalid(path: str) -> str:
            self.emit_operations()
            return path

        self.bus.subscribe(Channel.OPERATION, Event.INSERT, insert)
        self.bus.subscribe(Channel.OPERATION, Event.UPDATE, update)
        self.bus.subscribe(Channel.OPERATION, Event.DELETE, delete)
        self.bus.subscribe(Channel.OPERATION, Event.BATCH_INSERT, batch(insert, Event.BATCH_INSERT, lambda o: o.path))
        self.bus.subscribe(Channel.OPERATION, Event.BATCH_UPDATE, batch(update, Event.BATCH_UPDATE, lambda o: o.path))
        self.bus.subscribe(Channel.OPERATION, Event.BATCH_DELETE, batch(delete, Event.BATCH_DELETE, lambda p: p))
        self.bus.subscribe(Channel.OPERATION, Event.RUNTIME, runtime)
        self.bus.subscribe(Channel.OPERATION, Event.INVALID, invalid)

    def _subscribe_storage(self) -> None:
        def remove(name: str) -> bool:
            uploads = self.configuration.s3_upload_configuration
            index = next((i for i, u in enumerate(uploads) if u.get("name") == name), -1)
            if index == -1:
                return False
            del uploads[index]
            return True

        def upsert(item: Storage) -> bool:
            removed = remove(item.name)
            if item.enabled:
                self.configuration.s3_upload_configuration.append(item.upload_configuration())
                return True
            return removed

        def single(event: Event):
            def run(item: Storage) -> Optional[Storage]:
                with self.lock:
                    changed = upsert(item)
                if not changed:
                    return None
                self._increment(event, STORE_STORAGE, item.name)
                return item
            return run

        def batch(event: Event):
            def run(items: list[Storage]) -> Optional[list[Storage]]:
                with self.lock:
                    changed = [item for item in items if upsert(item)]
                if not changed:
                    return None
                self._increment(event, STORE_STORAGE, [item.name for item in changed])
                return changed
            return run

        def delete(name: str) -> Optional[str]:
            with self.lock:
                if not remove(name):
                    return None
            self._increment(Event.DELETE, STORE_STORAGE, name)
            return name

        def batch_delete(names: list[str]) -> Optional[list[str]]:
            with self.lock:
                removed = [name for name in names if remove(name)]
            if not removed:
                return None
            self._increment(Event.BATCH_DELETE, STORE_STORAGE, removed)
            return removed

        self.bus.subscribe(Channel.STORAGE, Event.INSERT, single(Event.INSERT))
        self.bus.subscribe(Channel.STORAGE, Event.UPDATE, single(Event.UPDATE))
        self.bus.subscribe(Channel.STORAGE, Event.DELETE, delete)
        self.bus.subscribe(Channel.STORAGE, Event.BATCH_INSERT, batch(Event.BATCH_INSERT))
        self.bus.subscribe(Channel.STORAGE, Event.BATCH_UPDATE, batch(Event.BATCH_UPDATE))
        self.bus.subscribe(Channel.STORAGE, Event.BATCH_DELETE, batch_delete)
