"""
Datasources.

Each datasource is ``store/datasource/<name>.json``. Database kinds are
reached through a URL (``customDatabase.kind == 0``) or separate connection
fields (``kind == 1``). Uploaded definitions (OpenAPI, GraphQL SDL, Prisma
schemas, SQLite files) live under ``upload/`` and derived artifacts under
``exported/introspection``.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from ..core.consts import (
    EXPORTED_INTROSPECTION,
    EXT_GRAPHQL,
    EXT_JSON,
    EXT_PRISMA,
    ROOT_EXPORTED,
    ROOT_STORE,
    ROOT_UPLOAD,
    STORE_DATASOURCE,
    UPLOAD_SQLITE,
)
from ..core.errcode import ErrCode, new_custom_error
from ..core.utils import normalize_path
from ..store import Model, ModelText, MultipleDataRW, MultipleTextRW, default_basename
from .common import (
    ConfigurationVariable,
    StoreItem,
    TimestampedItem,
    enabled_after_insert,
    logic_delete,
    not_deleted,
    timestamp_hook,
    variable_string,
)


class DatasourceKind(str, Enum):
    PRISMA = "PRISMA"
    POSTGRESQL = "POSTGRESQL"
    MYSQL = "MYSQL"
    SQLSERVER = "SQLSERVER"
    MONGODB = "MONGODB"
    SQLITE = "SQLITE"
    REST = "REST"
    GRAPHQL = "GRAPHQL"
    ASYNCAPI = "ASYNCAPI"


DATABASE_KINDS = (
    DatasourceKind.PRISMA,
    DatasourceKind.POSTGRESQL,
    DatasourceKind.MYSQL,
    DatasourceKind.SQLSERVER,
    DatasourceKind.MONGODB,
    DatasourceKind.SQLITE,
)

# SQLAlchemy dialect of each database kind
SQLALCHEMY_SCHEMES = {
    DatasourceKind.POSTGRESQL: "postgresql",
    DatasourceKind.MYSQL: "mysql+pymysql",
    DatasourceKind.SQLSERVER: "mssql+pyodbc",
    DatasourceKind.SQLITE: "sqlite",
}


class CustomDatabaseKind(IntEnum):
    URL = 0
    ALONE = 1


class HTTPHeader(StoreItem):
    values: list[ConfigurationVariable] = []


class CustomGraphql(StoreItem):
    customized: bool = False
    headers: Optional[Dict[str, HTTPHeader]] = None
    endpoint: str = ""
    schema_filepath: str = ""


class CustomRest(StoreItem):
    oas_filepath: str = ""
    base_url: Optional[ConfigurationVariable] = None
    headers: Optional[Dict[str, HTTPHeader]] = None


class CustomDatabaseAlone(StoreItem):
    host: str = ""
    port: int = 0
    database: str = ""
    username: str = ""
    password: str = ""


class CustomDatabase(StoreItem):
    kind: CustomDatabaseKind = CustomDatabaseKind.URL
    database_url: Optional[ConfigurationVariable] = None
    database_alone: Optional[CustomDatabaseAlone] = None


class Datasource(TimestampedItem):
    name: str = ""
    enabled: bool = False
    cache_enabled: bool = False
    kind: DatasourceKind = DatasourceKind.PRISMA
    custom_rest: Optional[CustomRest] = None
    custom_asyncapi: Optional[CustomRest] = None
    custom_graphql: Optional[CustomGraphql] = None
    custom_database: Optional[CustomDatabase] = None

    @property
    def is_database(self) -> bool:
        return self.kind in DATABASE_KINDS

    @property
    def is_customize(self) -> bool:
        return self.kind == DatasourceKind.GRAPHQL and bool(self.custom_graphql and self.custom_graphql.customized)

    def graphql_url(self, server_url: str) -> str:
        """Endpoint of a GraphQL datasource; customized ones are served by the hook server."""
        graphql = self.custom_graphql or CustomGraphql()
        if not graphql.customized:
            return graphql.endpoint
        if not server_url:
            raise new_custom_error(STORE_DATASOURCE, None, ErrCode.SettingServerUrlEmptyError)
        return f"{server_url.rstrip('/')}/gqls/{self.name}/graphql"

    def database_url(self, workdir: str | Path = ".", env: Optional[Mapping[str, str]] = None) -> str:
        """
        Connection URL of a database datasource.

        Raises:
            CustomError: DatasourceKindNotSupportedError, DatasourceDatabaseUrlEmptyError
        """
        if not self.is_database:
            raise new_custom_error(STORE_DATASOURCE, None, ErrCode.DatasourceKindNotSupportedError, self.kind.value)
        database = self.custom_database or CustomDatabase()
        if database.kind == CustomDatabaseKind.ALONE:
            alone = database.database_alone or CustomDatabaseAlone()
            if self.kind == DatasourceKind.SQLITE:
                raise new_custom_error(STORE_DATASOURCE, None, ErrCode.DatasourceKindNotSupportedError, self.kind.value)
            scheme = self.kind.value.lower()
            if self.kind == DatasourceKind.MONGODB:
                scheme += "+srv"
            return f"{scheme}://{alone.username}:{alone.password}@{alone.host}:{alone.port}/{alone.database}"

        url = variable_string(database.database_url, env)
        if not url:
            raise new_custom_error(STORE_DATASOURCE, None, ErrCode.DatasourceDatabaseUrlEmptyError, self.name)
        if self.kind == DatasourceKind.SQLITE:
            path = (Path(workdir) / ROOT_UPLOAD / UPLOAD_SQLITE / url).resolve()
            return f"file:{path.as_posix()}"
        return url

    def sqlalchemy_url(self, workdir: str | Path = ".", env: Optional[Mapping[str, str]] = None) -> str:
        url = self.database_url(workdir, env)
        scheme = SQLALCHEMY_SCHEMES.get(self.kind)
        if scheme is None:
            raise new_custom_error(STORE_DATASOURCE, None, ErrCode.DatasourceKindNotSupportedError, self.kind.value)
        if self.kind == DatasourceKind.SQLITE:
            return f"sqlite:///{url[len('file:'):]}"
        _, sep, rest = url.partition("://")
        return f"{scheme}://{rest}" if sep else url


class DatasourceTexts:
    """Prisma schema and introspection caches keyed by datasource name."""

    def __init__(self):
        root = normalize_path(ROOT_EXPORTED, EXPORTED_INTROSPECTION)
        self.prisma = ModelText(
            "datasource.prisma",
            root,
            EXT_PRISMA,
            MultipleTextRW(default_basename(), enabled=lambda item, *_: item.is_database),
            read_cache=True,
            skip_rely_update=True,
            exportable=False,
        )
        self.graphql = ModelText(
            "datasource.graphql",
            root,
            EXT_GRAPHQL,
            MultipleTextRW(default_basename(), enabled=lambda item, *_: item.enabled),
            read_cache=True,
            skip_rely_update=True,
            exportable=False,
        )
        self.dmmf = ModelText(
            "datasource.dmmf",
            root,
            ".dmmf.json",
            MultipleTextRW(default_basename(), enabled=lambda item, *_: item.is_database),
            skip_rely_update=True,
            exportable=False,
        )

    def all(self) -> list[ModelText]:
        return [self.prisma, self.graphql, self.dmmf]


def build_datasource_model(texts: DatasourceTexts) -> Model[Datasource]:
    def reset_cache(src: Datasource, dst: Datasource, _user: str) -> None:
        # A renamed or cache-disabled datasource must be introspected again
        if dst.cache_enabled and src.name == dst.name:
            return
        for text in texts.all():
            text.remove_for(src.name)

    hook = timestamp_hook(after_insert=enabled_after_insert)
    on_update = hook.on_update

    def update_and_reset(src: Datasource, dst: Datasource, user: str) -> None:
        on_update(src, dst, user)
        reset_cache(src, dst, user)

    hook.on_update = update_and_reset
    return Model(
        STORE_DATASOURCE,
        normalize_path(ROOT_STORE, STORE_DATASOURCE),
        EXT_JSON,
        MultipleDataRW("name", filter=not_deleted, logic_delete=logic_delete),
        Datasource,
        hook=hook,
    )


def datasource_question_extra(model: Model[Datasource]):
    def extra(data_name: str) -> Optional[Dict[str, Any]]:
        if not model.exists(data_name):
            return None
        item = model.get(data_name)
        result: Dict[str, Any] = {"enabled": item.enabled, "kind": item.kind.value}
        if item.custom_graphql is not None:
            result["customized"] = item.custom_graphql.customized
        return result
    return extra
