"""
Datasource introspection.

GraphQL datasources are read from an uploaded SDL file or introspected over
HTTP with httpx. REST and AsyncAPI datasources are converted from their
uploaded documents. Database datasources run the external introspection
command, whose stderr lines are logged so they reach the ``log`` channel.

Results are cached as ``exported/introspection/<name>.graphql``; the cache is
used while ``cacheEnabled`` is set on the datasource.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional, Sequence

import httpx
from graphql import build_client_schema, get_introspection_query, print_schema
from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError

from ..core.consts import (
    ENV_DATABASE_CLOSE_TIMEOUT,
    ENV_DATABASE_EXECUTE_TIMEOUT,
    ENV_INTROSPECT_COMMAND,
    ROOT_UPLOAD,
    STORE_DATASOURCE,
    SYSTEM_USER,
    UPLOAD_ASYNCAPI,
    UPLOAD_GRAPHQL,
    UPLOAD_OAS,
    UPLOAD_PRISMA,
)
from ..core.errcode import ErrCode, new_custom_error
from ..models.common import variable_string
from ..models.datasource import SQLALCHEMY_SCHEMES, Datasource, DatasourceKind, DatasourceTexts, HTTPHeader
from .openapi import SpecVersionError, asyncapi_to_sdl, openapi_to_sdl

logger = logging.getLogger(__name__)

DEFAULT_EXECUTE_TIMEOUT = 30.0
DEFAULT_CLOSE_TIMEOUT = 5.0

# Subcommands of the introspection command
ACTION_GRAPHQL = "graphql"
ACTION_PRISMA = "prisma"
ACTION_DMMF = "dmmf"
ACTION_QUERY = "query"
ACTION_MIGRATE = "migrate"
ACTION_CREATE_MIGRATION = "createMigration"
ACTION_APPLY_MIGRATION = "applyMigration"
ACTION_DIFF = "diff"

ACTION_ERRORS = {
    ACTION_GRAPHQL: ErrCode.PrismaQueryError,
    ACTION_PRISMA: ErrCode.PrismaQueryError,
    ACTION_DMMF: ErrCode.PrismaQueryError,
    ACTION_QUERY: ErrCode.PrismaQueryError,
    ACTION_MIGRATE: ErrCode.PrismaMigrateError,
    ACTION_CREATE_MIGRATION: ErrCode.PrismaCreateMigrationError,
    ACTION_APPLY_MIGRATION: ErrCode.PrismaApplyMigrationError,
    ACTION_DIFF: ErrCode.PrismaDiffError,
}


def _timeout(env: Mapping[str, str], key: str, default: float) -> float:
    try:
        return float(env.get(key) or default)
    except ValueError:
        return default


def header_values(headers: Optional[Dict[str, HTTPHeader]], env: Mapping[str, str]) -> Dict[str, str]:
    result = {}
    for name, header in (headers or {}).items():
        values = [variable_string(v, env) for v in header.values]
        values = [v for v in values if v]
        if values:
            result[name] = ",".join(values)
    return result


class CommandRunner:
    """
    Runs the external introspection command.

    Args:
        command: Command line, e.g. ``fireboom-prisma --quiet``
        timeout: Seconds before the process is killed
    """

    def __init__(self, command: str = "", timeout: float = DEFAULT_EXECUTE_TIMEOUT):
        self.command = shlex.split(command) if command else []
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.command)

    def run(self, action: str, datasource: str, arguments: Sequence[str] = (), stdin: Optional[bytes] = None) -> bytes:
        """
        Run ``<command> <action> <arguments...>`` and return stdout.

        Raises:
            CustomError: The Prisma error of ``action`` when the command is
                missing, times out or exits non-zero
        """
        code = ACTION_ERRORS.get(action, ErrCode.PrismaQueryError)
        if not self.command:
            raise new_custom_error(STORE_DATASOURCE, RuntimeError(f"{ENV_INTROSPECT_COMMAND} not set"), code)

        args = [*self.command, action, *arguments]
        logger.debug(f"Running introspection command {args}")
        try:
            completed = subprocess.run(args, input=stdin, capture_output=True, timeout=self.timeout, check=False)
        except subprocess.TimeoutExpired as e:
            raise new_custom_error(STORE_DATASOURCE, e, code)
        except OSError as e:
            raise new_custom_error(STORE_DATASOURCE, e, code)

        for line in completed.stderr.decode("utf-8", errors="replace").splitlines():
            if line.strip():
                logger.info(line, extra={"introspection": datasource})
        if completed.returncode != 0:
            raise new_custom_error(
                STORE_DATASOURCE, RuntimeError(f"exit status {completed.returncode}"), code
            )
        return completed.stdout


class Introspector:
    """
    Produces the GraphQL SDL of a datasource.

    Args:
        workdir: Project working directory
        texts: Introspection caches
        env: Merged environment
        server_url: Returns the hook server url, used by customized GraphQL datasources
        runner: Introspection command runner
        http_client: httpx client, created on demand when omitted
    """

    def __init__(
        self,
        workdir: str | Path,
        texts: DatasourceTexts,
        env: Callable[[], Mapping[str, str]],
        server_url: Callable[[], str] = lambda: "",
        runner: Optional[CommandRunner] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self.workdir = Path(workdir)
        self.texts = texts
        self.env = env
        self.server_url = server_url
        self.runner = runner or CommandRunner()
        self.http_client = http_client

    @property
    def execute_timeout(self) -> float:
        return _timeout(self.env(), ENV_DATABASE_EXECUTE_TIMEOUT, DEFAULT_EXECUTE_TIMEOUT)

    @property
    def close_timeout(self) -> float:
        return _timeout(self.env(), ENV_DATABASE_CLOSE_TIMEOUT, DEFAULT_CLOSE_TIMEOUT)

    def graphql_schema(self, datasource: Datasource) -> str:
        """
        Cached or freshly introspected SDL of ``datasource``.

        Raises:
            CustomError: Connection, kind or command failures
        """
        name = datasource.name
        if datasource.cache_enabled and self.texts.graphql.exists(name):
            return self.texts.graphql.read(name)

        sdl = self.introspect(datasource)
        self.texts.graphql.write(name, SYSTEM_USER, sdl)
        logger.debug(f"Datasource {name} introspected")
        return sdl

    def introspect(self, datasource: Datasource) -> str:
        if datasource.kind == DatasourceKind.GRAPHQL:
            return self._graphql(datasource)
        if datasource.kind in (DatasourceKind.REST, DatasourceKind.ASYNCAPI):
            return self._document(datasource)
        return self._database(datasource)

    def upload_path(self, directory: str, filename: str) -> Path:
        return self.workdir / ROOT_UPLOAD / directory / filename

    def _client(self) -> httpx.Client:
        if self.http_client is None:
            self.http_client = httpx.Client(timeout=self.execute_timeout)
        return self.http_client

    def _graphql(self, datasource: Datasource) -> str:
        graphql = datasource.custom_graphql
        if graphql is not None and graphql.schema_filepath:
            return self._read_upload(datasource, UPLOAD_GRAPHQL, graphql.schema_filepath)

        url = datasource.graphql_url(self.server_url())
        headers = header_values(graphql.headers if graphql else None, self.env())
        try:
            response = self._client().post(url, json={"query": get_introspection_query(descriptions=True)}, headers=headers)
            response.raise_for_status()
            data = response.json().get("data")
            return print_schema(build_client_schema(data))
        except (httpx.HTTPError, ValueError, TypeError) as e:
            raise new_custom_error(STORE_DATASOURCE, e, ErrCode.DatasourceConnectionError, datasource.name)

    def _document(self, datasource: Datasource) -> str:
        if datasource.kind == DatasourceKind.REST:
            directory, rest, convert = UPLOAD_OAS, datasource.custom_rest, openapi_to_sdl
        else:
            directory, rest, convert = UPLOAD_ASYNCAPI, datasource.custom_asyncapi, asyncapi_to_sdl
        if rest is None or not rest.oas_filepath:
            raise new_custom_error(STORE_DATASOURCE, None, ErrCode.FileContentEmptyError, datasource.name)

        content = self._read_upload(datasource, directory, rest.oas_filepath)
        try:
            return convert(content)
        except SpecVersionError as e:
            raise new_custom_error(STORE_DATASOURCE, e, ErrCode.DatabaseOasVersionError, rest.oas_filepath)

    def _database(self, datasource: Datasource) -> str:
        if datasource.kind == DatasourceKind.PRISMA:
            stdin = self.prisma_schema(datasource).encode("utf-8")
            output = self.runner.run(ACTION_GRAPHQL, datasource.name, ("--schema", "-"), stdin=stdin)
        else:
            url = datasource.database_url(self.workdir, self.env())
            output = self.runner.run(ACTION_GRAPHQL, datasource.name, ("--url", url))
        return output.decode("utf-8")

    def prisma_schema(self, datasource: Datasource) -> str:
        """Prisma schema of a database datasource, uploaded or introspected."""
        if datasource.kind == DatasourceKind.PRISMA:
            filename = variable_string(
                datasource.custom_database.database_url if datasource.custom_database else None, self.env()
            )
            if not filename:
                raise new_custom_error(STORE_DATASOURCE, None, ErrCode.DatasourceDatabaseUrlEmptyError, datasource.name)
            return self._read_upload(datasource, UPLOAD_PRISMA, filename)

        if datasource.cache_enabled and self.texts.prisma.exists(datasource.name):
            return self.texts.prisma.read(datasource.name)
        url = datasource.database_url(self.workdir, self.env())
        content = self.runner.run(ACTION_PRISMA, datasource.name, ("--url", url)).decode("utf-8")
        self.texts.prisma.write(datasource.name, SYSTEM_USER, content)
        return content

    def dmmf(self, datasource: Datasource) -> str:
        if self.texts.dmmf.exists(datasource.name):
            return self.texts.dmmf.read(datasource.name)
        stdin = self.prisma_schema(datasource).encode("utf-8")
        content = self.runner.run(ACTION_DMMF, datasource.name, ("--schema", "-"), stdin=stdin).decode("utf-8")
        self.texts.dmmf.write(datasource.name, SYSTEM_USER, content)
        return content

    def run_action(self, datasource: Datasource, action: str, *arguments: str, stdin: Optional[bytes] = None) -> str:
        """Run a migration or query action of the command against ``datasource``."""
        if not datasource.is_database:
            raise new_custom_error(STORE_DATASOURCE, None, ErrCode.DatasourceKindNotSupportedError, datasource.kind.value)
        if not datasource.enabled:
            raise new_custom_error(STORE_DATASOURCE, None, ErrCode.DatasourceDisabledError, datasource.name)
        url = datasource.database_url(self.workdir, self.env())
        return self.runner.run(action, datasource.name, ("--url", url, *arguments), stdin=stdin).decode("utf-8")

    def check_connection(self, datasource: Datasource) -> None:
        """
        Verify the datasource is reachable.

        Database kinds connect with SQLAlchemy, REST and GraphQL kinds send a GET.

        Raises:
            CustomError: DatasourceConnectionError, DatasourceKindNotSupportedError
        """
        if datasource.is_database:
            self._check_database(datasource)
            return
        if datasource.kind == DatasourceKind.GRAPHQL:
            graphql = datasource.custom_graphql
            if graphql is not None and graphql.schema_filepath:
                self._read_upload(datasource, UPLOAD_GRAPHQL, graphql.schema_filepath)
                return
            url = datasource.graphql_url(self.server_url())
            headers = header_values(graphql.headers if graphql else None, self.env())
        elif datasource.kind == DatasourceKind.REST:
            rest = datasource.custom_rest
            url = variable_string(rest.base_url if rest else None, self.env())
            headers = header_values(rest.headers if rest else None, self.env())
        else:
            raise new_custom_error(STORE_DATASOURCE, None, ErrCode.DatasourceKindNotSupportedError, datasource.kind.value)

        if not url:
            raise new_custom_error(STORE_DATASOURCE, None, ErrCode.DatasourceConnectionError, datasource.name)
        try:
            self._client().get(url, headers=headers)
        except httpx.HTTPError as e:
            raise new_custom_error(STORE_DATASOURCE, e, ErrCode.DatasourceConnectionError, datasource.name)

    def _check_database(self, datasource: Datasource) -> None:
        if datasource.kind not in SQLALCHEMY_SCHEMES:
            raise new_custom_error(STORE_DATASOURCE, None, ErrCode.DatasourceKindNotSupportedError, datasource.kind.value)
        url = datasource.sqlalchemy_url(self.workdir, self.env())
        engine = create_engine(url, pool_timeout=self.close_timeout)
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise new_custom_error(STORE_DATASOURCE, e, ErrCode.DatasourceConnectionError, datasource.name)
        finally:
            engine.dispose()

    def _read_upload(self, datasource: Datasource, directory: str, filename: str) -> str:
        path = self.upload_path(directory, filename)
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise new_custom_error(STORE_DATASOURCE, e, ErrCode.FileReadError, path.as_posix())


__all__ = [
    "ACTION_APPLY_MIGRATION",
    "ACTION_CREATE_MIGRATION",
    "ACTION_DIFF",
    "ACTION_MIGRATE",
    "ACTION_QUERY",
    "CommandRunner",
    "Introspector",
]
