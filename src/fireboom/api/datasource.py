"""Datasource routes: connection checks, introspection results and database commands."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse

from ..build import Introspector
from ..build.introspect import (
    ACTION_APPLY_MIGRATION,
    ACTION_CREATE_MIGRATION,
    ACTION_DIFF,
    ACTION_MIGRATE,
    ACTION_QUERY,
)
from ..core.consts import STORE_DATASOURCE, UPLOAD_PRISMA
from ..core.errcode import ErrCode, new_custom_error
from ..core.utils import write_file
from ..models import DatasourceKind, ModelSet
from ..models.common import variable_string
from .base import RouteExtension, read_body_text, request_user

logger = logging.getLogger(__name__)

COMMAND_ACTIONS = {
    "migrate": ACTION_MIGRATE,
    "createMigration": ACTION_CREATE_MIGRATION,
    "applyMigration": ACTION_APPLY_MIGRATION,
    "diff": ACTION_DIFF,
}


def datasource_extensions(models: ModelSet, introspector: Introspector) -> tuple[RouteExtension, ...]:
    model = models.datasource

    def routes(router: APIRouter) -> None:
        @router.post("/checkConnection")
        def check_connection(payload: Dict[str, Any] = Body(...)) -> bool:
            introspector.check_connection(model.parse(payload))
            return True

        @router.get("/graphql/{name}", response_class=PlainTextResponse)
        def graphql_schema(name: str) -> str:
            return introspector.graphql_schema(model.get(name))

        @router.get("/dmmf/{name}", response_class=PlainTextResponse)
        def dmmf(name: str) -> str:
            return introspector.dmmf(model.get(name))

        @router.get("/prisma/{name}", response_class=PlainTextResponse)
        def get_prisma(name: str) -> str:
            return introspector.prisma_schema(model.get(name))

        @router.post("/prisma/{name}")
        async def save_prisma(request: Request, name: str) -> None:
            content = await read_body_text(request, STORE_DATASOURCE)
            datasource = model.get(name)
            if datasource.kind != DatasourceKind.PRISMA:
                models.datasource_texts.prisma.write(name, request_user(request), content)
                return
            filename = variable_string(
                datasource.custom_database.database_url if datasource.custom_database else None, introspector.env()
            )
            if not filename:
                raise new_custom_error(STORE_DATASOURCE, None, ErrCode.DatasourceDatabaseUrlEmptyError, name)
            write_file(introspector.upload_path(UPLOAD_PRISMA, filename), content)
            model.notify_text_updated(name, request_user(request))

        @router.post("/graphqlQuery/{name}", response_class=PlainTextResponse)
        async def graphql_query(request: Request, name: str) -> str:
            query = await read_body_text(request, STORE_DATASOURCE)
            return await run_in_threadpool(
                introspector.run_action, model.get(name), ACTION_QUERY, stdin=query.encode("utf-8")
            )

        for route, action in COMMAND_ACTIONS.items():
            register_command(router, route, action)

    def register_command(router: APIRouter, route: str, action: str) -> None:
        @router.post(f"/{route}/{{name}}", name=route, response_class=PlainTextResponse)
        async def run_command(request: Request, name: str) -> str:
            body = await request.body()
            output = await run_in_threadpool(introspector.run_action, model.get(name), action, stdin=body or None)
            logger.info(f"Datasource {name} {route} finished", extra={"introspection": name})
            return output

    return (routes,)
