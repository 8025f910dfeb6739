"""
Engine, system, home and environment routes.

- POST /engine/restart      - full build and restart in the background
- GET  /engine/swagger      - generated OpenAPI document
- GET  /system/proxy?url=   - relay a GET request
- GET  /system/directories  - files of the upload directories
- GET  /home                - item counts and engine state
- GET  /home/bulletin       - current questions
- GET|PUT /env              - merged environment values
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

import httpx
from fastapi import APIRouter, Body, Query, Request
from fastapi.responses import Response

from ..core.consts import (
    GENERATED_SWAGGER,
    QUERY_URL,
    ROOT_UPLOAD,
    UPLOAD_DIRECTORIES,
)
from ..core.errcode import ErrCode, new_custom_error
from .base import require_query

if TYPE_CHECKING:
    from ..server.context import Context

logger = logging.getLogger(__name__)

PROXY_TIMEOUT = 30.0


def build_engine_router(context: "Context") -> APIRouter:
    router = APIRouter(prefix="/engine", tags=["engine"])

    @router.post("/restart")
    def restart() -> Dict[str, bool]:
        busy = context.supervisor.busy
        if not busy:
            context.runner(context.restart)
        return {"busy": busy}

    @router.get("/swagger")
    def swagger() -> Any:
        path = context.builder.generated_path(GENERATED_SWAGGER)
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise new_custom_error("engine", e, ErrCode.FileReadError, path.as_posix())

    return router


def build_system_router(context: "Context", client: Optional[httpx.AsyncClient] = None) -> APIRouter:
    router = APIRouter(prefix="/system", tags=["system"])

    @router.get("/proxy")
    async def proxy(request: Request, url: Optional[str] = Query(None, alias=QUERY_URL)) -> Response:
        target = require_query("system", QUERY_URL, url)
        headers = {k: v for k, v in request.headers.items() if k.lower() in ("accept", "authorization")}
        try:
            if client is not None:
                response = await client.get(target, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=PROXY_TIMEOUT, follow_redirects=True) as session:
                    response = await session.get(target, headers=headers)
        except httpx.HTTPError as e:
            raise new_custom_error("system", e, ErrCode.RequestProxyError, target)
        return Response(
            response.content,
            status_code=response.status_code,
            media_type=response.headers.get("content-type"),
        )

    @router.get("/directories")
    def directories() -> Dict[str, list[str]]:
        root = context.workdir / ROOT_UPLOAD
        result = {}
        for name in UPLOAD_DIRECTORIES:
            directory = root / name
            if not directory.is_dir():
                result[name] = []
                continue
            result[name] = sorted(
                p.relative_to(directory).as_posix()
                for p in directory.rglob("*")
                if p.is_file() and not p.name.startswith(".")
            )
        return result

    return router


def build_home_router(context: "Context") -> APIRouter:
    router = APIRouter(prefix="/home", tags=["home"])

    @router.get("")
    def home() -> Dict[str, Any]:
        models = context.models
        operations = models.operation.list()
        return {
            "counts": {model.name: len(model.list()) for model in models.multiple()},
            "operation": {
                "total": len(operations),
                "enabled": sum(1 for item in operations if item.enabled),
                "invalid": sum(1 for item in operations if item.invalid),
            },
            "engine": context.notifier.engine.snapshot(),
        }

    @router.get("/bulletin")
    def bulletin() -> list[Dict[str, Any]]:
        return context.notifier.questions.questions()

    return router


def build_env_router(context: "Context") -> APIRouter:
    router = APIRouter(prefix="/env", tags=["env"])

    @router.get("")
    def get_env() -> Dict[str, str]:
        return context.environment.values()

    @router.put("")
    def update_env(changes: Dict[str, Optional[str]] = Body(...)) -> Dict[str, str]:
        modifies = context.environment.update(changes)
        if modifies:
            context.runner(context.restart)
        return modifies

    return router
