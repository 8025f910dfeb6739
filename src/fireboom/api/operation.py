"""
Operation routes beyond the generic model surface.

- GET|POST /operation/graphql/{path}        - GraphQL document
- GET      /operation/graphqlHistory/{path} - saved versions (``version`` reads one)
- POST     /operation/graphqlHistory/{path} - save the current document as a version
- PUT      /operation/graphqlHistory/{path} - restore ``version``
- GET|POST /operation/function/{path}       - function descriptor
- GET|POST /operation/proxy/{path}          - proxy descriptor
- GET      /operation/hookOptions/{path}    - hook source files and their state
- POST     /operation/bindRoles             - rewrite ``@rbac`` of many operations
- GET      /operation/listPublic            - callable operations
- GET      /operation/listByRole            - operations requiring or denying a role
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import PlainTextResponse
from graphql import ArgumentNode, EnumValueNode, ListValueNode, NameNode
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..compiler import DocumentError, replace_operation_directive
from ..compiler.directives.operation import RBAC_TYPES
from ..core.consts import EXT_GRAPHQL, STORE_OPERATION, STORE_ROLE
from ..core.errcode import CustomError, ErrCode, new_custom_error
from ..core.utils import now_time
from ..models import ModelSet, Operation
from ..store import ModelText
from ..store.text import read_optional
from .base import DeleteGuard, RouteExtension, read_body_text, request_user, require_query

logger = logging.getLogger(__name__)

RBAC_DIRECTIVE = "rbac"
HISTORY_VERSION_FORMAT = "%Y%m%d%H%M%S%f"


class BindRolesRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    rbac_type: str
    role_codes: list[str] = Field(default_factory=list)
    operation_paths: list[str] = Field(default_factory=list)


def role_config(item: Operation) -> Dict[str, list[str]]:
    """``{rbacType: [codes]}`` compiled for ``item``."""
    config = (item.authorization_config or {}).get("roleConfig") or {}
    return {rbac_type: list(config.get(rbac_type) or []) for rbac_type in RBAC_TYPES}


def bound_operations(models: ModelSet, role_code: str, rbac_type: str = "") -> list[Operation]:
    def bound(item: Operation) -> bool:
        config = role_config(item)
        if rbac_type:
            return role_code in config.get(rbac_type, [])
        return any(role_code in codes for codes in config.values())

    return models.operation.list(bound)


def role_delete_guard(models: ModelSet) -> DeleteGuard:
    """Refuse to delete roles still referenced by an ``@rbac`` directive."""
    def guard(codes: list[str]) -> None:
        for code in codes:
            paths = [item.path for item in bound_operations(models, code)]
            if paths:
                raise new_custom_error(STORE_ROLE, None, ErrCode.OperationRoleHasBindError, code, ",".join(paths))
    return guard


def rbac_arguments(rbac_type: str, role_codes: list[str]) -> Optional[tuple[ArgumentNode, ...]]:
    if not role_codes:
        return None
    values = tuple(EnumValueNode(value=code) for code in role_codes)
    return (ArgumentNode(name=NameNode(value=rbac_type), value=ListValueNode(values=values)),)


def bind_roles(models: ModelSet, request: BindRolesRequest, user: str) -> list[str]:
    """
    Rewrite the ``@rbac`` directive of every listed operation.

    Returns:
        Paths whose document was rewritten
    """
    if request.rbac_type not in RBAC_TYPES:
        raise new_custom_error(STORE_OPERATION, None, ErrCode.OperationRbacTypeError, request.rbac_type)

    text = models.operation_texts.graphql
    arguments = rbac_arguments(request.rbac_type, request.role_codes)
    succeeded = []
    for path in request.operation_paths:
        content = read_optional(text, path)
        if content is None:
            logger.warning(f"Bind roles skipped {path}: no document", extra={STORE_OPERATION: path})
            continue
        try:
            rewritten = replace_operation_directive(content, RBAC_DIRECTIVE, arguments)
            text.write(path, user, rewritten)
        except (DocumentError, CustomError) as e:
            logger.warning(f"Bind roles failed for {path}: {e}", extra={STORE_OPERATION: path, "error": str(e)})
            continue
        succeeded.append(path)
    return succeeded


def history_versions(text: ModelText, path: str) -> list[str]:
    directory = text.path(path)
    if not directory.is_dir():
        return []
    return sorted((p.stem for p in directory.glob(f"*{EXT_GRAPHQL}")), reverse=True)


def operation_extensions(models: ModelSet) -> tuple[RouteExtension, ...]:
    texts = models.operation_texts

    def graphql_routes(router: APIRouter) -> None:
        @router.get("/graphql/{path:path}", response_class=PlainTextResponse)
        def get_graphql(path: str) -> str:
            models.operation.get(path)
            return read_optional(texts.graphql, path) or ""

        @router.post("/graphql/{path:path}")
        async def save_graphql(request: Request, path: str) -> None:
            content = await read_body_text(request, STORE_OPERATION)
            models.operation.get(path)
            texts.graphql.write(path, request_user(request), content)

        @router.get("/graphqlHistory/{path:path}")
        def get_history(path: str, version: Optional[str] = None) -> Any:
            if not version:
                return history_versions(texts.graphql_history, path)
            return PlainTextResponse(texts.graphql_history.read(path, version))

        @router.post("/graphqlHistory/{path:path}")
        def backup_history(request: Request, path: str) -> str:
            content = texts.graphql.read(path)
            version = now_time().strftime(HISTORY_VERSION_FORMAT)
            texts.graphql_history.write(path, request_user(request), content, version)
            return version

        @router.put("/graphqlHistory/{path:path}")
        def rollback_history(request: Request, path: str, version: Optional[str] = None) -> None:
            version = require_query(STORE_OPERATION, "version", version)
            content = texts.graphql_history.read(path, version)
            texts.graphql.write(path, request_user(request), content)

    def descriptor_routes(router: APIRouter) -> None:
        for route, text in (("function", texts.function), ("proxy", texts.proxy)):
            register_descriptor(router, route, text)

    def register_descriptor(router: APIRouter, route: str, text: ModelText) -> None:
        @router.get(f"/{route}/{{path:path}}", name=f"get_{route}")
        def get_descriptor(path: str) -> Any:
            content = read_optional(text, path)
            if content is None:
                raise new_custom_error(STORE_OPERATION, None, ErrCode.FileReadError, text.relative_path(path))
            try:
                return json.loads(content)
            except ValueError as e:
                raise new_custom_error(STORE_OPERATION, e, ErrCode.LoaderFileUnmarshalError, text.relative_path(path))

        @router.post(f"/{route}/{{path:path}}", name=f"save_{route}")
        async def save_descriptor(request: Request, path: str) -> None:
            content = await read_body_text(request, STORE_OPERATION)
            try:
                json.loads(content)
            except ValueError as e:
                raise new_custom_error(STORE_OPERATION, e, ErrCode.ParamBindError)
            text.write(path, request_user(request), content)

    def role_routes(router: APIRouter) -> None:
        @router.get("/hookOptions/{path:path}")
        def hook_options(path: str) -> Dict[str, Dict[str, Any]]:
            models.operation.get(path)
            return texts.hook_options(path)

        @router.post("/bindRoles")
        def post_bind_roles(request: Request, body: BindRolesRequest) -> list[str]:
            return bind_roles(models, body, request_user(request))

        @router.get("/listPublic")
        def list_public() -> list[Dict[str, Any]]:
            items = models.operation.list(lambda item: item.enabled and not item.internal and not item.invalid)
            return [public_operation(item) for item in items]

        @router.get("/listByRole")
        def list_by_role(
            role_code: Optional[str] = Query(None, alias="roleCode"),
            rbac_type: str = Query("", alias="rbacType"),
        ) -> list[Dict[str, Any]]:
            code = require_query(STORE_OPERATION, "roleCode", role_code)
            if rbac_type and rbac_type not in RBAC_TYPES:
                raise new_custom_error(STORE_OPERATION, None, ErrCode.OperationRbacTypeError, rbac_type)
            return [public_operation(item) for item in bound_operations(models, code, rbac_type)]

    return graphql_routes, descriptor_routes, role_routes


def public_operation(item: Operation) -> Dict[str, Any]:
    return {
        "path": item.path,
        "title": item.title,
        "engine": item.engine.value,
        "operationType": item.operation_type.value if item.operation_type else "",
        "method": item.method,
        "roleConfig": role_config(item),
    }
