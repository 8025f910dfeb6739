"""
Generic model router.

Every stored model gets the same REST surface under ``/<model>``:

- GET    /                        - list items (single models: the item)
- POST   /                        - insert
- PUT    /                        - incremental update (``watchAction`` marks watcher replays)
- DELETE /{dataName}              - delete
- POST   /batch, PUT /batch       - batch insert (``overwrite``) and update
- DELETE /batch?dataNames=a,b     - batch delete
- GET    /tree                    - directory tree of the data files
- POST   /copy, /rename           - copy or rename one item
- POST   /copyParent, /renameParent - same for every item under a directory
- DELETE /deleteParent/{dataName} - delete a directory of items
- POST   /import, GET /export     - zip archive of items and their texts
- GET    /withLockUser/{dataName} - item plus the user holding its edit lock
- GET    /{dataName}              - one item

Model specific routes are registered before the generic ones so fixed paths
win over the ``{dataName:path}`` catch-all.

Usage:
    router = build_model_router(models.role, before_delete=check_role_unbound)
    app.include_router(router)
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Body, Query, Request
from fastapi.responses import Response

from ..core.consts import HEADER_USER, QUERY_DATA_NAMES, QUERY_OVERWRITE, QUERY_WATCH_ACTION
from ..core.errcode import ErrCode, new_custom_error
from ..core.utils import split_comma
from ..store import DataMutation, Model, export_archive, import_archive

logger = logging.getLogger(__name__)

RouteExtension = Callable[[APIRouter], None]
DeleteGuard = Callable[[list[str]], None]


def request_user(request: Request) -> str:
    return request.headers.get(HEADER_USER, "")


async def read_body_text(request: Request, mode: str) -> str:
    """Raw request body as text; an empty body is a BodyParamEmptyError."""
    body = await request.body()
    if not body:
        raise new_custom_error(mode, None, ErrCode.BodyParamEmptyError)
    return body.decode("utf-8")


def require_query(mode: str, name: str, value: Optional[str]) -> str:
    if not value:
        raise new_custom_error(mode, None, ErrCode.QueryParamEmptyError, name)
    return value


class ModelRouter:
    """
    Factory for the REST router of one model.

    Args:
        model: Stored model
        before_delete: Called with the data names about to be deleted; raises to refuse
        extensions: Register model specific routes ahead of the generic ones
    """

    def __init__(
        self,
        model: Model,
        before_delete: Optional[DeleteGuard] = None,
        extensions: tuple[RouteExtension, ...] = (),
    ):
        self.model = model
        self.before_delete = before_delete
        self.extensions = extensions

    def create_router(self) -> APIRouter:
        router = APIRouter(prefix=f"/{self.model.name}", tags=[self.model.name])
        for extend in self.extensions:
            extend(router)
        if self.model.is_multiple:
            self._multiple_routes(router)
        else:
            self._single_routes(router)
        return router

    def _guard_delete(self, data_names: list[str]) -> None:
        if self.before_delete is not None:
            self.before_delete(data_names)

    def _single_routes(self, router: APIRouter) -> None:
        model = self.model

        @router.get("")
        def get_single() -> Optional[Dict[str, Any]]:
            item = model.first()
            return model.dump(item) if item is not None else None

        @router.put("")
        def update_single(
            request: Request,
            payload: Dict[str, Any] = Body(...),
            watch_action: Optional[str] = Query(None, alias=QUERY_WATCH_ACTION),
        ) -> Dict[str, Any]:
            actions = [watch_action] if watch_action else []
            return model.dump(model.update(payload, request_user(request), actions))

    def _multiple_routes(self, router: APIRouter) -> None:
        model = self.model

        @router.get("")
        def list_items() -> list[Dict[str, Any]]:
            return [model.dump(item) for item in model.list()]

        @router.post("")
        def insert(request: Request, payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
            return model.dump(model.insert(payload, request_user(request)))

        @router.put("")
        def update(
            request: Request,
            payload: Dict[str, Any] = Body(...),
            watch_action: Optional[str] = Query(None, alias=QUERY_WATCH_ACTION),
        ) -> Dict[str, Any]:
            actions = [watch_action] if watch_action else []
            return model.dump(model.update(payload, request_user(request), actions))

        @router.post("/batch")
        def insert_batch(
            request: Request,
            payloads: list[Dict[str, Any]] = Body(...),
            overwrite: bool = Query(False, alias=QUERY_OVERWRITE),
        ) -> list[Dict[str, Any]]:
            if not payloads:
                raise new_custom_error(model.name, None, ErrCode.DataEmptyListError)
            return model.insert_batch(payloads, request_user(request), overwrite=overwrite)

        @router.put("/batch")
        def update_batch(request: Request, payloads: list[Dict[str, Any]] = Body(...)) -> list[Dict[str, Any]]:
            if not payloads:
                raise new_custom_error(model.name, None, ErrCode.DataEmptyListError)
            return [model.dump(item) for item in model.update_batch(payloads, request_user(request))]

        @router.delete("/batch")
        def delete_batch(request: Request, data_names: Optional[str] = Query(None, alias=QUERY_DATA_NAMES)) -> list[str]:
            names = split_comma(require_query(model.name, QUERY_DATA_NAMES, data_names))
            self._guard_delete(names)
            model.delete_batch(names, request_user(request))
            return names

        @router.get("/tree")
        def tree() -> list[Dict[str, Any]]:
            return [node.to_dict() for node in model.get_trees()]

        @router.post("/copy")
        def copy(request: Request, mutation: DataMutation) -> Dict[str, Any]:
            mutation.user = request_user(request)
            return model.dump(model.copy(mutation))

        @router.post("/rename")
        def rename(request: Request, mutation: DataMutation) -> Dict[str, Any]:
            mutation.user = request_user(request)
            return model.dump(model.rename(mutation))

        @router.post("/copyParent")
        def copy_parent(request: Request, mutation: DataMutation) -> list[str]:
            mutation.user = request_user(request)
            return model.copy_by_parent(mutation)

        @router.post("/renameParent")
        def rename_parent(request: Request, mutation: DataMutation) -> list[str]:
            mutation.user = request_user(request)
            return model.rename_by_parent(mutation)

        @router.delete("/deleteParent/{data_name:path}")
        def delete_parent(request: Request, data_name: str) -> list[str]:
            prefix = data_name.rstrip("/") + "/"
            self._guard_delete([name for name in model.data_names() if name.startswith(prefix)])
            return model.delete_by_parent(data_name, request_user(request))

        @router.post("/import")
        async def import_items(request: Request) -> Dict[str, list[str]]:
            content = await request.body()
            if not content:
                raise new_custom_error(model.name, None, ErrCode.BodyParamEmptyError)
            return import_archive(model, content, request_user(request))

        @router.get("/export")
        def export_items(data_names: Optional[str] = Query(None, alias=QUERY_DATA_NAMES)) -> Response:
            content = export_archive(model, split_comma(data_names))
            headers = {"Content-Disposition": f'attachment; filename="{model.name}.zip"'}
            return Response(content, media_type="application/zip", headers=headers)

        @router.get("/withLockUser/{data_name:path}")
        def with_lock_user(data_name: str) -> Dict[str, Any]:
            return model.get_with_lock_user(data_name)

        @router.get("/{data_name:path}")
        def get_item(data_name: str) -> Dict[str, Any]:
            return model.dump(model.get(data_name))

        @router.delete("/{data_name:path}")
        def delete(request: Request, data_name: str) -> None:
            self._guard_delete([data_name])
            model.delete(data_name, request_user(request))


def build_model_router(
    model: Model,
    before_delete: Optional[DeleteGuard] = None,
    extensions: tuple[RouteExtension, ...] = (),
) -> APIRouter:
    return ModelRouter(model, before_delete, extensions).create_router()
