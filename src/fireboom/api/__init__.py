"""
HTTP API - one router per model plus the engine, system, home and env routes.

Usage:
    for router in api_routers(context):
        app.include_router(router, prefix=context_path)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter

from .base import ModelRouter, build_model_router
from .datasource import datasource_extensions
from .engine import build_engine_router, build_env_router, build_home_router, build_system_router
from .operation import bind_roles, operation_extensions, role_delete_guard

if TYPE_CHECKING:
    from ..server.context import Context

__all__ = [
    "ModelRouter",
    "api_routers",
    "bind_roles",
    "build_model_router",
]


def api_routers(context: "Context") -> list[APIRouter]:
    models = context.models
    routers = []
    for model in models.all():
        if model is models.operation:
            routers.append(build_model_router(model, extensions=operation_extensions(models)))
        elif model is models.datasource:
            routers.append(build_model_router(model, extensions=datasource_extensions(models, context.introspector)))
        elif model is models.role:
            routers.append(build_model_router(model, before_delete=role_delete_guard(models)))
        else:
            routers.append(build_model_router(model))
    routers.extend(
        [
            build_engine_router(context),
            build_system_router(context),
            build_home_router(context),
            build_env_router(context),
        ]
    )
    return routers
