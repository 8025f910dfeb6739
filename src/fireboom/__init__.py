"""
Fireboom - API control plane for a GraphQL engine.

Keeps the project's datasources, operations, roles and settings as files,
compiles directive-annotated GraphQL operations into engine configuration
and supervises the engine through full and incremental rebuilds.

Usage:
    from fireboom import Context, create_app

    context = Context(".", {"dev-mode": True})
    context.init()
    context.boot()
    app = create_app(context)
"""

from __future__ import annotations

from .compiler import OperationCompiler, default_registry
from .configs import ConfigRegistry, Environment
from .core import CustomError, ErrCode, new_custom_error
from .core.consts import FB_VERSION
from .messaging import Channel, Event, EventBus
from .models import ModelSet
from .server import Context, create_app

__version__ = FB_VERSION

__all__ = [
    "Channel",
    "ConfigRegistry",
    "Context",
    "CustomError",
    "Environment",
    "ErrCode",
    "Event",
    "EventBus",
    "ModelSet",
    "OperationCompiler",
    "create_app",
    "default_registry",
    "new_custom_error",
    "__version__",
]
