"""
FastAPI app factory for the control plane.

Creates the application with:
- CORS middleware
- Authentication middleware (``--enable-auth``)
- Break middleware closing the bus burst after every write request
- CustomError envelope handlers
- Health check, notifier websocket and every API router
- Development file watcher started with the app
"""

from __future__ import annotations

import logging
import secrets
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, WebSocket, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..api import api_routers
from ..configs.registry import KEY_WATCH
from ..core.consts import FB_VERSION, HEADER_AUTHENTICATION, HEADER_LOCALE, QUERY_AUTH_KEY
from ..core.errcode import CustomError, ErrCode, new_custom_error
from ..watcher import StoreWatcher
from .context import Context

logger = logging.getLogger(__name__)

PUBLIC_PATHS = ("/health",)
READ_METHODS = ("GET", "HEAD", "OPTIONS")


def error_response(error: CustomError, request: Request) -> JSONResponse:
    locale = request.headers.get(HEADER_LOCALE)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error.to_dict(locale))


def authorized(context: Context, key: Optional[str]) -> bool:
    if not context.auth_enabled:
        return True
    return bool(key) and bool(context.auth_key) and secrets.compare_digest(key, context.auth_key)


def create_app(context: Context, context_path: str = "") -> FastAPI:
    """
    Create the FastAPI app serving ``context``.

    Args:
        context: Initialized runtime context
        context_path: Prefix of every API route

    Returns:
        Configured FastAPI application
    """
    watcher: Optional[StoreWatcher] = None
    if context.registry.get_bool(KEY_WATCH):
        watcher = StoreWatcher(context.models, on_upload=lambda: context.runner(context.restart))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if watcher is not None:
            await watcher.start()

        yield

        if watcher is not None:
            await watcher.stop()
        context.close()

    app = FastAPI(title="Fireboom", version=FB_VERSION, lifespan=lifespan)
    app.state.context = context

    @app.middleware("http")
    async def close_break(request: Request, call_next):
        response = await call_next(request)
        if request.method not in READ_METHODS:
            context.bus.ensure_break()
        return response

    @app.middleware("http")
    async def authenticate(request: Request, call_next):
        if request.method == "OPTIONS" or request.url.path in PUBLIC_PATHS:
            return await call_next(request)
        key = request.headers.get(HEADER_AUTHENTICATION) or request.query_params.get(QUERY_AUTH_KEY)
        if not authorized(context, key):
            return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"message": "unauthorized"})
        return await call_next(request)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CustomError)
    async def custom_error_handler(request: Request, exc: CustomError):
        logger.debug(f"Request {request.method} {request.url.path} failed: {exc}")
        return error_response(exc, request)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        mode = request.url.path.strip("/").split("/", 1)[0]
        error = new_custom_error(mode, ValueError(str(exc.errors()[:1])), ErrCode.ParamBindError)
        return error_response(error, request)

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "engine": context.notifier.engine.snapshot()}

    @app.websocket(f"{context_path}/ws")
    async def notifier_ws(websocket: WebSocket):
        key = websocket.headers.get(HEADER_AUTHENTICATION) or websocket.query_params.get(QUERY_AUTH_KEY)
        if not authorized(context, key):
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        await context.notifier.manager.serve(websocket)

    for router in api_routers(context):
        app.include_router(router, prefix=context_path)

    return app
