"""
Server module - runtime context and the FastAPI app.

Usage:
    from fireboom.server import Context, create_app

    context = Context(workdir, flags)
    context.init()
    context.boot()
    app = create_app(context)
"""

from __future__ import annotations

from .app import create_app
from .context import Context, run_in_thread

__all__ = ["Context", "create_app", "run_in_thread"]
