#!/usr/bin/env python3
"""
Fireboom CLI - Main entry point.

Usage:
    fireboom dev                       # Build, start the engine and watch the store
    fireboom start                     # Start from the generated configuration
    fireboom build                     # Build the engine configuration and exit
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

import uvicorn

from ..configs.registry import (
    KEY_BUILD_ONLY,
    KEY_DEV_MODE,
    KEY_WATCH,
    KEY_WEB_PORT,
    flags_from_args,
)
from ..core.consts import FB_VERSION
from ..server import Context, create_app

logger = logging.getLogger(__name__)

DEFAULT_WEB_PORT = 9123


def _context(args: argparse.Namespace, **overrides) -> Context:
    flags = flags_from_args(args)
    flags.pop("command", None)
    flags.pop("workdir", None)
    flags.update(overrides)
    return Context(args.workdir, flags)


def _serve(context: Context) -> int:
    if not context.init():
        print("Error: initialization failed, see the log above.")
        return 1
    context.boot()
    app = create_app(context)
    port = context.registry.get_int(KEY_WEB_PORT, DEFAULT_WEB_PORT)
    logger.info(f"Fireboom {FB_VERSION} listening on :{port}")
    uvicorn.run(app, host="0.0.0.0", port=port, log_config=None)
    return 0


def cmd_dev(args: argparse.Namespace) -> int:
    """Run in development mode: always rebuild and watch the store."""
    return _serve(_context(args, **{KEY_DEV_MODE: True, KEY_WATCH: True}))


def cmd_start(args: argparse.Namespace) -> int:
    """Run in production mode."""
    return _serve(_context(args))


def cmd_build(args: argparse.Namespace) -> int:
    """Build the engine configuration once and exit."""
    context = _context(args, **{KEY_BUILD_ONLY: True})
    try:
        if not context.init():
            return 1
        if not context.build():
            return 1
    finally:
        context.close()
    print("Build completed!")
    return 0


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--workdir", default=".", help="Project working directory")
    parser.add_argument("--active", default="", help="Active environment, loads .env.<active>")
    parser.add_argument(
        "--ignore-merge-environment",
        action="store_true",
        help="Use only the active environment file",
    )
    parser.add_argument("--enable-logic-delete", action="store_true", help="Mark deleted items instead of removing")


def _add_server(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--web-port", type=int, default=DEFAULT_WEB_PORT, help="Control plane port")
    parser.add_argument("--enable-auth", action="store_true", help="Require the authentication key")
    parser.add_argument("--regenerate-key", action="store_true", help="Regenerate the authentication key")
    parser.add_argument("--enable-rebuild", action="store_true", help="Rebuild before starting")
    parser.add_argument("--enable-swagger", action="store_true", help="Serve the generated swagger")
    parser.add_argument("--enable-web-console", action="store_true", help="Serve the web console")
    parser.add_argument("--enable-debug-pprof", action="store_true", help="Expose profiling endpoints")
    parser.add_argument("--enable-hook-report", action="store_true", help="Check the hook server health")


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="fireboom",
        description="Fireboom - API control plane for the GraphQL engine",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {FB_VERSION}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # dev
    dev_parser = subparsers.add_parser("dev", help="Run in development mode")
    _add_common(dev_parser)
    _add_server(dev_parser)

    # start
    start_parser = subparsers.add_parser("start", help="Run in production mode")
    _add_common(start_parser)
    _add_server(start_parser)

    # build
    build_parser = subparsers.add_parser("build", help="Build the engine configuration")
    _add_common(build_parser)

    return parser


def app(args: Optional[List[str]] = None) -> int:
    """Main CLI application."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 0

    commands = {
        "dev": cmd_dev,
        "start": cmd_start,
        "build": cmd_build,
    }

    handler = commands.get(parsed.command)
    if handler:
        return handler(parsed)

    parser.print_help()
    return 1


def main() -> None:
    """Entry point for CLI."""
    sys.exit(app())


if __name__ == "__main__":
    main()
