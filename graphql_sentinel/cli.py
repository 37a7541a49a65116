"""CLI argument parsing and main entry point.

``graphql-sentinel server`` serves a GraphQL schema under Uvicorn with the
options read from a YAML config file.
"""

from __future__ import annotations

import argparse
import asyncio
import importlib
import logging
import os
import sys
from typing import Any, Optional

import uvicorn
from graphql import GraphQLSchema

from graphql_sentinel.config.loader import find_config_file, load_sentinel_config
from graphql_sentinel.constants import DEFAULT_HOST, DEFAULT_PORT, SERVER_NAME, SERVER_VERSION
from graphql_sentinel.display.logging_config import setup_logging
from graphql_sentinel.errors import ConfigurationError
from graphql_sentinel.server.app import create_app

module_logger = logging.getLogger(__name__)


def _load_schema(ref: str) -> GraphQLSchema:
    """Import a schema given as ``module:attribute``.

    The attribute may be a :class:`GraphQLSchema` or a zero-argument
    callable returning one.
    """
    module_name, sep, attr = ref.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"Schema reference must look like 'module:attribute', got {ref!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Cannot import schema module '{module_name}': {exc}") from exc
    try:
        target: Any = getattr(module, attr)
    except AttributeError as exc:
        raise ConfigurationError(f"Module '{module_name}' has no attribute '{attr}'") from exc

    if not isinstance(target, GraphQLSchema) and callable(target):
        target = target()
    if not isinstance(target, GraphQLSchema):
        raise ConfigurationError(f"'{ref}' is not a GraphQLSchema (got {type(target).__name__})")
    return target


# ── ``graphql-sentinel server`` ─────────────────────────────────────────


async def _run_server(
    host: Optional[str],
    port: Optional[int],
    log_lvl_cli: Optional[str],
    config_path: Optional[str] = None,
    schema_ref: Optional[str] = None,
) -> None:
    """Async main for the server subcommand."""
    if config_path is None:
        config_path = find_config_file()
    config = load_sentinel_config(os.path.abspath(config_path) if config_path else None)

    log_fpath, cfg_log_lvl = setup_logging(log_lvl_cli or config.logging.level)
    module_logger.info(
        "---- %s v%s starting (file log level: %s, log file: %s) ----",
        SERVER_NAME,
        SERVER_VERSION,
        cfg_log_lvl,
        log_fpath,
    )

    schema_ref = schema_ref or config.graphql.schema_ref
    if not schema_ref:
        raise ConfigurationError(
            "No GraphQL schema configured. Pass --schema module:attribute "
            "or set graphql.schema in the config file."
        )

    app = create_app(_load_schema(schema_ref), config)
    host = host or config.server.host
    port = port or config.server.port

    uvicorn_cfg = uvicorn.Config(
        app=app,
        host=host,
        port=port,
        log_config=None,
        log_level=cfg_log_lvl.lower() if cfg_log_lvl == "DEBUG" else "warning",
    )
    server = uvicorn.Server(uvicorn_cfg)

    module_logger.info("Preparing to start Uvicorn server: http://%s:%s", host, port)
    try:
        await server.serve()
    except Exception as e_serve:
        module_logger.exception("Unexpected error while running Uvicorn server: %s", e_serve)
        raise
    finally:
        module_logger.info("%s has shut down or is shutting down.", SERVER_NAME)


def _cmd_server(args: argparse.Namespace) -> None:
    """Run the server subcommand."""
    try:
        asyncio.run(
            _run_server(
                host=args.host,
                port=args.port,
                log_lvl_cli=args.log_level,
                config_path=args.config,
                schema_ref=args.schema,
            )
        )
    except ConfigurationError as e_cfg:
        print(f"Error: {e_cfg}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        module_logger.info("%s interrupted by KeyboardInterrupt.", SERVER_NAME)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser with its subcommands."""
    parser = argparse.ArgumentParser(
        prog="graphql-sentinel",
        description=f"{SERVER_NAME} v{SERVER_VERSION}",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {SERVER_VERSION}")

    subparsers = parser.add_subparsers(dest="command")

    # ── server ──────────────────────────────────────────────────
    sp_server = subparsers.add_parser(
        "server",
        help="Serve a GraphQL schema (Uvicorn + Starlette)",
    )
    sp_server.add_argument(
        "--host",
        type=str,
        default=None,
        help=f"Host address (default: config file, else {DEFAULT_HOST})",
    )
    sp_server.add_argument(
        "--port",
        type=int,
        default=None,
        help=f"Port (default: config file, else {DEFAULT_PORT})",
    )
    sp_server.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["debug", "info", "warning", "error", "critical"],
        help="Set logging level (default: config file, else info)",
    )
    sp_server.add_argument(
        "--config",
        type=str,
        default=None,
        metavar="PATH",
        help=(
            "Path to configuration file (YAML). "
            "Default: $GRAPHQL_SENTINEL_CONFIG, then config.yaml/config.yml"
        ),
    )
    sp_server.add_argument(
        "--schema",
        type=str,
        default=None,
        metavar="MODULE:ATTR",
        help="GraphQL schema to serve, overriding graphql.schema in the config file",
    )
    sp_server.set_defaults(func=_cmd_server)

    return parser


def main(argv: Optional[list] = None) -> None:
    """Program entry point: parse arguments and dispatch to subcommand."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)
    else:
        args.func(args)
