"""Command-line entry point: pick a transport and serve the Qase tools."""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence

import structlog
from pydantic import ValidationError

from qase_mcp.api import app as http_app
from qase_mcp.api import deps
from qase_mcp.core.config import ServerSettings
from qase_mcp.core.logging import setup_logging
from qase_mcp.mcp.dispatcher import ToolDispatcher
from qase_mcp.mcp.server import SERVER_NAME, SERVER_VERSION, MCPServer
from qase_mcp.mcp.stdio import run_stdio
from qase_mcp.operations.catalog import build_registry

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=SERVER_NAME, description="Qase MCP server")
    parser.add_argument(
        "--transport",
        choices=("stdio", "sse", "http"),
        help="Transport to serve (default: QASE_MCP_TRANSPORT or stdio)",
    )
    parser.add_argument("--host", help="Bind address for sse/http transports")
    parser.add_argument("--port", type=int, help="Listen port for sse/http transports")
    parser.add_argument("--version", action="version", version=f"%(prog)s {SERVER_VERSION}")
    return parser


def load_settings(args: argparse.Namespace) -> ServerSettings:
    overrides = {
        key: value
        for key, value in {
            "transport": args.transport,
            "host": args.host,
            "port": args.port,
        }.items()
        if value is not None
    }
    return ServerSettings(**overrides)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(args)
    except ValidationError as exc:
        print(f"Invalid server configuration:\n{exc}", file=sys.stderr)
        return 1

    setup_logging(json_output=settings.log_json, log_level=settings.log_level)
    try:
        registry = build_registry()
        logger.info(
            "server_starting",
            transport=settings.transport,
            version=SERVER_VERSION,
            tools=registry.count(),
        )
        if settings.transport == "stdio":
            asyncio.run(run_stdio(MCPServer(ToolDispatcher(registry))))
        else:
            deps.configure(settings, registry)
            http_app.run(settings)
    except KeyboardInterrupt:
        return 0
    except Exception:  # noqa: BLE001
        logger.exception("server_failed_to_start")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
