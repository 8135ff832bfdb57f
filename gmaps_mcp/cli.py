"""
Google Maps MCP CLI.

Usage:
    gmaps-mcp [serve] [options]
    gmaps-mcp tools
    python -m gmaps_mcp --help

Commands:
    serve    Run the MCP server on stdio (default). Frames go to stdout,
             diagnostics to stderr (and optionally a log file).
    tools    Print the advertised tool definitions as JSON and exit.

Configuration comes from environment variables (GOOGLE_MAPS_API_KEY,
CACHE_ENABLED, RATE_LIMIT_CAPACITY, ...); flags override them.
"""

from __future__ import annotations

import sys
import json
import asyncio
import logging
import argparse
from typing import List, Optional

from gmaps_mcp.version import __version__
from gmaps_mcp.core.config import ServerConfig
from gmaps_mcp.core.retry import RetryPolicy
from gmaps_mcp.mcp.server import McpServer
from gmaps_mcp.sdk.client import GoogleMapsClient
from gmaps_mcp.sdk.errors import ConfigurationError
from gmaps_mcp.tools.registry import build_tools

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("GMapsMCP")


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Send diagnostics to stderr; stdout is reserved for protocol frames."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def apply_overrides(config: ServerConfig, args: argparse.Namespace) -> ServerConfig:
    if getattr(args, "api_key", None):
        config.google_maps_api_key = args.api_key
    if getattr(args, "no_cache", False):
        config.cache.enabled = False
    if getattr(args, "cache_ttl_ms", None):
        config.cache.ttl_ms = args.cache_ttl_ms
    if getattr(args, "rate_limit_capacity", None):
        config.rate_limit.capacity = args.rate_limit_capacity
    if getattr(args, "rate_limit_refill_rate", None):
        config.rate_limit.refill_rate = args.rate_limit_refill_rate
    if getattr(args, "timeout_ms", None):
        config.request_timeout_ms = args.timeout_ms
    if getattr(args, "ip_override", False):
        config.ip_override_enabled = True
    if getattr(args, "log_level", None):
        config.logging.level = args.log_level.upper()
    if getattr(args, "log_file", None):
        config.logging.file = args.log_file
    return config


def build_client(config: ServerConfig, server: McpServer) -> GoogleMapsClient:
    return GoogleMapsClient(
        config.google_maps_api_key,
        cache=server.cache,
        timeout=config.request_timeout_seconds,
        retry_policy=RetryPolicy(
            max_attempts=config.retry.max_attempts,
            base_delay_ms=config.retry.base_delay_ms,
            max_delay_ms=config.retry.max_delay_ms,
            jitter=config.retry.jitter,
        ),
    )


async def serve(config: ServerConfig) -> None:
    server = McpServer(config)
    async with build_client(config, server) as client:
        for tool in build_tools(client, config):
            server.register_tool(tool)
        await server.start()


def cmd_serve(config: ServerConfig) -> int:
    try:
        asyncio.run(serve(config))
    except ConfigurationError as exc:
        print(f"Configuration Error: {exc.message}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down")
    return 0


async def list_tool_definitions(config: ServerConfig) -> List[dict]:
    async with GoogleMapsClient(config.google_maps_api_key or "unset") as client:
        return [tool.describe() for tool in build_tools(client, config)]


def cmd_tools(config: ServerConfig) -> int:
    tools = asyncio.run(list_tool_definitions(config))
    json.dump({"tools": tools}, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gmaps-mcp",
        description="Google Maps Platform tools over the Model Context Protocol (stdio).",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Examples:\n"
               "  GOOGLE_MAPS_API_KEY=... gmaps-mcp\n"
               "  gmaps-mcp serve --log-level DEBUG --log-file gmaps-mcp.log\n"
               "  gmaps-mcp tools\n",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "command",
        nargs="?",
        choices=("serve", "tools"),
        default="serve",
        help="serve (default) or tools",
    )
    parser.add_argument(
        "--api-key",
        default=None,
        metavar="KEY",
        help="Google Maps API key (default: GOOGLE_MAPS_API_KEY).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        type=str.upper,
        help="Diagnostic log level (default: GMAPS_MCP_LOG_LEVEL or INFO).",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        metavar="PATH",
        help="Also append diagnostics to this file (default: GMAPS_MCP_LOG_FILE).",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        default=False,
        help="Disable the upstream response cache.",
    )
    parser.add_argument("--cache-ttl-ms", type=int, default=None, help="Cache entry TTL in ms.")
    parser.add_argument(
        "--rate-limit-capacity",
        type=int,
        default=None,
        help="Token bucket capacity per tool.",
    )
    parser.add_argument(
        "--rate-limit-refill-rate",
        type=float,
        default=None,
        help="Token bucket refill rate per tool (tokens/second).",
    )
    parser.add_argument("--timeout-ms", type=int, default=None, help="Upstream HTTP timeout in ms.")
    parser.add_argument(
        "--ip-override",
        action="store_true",
        default=False,
        help="Allow ip_geolocate to forward a caller-supplied public IP.",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = apply_overrides(ServerConfig.from_env(), args)
    configure_logging(config.logging.level, config.logging.file)

    if args.command == "tools":
        return cmd_tools(config)
    return cmd_serve(config)


if __name__ == "__main__":
    raise SystemExit(main())
