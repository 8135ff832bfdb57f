"""
Stdio transport and MCP server wiring.

Everything runs on a single asyncio event loop. Each inbound frame is
dispatched as its own task, so a slow tool call never blocks frames queued
behind it; responses are written as soon as their handler completes.
"""

import sys
import json
import signal
import asyncio
import logging
from typing import Any, Awaitable, BinaryIO, Callable, Dict, List, Optional, Set

from gmaps_mcp.version import __version__
from gmaps_mcp.core.cache import BoundedCache
from gmaps_mcp.core.config import ServerConfig
from gmaps_mcp.core.rate_limiter import RateLimiter
from gmaps_mcp.sdk.errors import ConfigurationError, MapsServerError
from gmaps_mcp.tools.base import Tool

from .dispatcher import Dispatcher, HandlerRegistry
from .framing import MessageFramer, encode_frame
from .metrics import ToolCallMetrics
from .protocol import (
    INTERNAL_ERROR,
    SERVER_NAME,
    make_error,
    make_notification,
    negotiate_protocol_version,
)

logger = logging.getLogger("GMapsMCP.mcp.server")

READ_CHUNK_SIZE = 64 * 1024


def _response_id(message: Dict[str, Any]) -> Any:
    msg_id = message.get("id")
    if isinstance(msg_id, (str, int)) and not isinstance(msg_id, bool):
        return msg_id
    return None


class _ThreadedReader:
    """Reads a blocking binary stream from the default executor."""

    def __init__(self, stream: BinaryIO):
        self._stream = stream

    async def read(self, n: int) -> bytes:
        loop = asyncio.get_running_loop()
        read = getattr(self._stream, "read1", self._stream.read)
        return await loop.run_in_executor(None, read, n)


class StdioTransport:
    """
    Content-Length framed JSON-RPC over a pair of binary streams.

    stdout carries frames only; diagnostics belong on stderr.
    """
    def __init__(self, stdin: Optional[BinaryIO] = None, stdout: Optional[BinaryIO] = None):
        self._stdin = stdin if stdin is not None else sys.stdin.buffer
        self._stdout = stdout if stdout is not None else sys.stdout.buffer
        self.framer = MessageFramer()
        self.closed = False
        self._tasks: Set[asyncio.Task] = set()

    def send(self, message: Dict[str, Any]) -> None:
        """Serialize and write one frame, flushing immediately."""
        if self.closed:
            logger.warning("Dropping outbound message; transport is closed")
            return
        try:
            frame = encode_frame(message)
        except (TypeError, ValueError) as exc:
            logger.error("Failed to serialize outbound message: %s", exc)
            if "id" not in message:
                return
            frame = encode_frame(make_error(_response_id(message), INTERNAL_ERROR, "Internal error"))
        try:
            self._stdout.write(frame)
            self._stdout.flush()
        except (BrokenPipeError, OSError) as exc:
            self.closed = True
            logger.warning("MCP stdio transport closed while sending: %s", exc)

    async def _open_reader(self) -> Any:
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader()
        protocol = asyncio.StreamReaderProtocol(reader)
        try:
            await loop.connect_read_pipe(lambda: protocol, self._stdin)
        except (ValueError, NotImplementedError, OSError) as exc:
            # Regular files and some platforms cannot be attached as pipes.
            logger.debug("Falling back to threaded stdin reads: %s", exc)
            return _ThreadedReader(self._stdin)
        return reader

    def feed(self, chunk: bytes, on_message: Callable[[Any], Awaitable[None]]) -> int:
        """Drain complete frames from ``chunk``; returns how many were found."""
        results = self.framer.feed(chunk)
        for frame in results:
            if frame.ok:
                self.spawn(on_message(frame.message))
            else:
                self.send(frame.error.to_response(None))
        return len(results)

    def spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Dispatch task failed", exc_info=exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def run(self, on_message: Callable[[Any], Awaitable[None]], reader: Any = None) -> None:
        """Read until end-of-input. In-flight dispatch tasks are cancelled on exit."""
        if reader is None:
            reader = await self._open_reader()
        try:
            while not self.closed:
                chunk = await reader.read(READ_CHUNK_SIZE)
                if not chunk:
                    logger.info("stdin closed; shutting down")
                    break
                self.feed(chunk, on_message)
        finally:
            for task in list(self._tasks):
                task.cancel()


class McpServer:
    """
    Binds the handler registry, per-tool rate limiting and the shared cache
    to a stdio transport.
    """
    def __init__(self, config: ServerConfig, transport: Optional[StdioTransport] = None):
        if not config.google_maps_api_key:
            raise ConfigurationError("GOOGLE_MAPS_API_KEY is required")
        self.config = config
        self.transport = transport or StdioTransport()
        self.registry = HandlerRegistry()
        self.dispatcher = Dispatcher(self.registry, self.transport.send)
        self.rate_limiter = RateLimiter(
            capacity=config.rate_limit.capacity,
            refill_rate=config.rate_limit.refill_rate,
            max_keys=config.rate_limit.max_keys,
        )
        self.cache = BoundedCache(
            max_size=config.cache.max_size,
            ttl_ms=config.cache.ttl_ms,
            enabled=config.cache.enabled,
        )
        self.tools: Dict[str, Tool] = {}
        self.initialized = False
        self._setup_handlers()

    def _setup_handlers(self) -> None:
        self.registry.on_request("initialize", self.handle_initialize)
        self.registry.on_request("ping", self.handle_ping)
        for method in ("list_tools", "tools/list"):
            self.registry.on_request(method, self.handle_list_tools)
        for method in ("call_tool", "tools/call"):
            self.registry.on_request(method, self.handle_call_tool)
        self.registry.on_notification("notifications/initialized", self._on_initialized)

    def _on_initialized(self, params: Any) -> None:
        self.initialized = True
        logger.info("Client reported initialized")

    async def handle_initialize(self, params: Any) -> Dict[str, Any]:
        requested = params.get("protocolVersion") if isinstance(params, dict) else None
        return {
            "protocolVersion": negotiate_protocol_version(requested),
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": {"name": SERVER_NAME, "version": __version__},
        }

    async def handle_ping(self, params: Any) -> Dict[str, Any]:
        return {}

    async def handle_list_tools(self, params: Any) -> Dict[str, List[Dict[str, Any]]]:
        return {"tools": [tool.describe() for tool in self.tools.values()]}

    async def handle_call_tool(self, params: Any) -> Dict[str, Any]:
        if not isinstance(params, dict):
            params = {}
        name = params.get("name")
        tool = self.tools.get(name) if isinstance(name, str) else None
        if tool is None:
            raise MapsServerError("UNKNOWN_TOOL", f"Unknown tool: {name}", {"name": name})

        metrics = ToolCallMetrics(tool.name)
        try:
            self.rate_limiter.check_limit(f"tool:{tool.name}")
            result = await tool.handler(params.get("arguments") or {})
            text = json.dumps(result, indent=2, ensure_ascii=False)
        except Exception as exc:
            metrics.record_error(exc)
            raise
        else:
            metrics.record_result(text)
        finally:
            metrics.log_telemetry(self.config.logging.tool_call_warn_ms)

        return {"content": [{"type": "text", "text": text}]}

    def register_tool(self, tool: Tool) -> None:
        if tool.name in self.tools:
            logger.debug("Replacing tool %s", tool.name)
        self.tools[tool.name] = tool

    def send_notification(self, method: str, params: Any = None) -> None:
        self.transport.send(make_notification(method, params))

    async def start(self, reader: Any = None) -> None:
        """Serve until end-of-input or SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()
        serve = asyncio.ensure_future(self.transport.run(self.dispatcher.handle, reader=reader))

        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, serve.cancel)
                installed.append(sig)
            except (NotImplementedError, RuntimeError, ValueError):
                logger.debug("Signal handler for %s unavailable", sig)

        logger.info("Google Maps MCP server %s listening on stdio (%d tools)", __version__, len(self.tools))
        self.send_notification("server/ready", {
            "name": SERVER_NAME,
            "version": __version__,
            "tools_count": len(self.tools),
        })

        try:
            await serve
        except asyncio.CancelledError:
            if not serve.cancelled():
                raise
            logger.info("Received termination signal; shutting down")
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
