"""
Google Maps MCP Protocol Constants, Message Builders & Failure Variants
"""

from typing import Any, Dict, Optional

from gmaps_mcp.sdk.errors import MapsServerError

JSONRPC_VERSION = "2.0"
SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-06-18", "2025-11-25")
DEFAULT_PROTOCOL_VERSION = SUPPORTED_PROTOCOL_VERSIONS[0]
SERVER_NAME = "google-maps-mcp-server"

# Standard JSON-RPC Error Codes
PARSE_ERROR = -32700
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603
# Application errors; the domain code travels in error.data.code
SERVER_ERROR = -32000


def negotiate_protocol_version(version: Optional[str]) -> str:
    if version in SUPPORTED_PROTOCOL_VERSIONS:
        return version
    return DEFAULT_PROTOCOL_VERSION


def make_result(msg_id: Any, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": msg_id, "result": result}


def make_error(msg_id: Any, code: int, message: str, data: Any = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": msg_id, "error": error}


def make_notification(method: str, params: Any = None) -> Dict[str, Any]:
    message: Dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method}
    if params is not None:
        message["params"] = params
    return message


class RpcFailure(Exception):
    """A failure that already knows its JSON-RPC error envelope."""

    code = INTERNAL_ERROR

    def __init__(self, message: str, data: Any = None):
        self.message = message
        self.data = data
        super().__init__(message)

    def to_response(self, msg_id: Any) -> Dict[str, Any]:
        return make_error(msg_id, self.code, self.message, self.data)


class TransportError(RpcFailure):
    """Unparseable frame payload."""
    code = PARSE_ERROR


class DispatchError(RpcFailure):
    """No handler registered for a request method."""
    code = METHOD_NOT_FOUND


class DomainError(RpcFailure):
    """Structured domain failure carrying a stable string code."""
    code = SERVER_ERROR

    def __init__(self, message: str, domain_code: str, context: Any = None):
        self.domain_code = domain_code
        self.context = context
        super().__init__(message, {"code": domain_code, "context": context})


class InternalError(RpcFailure):
    """Anything unstructured, flattened to its best-effort message."""
    code = INTERNAL_ERROR


def classify_failure(error: BaseException) -> RpcFailure:
    """Map any handler failure onto exactly one RpcFailure variant."""
    if isinstance(error, RpcFailure):
        return error
    if isinstance(error, MapsServerError):
        return DomainError(error.message or "Server error", error.code, error.context)
    return InternalError(str(error) or "Internal error")
