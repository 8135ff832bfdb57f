"""
JSON-RPC request/notification routing.

A message without an ``id`` member is a notification: its handler (if any) is
called synchronously and nothing is ever sent back. Everything else is a
request and produces exactly one response, success or error, correlated by
id. Responses for concurrent requests may leave in any order.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .protocol import (
    DispatchError,
    InternalError,
    classify_failure,
    make_result,
)

logger = logging.getLogger("GMapsMCP.mcp.dispatcher")

RequestHandler = Callable[[Any], Awaitable[Any]]
NotificationHandler = Callable[[Any], Any]
SendFn = Callable[[Dict[str, Any]], None]


class HandlerRegistry:
    """method -> handler tables. Registering a method again replaces it."""

    def __init__(self) -> None:
        self._requests: Dict[str, RequestHandler] = {}
        self._notifications: Dict[str, NotificationHandler] = {}

    def on_request(self, method: str, handler: RequestHandler) -> None:
        self._requests[method] = handler

    def on_notification(self, method: str, handler: NotificationHandler) -> None:
        self._notifications[method] = handler

    def request_handler(self, method: str) -> Optional[RequestHandler]:
        return self._requests.get(method)

    def notification_handler(self, method: str) -> Optional[NotificationHandler]:
        return self._notifications.get(method)

    def request_methods(self) -> List[str]:
        return sorted(self._requests)


def _extract_id(message: Any) -> Any:
    if isinstance(message, dict):
        msg_id = message.get("id")
        if isinstance(msg_id, (str, int)) and not isinstance(msg_id, bool):
            return msg_id
    return None


class Dispatcher:
    def __init__(self, registry: HandlerRegistry, send: Optional[SendFn] = None):
        self.registry = registry
        self._send = send

    async def handle(self, message: Any) -> None:
        """Dispatch ``message`` and write its response, if it has one."""
        response = await self.dispatch(message)
        if response is not None and self._send is not None:
            self._send(response)

    async def dispatch(self, message: Any) -> Optional[Dict[str, Any]]:
        """Return the response for a request, or None for a notification."""
        try:
            if "id" not in message:
                self._notify(message.get("method"), message.get("params"))
                return None
            msg_id = message["id"]
            method = message["method"]
            if not isinstance(method, str):
                raise TypeError("method must be a string")
            handler = self.registry.request_handler(method)
        except Exception:
            logger.exception("Malformed JSON-RPC message: %r", message)
            return InternalError("Internal error").to_response(_extract_id(message))

        if handler is None:
            logger.debug("No handler for method %s", method)
            return DispatchError("Method not found", {"method": method}).to_response(msg_id)

        try:
            result = await handler(message.get("params"))
        except Exception as exc:
            failure = classify_failure(exc)
            if isinstance(failure, InternalError):
                logger.exception("Unhandled error in %s", method)
            else:
                logger.info("Request %s failed: %s", method, failure.message)
            return failure.to_response(msg_id)
        return make_result(msg_id, result)

    def _notify(self, method: Any, params: Any) -> None:
        handler = self.registry.notification_handler(method)
        if handler is None:
            logger.debug("Ignoring unhandled notification %s", method)
            return
        try:
            handler(params)
        except Exception:
            logger.exception("Notification handler for %s failed", method)
