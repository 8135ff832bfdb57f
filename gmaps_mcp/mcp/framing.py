"""
Content-Length framing for the stdio transport.

Inbound bytes accumulate in a single buffer. Every call to ``feed`` drains all
complete frames from the front of the buffer, in arrival order, and leaves any
partial frame untouched for the next chunk. The header must sit at the very
start of the buffer; anything else waits for more data.
"""

import re
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .protocol import TransportError

logger = logging.getLogger("GMapsMCP.mcp.framing")

HEADER_RE = re.compile(rb"^Content-Length: (\d+)\r?\n\r?\n")


@dataclass
class FrameResult:
    """One drained frame: either a decoded message or a parse failure."""
    message: Any = None
    error: Optional[TransportError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_error_for(raw: str) -> TransportError:
    return TransportError("Parse error", {"originalMessage": raw})


class MessageFramer:
    def __init__(self) -> None:
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def feed(self, chunk: bytes) -> List[FrameResult]:
        if chunk:
            self._buffer.extend(chunk)

        results: List[FrameResult] = []
        while True:
            match = HEADER_RE.match(self._buffer)
            if match is None:
                break
            length = int(match.group(1))
            start = match.end()
            end = start + length
            if len(self._buffer) < end:
                break

            payload = bytes(self._buffer[start:end])
            del self._buffer[:end]
            results.append(self._decode(payload))
        return results

    @staticmethod
    def _decode(payload: bytes) -> FrameResult:
        raw = payload.decode("utf-8", errors="replace")
        try:
            message = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("Failed to parse frame payload (%d bytes): %s", len(payload), exc)
            return FrameResult(error=parse_error_for(raw))
        return FrameResult(message=message)


def encode_frame(message: Dict[str, Any]) -> bytes:
    # ASCII escapes keep lone surrogates encodable; the byte count stays exact.
    body = json.dumps(message, separators=(",", ":")).encode("ascii")
    return b"Content-Length: " + str(len(body)).encode("ascii") + b"\r\n\r\n" + body
