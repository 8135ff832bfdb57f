import time
import logging
from typing import Callable, Optional

logger = logging.getLogger("GMapsMCP.mcp.metrics")


class ToolCallMetrics:
    """
    Tracks timing and payload size for a single tool invocation.
    """
    def __init__(self, name: str, clock: Callable[[], float] = time.monotonic):
        self.name = name
        self._clock = clock
        self.started = clock()
        self.response_bytes = 0
        self.error_code: Optional[str] = None

    def record_result(self, text: str) -> None:
        self.response_bytes = len(text.encode("utf-8", errors="replace"))

    def record_error(self, error: BaseException) -> None:
        self.error_code = getattr(error, "code", None) or type(error).__name__

    def get_outcome(self) -> str:
        if self.error_code is not None:
            return "error"
        if self.response_bytes > 0:
            return "success"
        return "no_response"

    def elapsed_ms(self) -> float:
        return max(0.0, (self._clock() - self.started) * 1000.0)

    def log_telemetry(self, warn_threshold_ms: float) -> None:
        """Log normalized telemetry; slow calls are promoted to WARNING."""
        elapsed_ms = self.elapsed_ms()
        log_method = logger.warning if elapsed_ms >= warn_threshold_ms else logger.info
        log_method(
            "Tool call telemetry: name=%s outcome=%s elapsed_ms=%.1f "
            "response_bytes=%d error_code=%s",
            self.name,
            self.get_outcome(),
            elapsed_ms,
            self.response_bytes,
            self.error_code or "-",
        )
