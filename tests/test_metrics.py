import logging

from gmaps_mcp.mcp.metrics import ToolCallMetrics
from gmaps_mcp.sdk.errors import RateLimitError


class SteppingClock:
    def __init__(self, *values):
        self.values = list(values)

    def __call__(self):
        return self.values.pop(0) if len(self.values) > 1 else self.values[0]


def test_outcomes():
    metrics = ToolCallMetrics("geocode_search")
    assert metrics.get_outcome() == "no_response"
    metrics.record_result('{"ok": "ü"}')
    assert metrics.response_bytes == 12
    assert metrics.get_outcome() == "success"

    failed = ToolCallMetrics("geocode_search")
    failed.record_error(RateLimitError("slow down"))
    assert failed.error_code == "RATE_LIMIT_ERROR"
    assert failed.get_outcome() == "error"

    crashed = ToolCallMetrics("x")
    crashed.record_error(KeyError("k"))
    assert crashed.error_code == "KeyError"


def test_slow_calls_log_at_warning(caplog):
    metrics = ToolCallMetrics("routes_matrix", clock=SteppingClock(10.0, 16.0))
    metrics.record_result("{}")
    with caplog.at_level(logging.INFO, logger="GMapsMCP.mcp.metrics"):
        metrics.log_telemetry(warn_threshold_ms=5000)
    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert "name=routes_matrix outcome=success elapsed_ms=6000.0" in record.getMessage()


def test_fast_calls_log_at_info(caplog):
    metrics = ToolCallMetrics("ping", clock=SteppingClock(1.0, 1.01))
    with caplog.at_level(logging.INFO, logger="GMapsMCP.mcp.metrics"):
        metrics.log_telemetry(warn_threshold_ms=5000)
    record = caplog.records[-1]
    assert record.levelno == logging.INFO
    assert "outcome=no_response" in record.getMessage()
    assert "error_code=-" in record.getMessage()
