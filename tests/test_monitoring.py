"""
Tests for monitoring helpers and tracing spans.
"""
import pytest

from streamline_mcp.monitoring import (
    get_health_info,
    get_metrics,
    record_tool_call,
    new_request_id,
    get_request_id,
    _format_uptime,
)
from streamline_mcp.tracing import trace_span, tracing_enabled


class TestHealthInfo:
    def test_shape(self):
        info = get_health_info("memory")

        assert info["status"] == "healthy"
        assert info["components"] == {"store": {"type": "memory"}}
        assert info["uptime_seconds"] >= 0

    @pytest.mark.parametrize("seconds,expected", [
        (5, "5s"),
        (125, "2m 5s"),
        (3725, "1h 2m 5s"),
        (90061, "1d 1h 1m 1s"),
    ])
    def test_format_uptime(self, seconds, expected):
        assert _format_uptime(seconds) == expected


class TestMetrics:
    def test_tool_calls_are_counted(self):
        record_tool_call("search_tasks", True)
        record_tool_call("search_tasks", False)

        text = get_metrics()

        assert 'mcp_tool_calls_total{tool="search_tasks",outcome="success"}' in text
        assert 'mcp_tool_calls_total{tool="search_tasks",outcome="failure"}' in text


class TestRequestId:
    def test_new_request_id_is_current(self):
        request_id = new_request_id()

        assert len(request_id) == 8
        assert get_request_id() == request_id


class TestTracing:
    def test_disabled_by_default(self, monkeypatch):
        monkeypatch.delenv("OTEL_TRACING_ENABLED", raising=False)
        assert tracing_enabled() is False

    def test_span_reraises(self):
        with pytest.raises(ValueError):
            with trace_span("test.span", attributes={"skipped": None, "count": 3}):
                raise ValueError("boom")
