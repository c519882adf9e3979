"""Tests for metrics and tracing helpers."""
from __future__ import annotations

from typing import Any, Dict

import pytest

from tempo_api.core.exceptions import SchedulingError
from tempo_api.observability import client as client_module
from tempo_api.observability import metrics
from tempo_api.observability import tracing


class _DummyTrace:
    def __init__(self, name: str, metadata: Dict[str, Any]):
        self.name = name
        self.metadata = metadata
        self.error_info: Dict[str, Any] | None = None
        self.ended = False

    def update(self, metadata: Dict[str, Any] | None = None, error_info: Dict[str, Any] | None = None) -> None:
        if metadata:
            self.metadata.update(metadata)
        if error_info:
            self.error_info = error_info

    def end(self) -> None:
        self.ended = True


class _DummyClient:
    def __init__(self):
        self.traces: list[_DummyTrace] = []

    def trace(self, name: str, metadata: Dict[str, Any] | None = None):
        trace = _DummyTrace(name, dict(metadata or {}))
        self.traces.append(trace)
        return trace


@pytest.fixture()
def dummy_client(monkeypatch) -> _DummyClient:
    client = _DummyClient()
    monkeypatch.setattr(client_module, "get_opik_client", lambda: client)
    return client


def test_log_metric_records_value_and_metadata(dummy_client) -> None:
    metrics.log_metric("demo_metric", 42, metadata={"foo": "bar"})

    assert dummy_client.traces, "Metric call should record a trace"
    assert dummy_client.traces[0].name == "metric:demo_metric"
    assert dummy_client.traces[0].metadata["value"] == 42
    assert dummy_client.traces[0].metadata["foo"] == "bar"


def test_session_outcome_logs_success_and_latency(dummy_client) -> None:
    metrics.log_session_outcome(success=False, latency_ms=12.5, code="MISSING_TASKS", story_blocks=2)

    names = [trace.name for trace in dummy_client.traces]
    assert names == ["metric:session.create.success", "metric:session.create.latency_ms"]
    assert dummy_client.traces[0].metadata["value"] == 0
    assert dummy_client.traces[0].metadata["code"] == "MISSING_TASKS"
    assert dummy_client.traces[1].metadata["value"] == 12.5


def test_trace_records_request_id_and_latency(dummy_client) -> None:
    with tracing.trace("session.parse", metadata={"blocks": 3, "skipped": None}, request_id="req-7"):
        pass

    trace = dummy_client.traces[0]
    assert trace.metadata["request_id"] == "req-7"
    assert trace.metadata["blocks"] == 3
    assert "skipped" not in trace.metadata
    assert "latency_ms" in trace.metadata
    assert trace.ended is True


def test_trace_attaches_error_code(dummy_client) -> None:
    with pytest.raises(SchedulingError):
        with tracing.trace("session.create"):
            raise SchedulingError("Some tasks are missing from the schedule", "MISSING_TASKS")

    trace = dummy_client.traces[0]
    assert trace.error_info == {"message": "Some tasks are missing from the schedule", "code": "MISSING_TASKS"}
    assert trace.ended is True
