"""Tests ensuring observability wiring is safe by default."""
from __future__ import annotations

import importlib

from tempo_api.observability import client as client_module
from tempo_api.observability import tracing


def test_app_import_succeeds_when_opik_is_disabled(monkeypatch) -> None:
    monkeypatch.setenv("OPIK_ENABLED", "false")
    monkeypatch.delenv("OPIK_API_KEY", raising=False)

    import tempo_api.core.config as core_config
    import tempo_api.main as main_module

    importlib.reload(core_config)
    importlib.reload(client_module)
    reloaded_app = importlib.reload(main_module)

    assert hasattr(reloaded_app, "app")
    assert client_module.get_opik_client() is None


def test_trace_is_a_no_op_without_client(monkeypatch) -> None:
    monkeypatch.setattr(client_module, "get_opik_client", lambda: None)

    with tracing.trace("session.generate", metadata={"stories": 1}) as opik_trace:
        assert opik_trace is None
