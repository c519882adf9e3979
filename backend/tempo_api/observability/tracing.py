"""Tracing utilities wrapping Opik."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from time import perf_counter
from typing import TYPE_CHECKING, Any, Dict, Iterator, Optional

from tempo_api.observability import client as opik_client

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from opik.api_objects.trace.trace_client import Trace
else:  # pragma: no cover - typing helper
    Trace = object  # type: ignore[assignment]

logger = logging.getLogger(__name__)


@contextmanager
def trace(
    name: str,
    metadata: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> Iterator[Optional["Trace"]]:
    """
    Open an Opik trace around one step of session creation.

    Failures inside the block are attached to the trace as ``error_info`` and
    re-raised; a ``SchedulingError`` also records its code. When Opik is
    disabled the context is a no-op and yields None.
    """
    client = opik_client.get_opik_client()
    opik_trace: Optional["Trace"] = None
    started = perf_counter()

    if client:
        trace_metadata = {key: value for key, value in (metadata or {}).items() if value is not None}
        if request_id:
            trace_metadata.setdefault("request_id", request_id)
        try:
            opik_trace = client.trace(name=name, metadata=trace_metadata or None)
        except Exception as exc:  # pragma: no cover
            logger.debug("Unable to start Opik trace %s: %s", name, exc)
            opik_trace = None

    try:
        yield opik_trace
    except Exception as exc:
        if opik_trace:
            error_info: Dict[str, Any] = {"message": str(exc)}
            code = getattr(exc, "code", None)
            if code:
                error_info["code"] = code
            try:
                opik_trace.update(error_info=error_info)
            except Exception:  # pragma: no cover
                logger.debug("Failed to attach error info to Opik trace %s", name, exc_info=True)
        raise
    finally:
        if opik_trace:
            try:
                opik_trace.update(metadata={"latency_ms": round((perf_counter() - started) * 1000, 2)})
                opik_trace.end()
            except Exception:  # pragma: no cover
                logger.debug("Failed to close Opik trace %s cleanly", name, exc_info=True)
