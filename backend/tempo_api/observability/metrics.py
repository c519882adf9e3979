"""Lightweight metrics helpers."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from tempo_api.observability import client as opik_client

logger = logging.getLogger(__name__)


def log_metric(name: str, value: float | int, metadata: Optional[Dict[str, Any]] = None) -> None:
    """Log a metric to Opik if it is enabled."""
    client = opik_client.get_opik_client()
    if not client:
        return

    payload: Dict[str, Any] = {"value": value}
    if metadata:
        payload.update(metadata)

    try:
        client.trace(name=f"metric:{name}", metadata=payload)
    except Exception as exc:  # pragma: no cover
        logger.debug("Unable to record metric %s: %s", name, exc)


def log_session_outcome(
    *,
    success: bool,
    latency_ms: float,
    code: Optional[str] = None,
    story_blocks: int = 0,
    generation_attempts: int = 0,
) -> None:
    """Record the result of one create-session request."""
    metadata: Dict[str, Any] = {
        "code": code or "OK",
        "story_blocks": story_blocks,
        "generation_attempts": generation_attempts,
    }
    log_metric("session.create.success", 1 if success else 0, metadata=metadata)
    log_metric("session.create.latency_ms", latency_ms, metadata=metadata)
