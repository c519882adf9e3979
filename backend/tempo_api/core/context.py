"""Per-request context utilities."""
from __future__ import annotations

from contextvars import ContextVar

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
# Caller-supplied generation key (X-API-Key header), scoped to one request.
api_key_ctx_var: ContextVar[str | None] = ContextVar("api_key", default=None)


def get_request_id() -> str | None:
    """Return the current request id if available."""
    return request_id_ctx_var.get()


def get_request_api_key() -> str | None:
    """Return the API key the caller brought with the current request, if any."""
    value = api_key_ctx_var.get()
    if value is None:
        return None
    return value.strip() or None
