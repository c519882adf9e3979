"""Custom FastAPI middleware."""
from __future__ import annotations

from typing import Callable
from uuid import uuid4

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from tempo_api.core.context import api_key_ctx_var, request_id_ctx_var


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request id and caller API key to the request context."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Response]) -> Response:  # type: ignore[override]
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
        id_token = request_id_ctx_var.set(request_id)
        key_token = api_key_ctx_var.set(request.headers.get("X-API-Key"))

        try:
            response = await call_next(request)
        finally:
            api_key_ctx_var.reset(key_token)
            request_id_ctx_var.reset(id_token)

        response.headers["X-Request-Id"] = request_id
        return response
