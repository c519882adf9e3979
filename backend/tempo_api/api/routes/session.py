"""Session creation endpoint."""
from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request

from tempo_api.api.schemas.session import CreateSessionRequest, ErrorResponse, SessionPlan
from tempo_api.core.config import get_settings
from tempo_api.core.context import get_request_api_key
from tempo_api.core.exceptions import SchedulingError
from tempo_api.observability.metrics import log_session_outcome
from tempo_api.observability.tracing import trace
from tempo_api.services.session_scheduler import SessionScheduler
from tempo_api.services.text_completion import TextCompletionPort, build_text_completion

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_text_completion() -> TextCompletionPort:
    """Completion port for this request; a caller-supplied key wins over the server key."""
    api_key = get_request_api_key() or get_settings().openai_api_key
    completion = build_text_completion(api_key)
    if completion is None:
        raise SchedulingError(
            "API key not provided. Configure your API key in settings or set OPENAI_API_KEY.",
            "MISSING_API_KEY",
        )
    return completion


async def get_session_scheduler(
    completion: TextCompletionPort = Depends(get_text_completion),
) -> SessionScheduler:
    return SessionScheduler(completion, get_settings())


@router.post(
    "/api/tasks/create-session",
    response_model=SessionPlan,
    response_model_exclude_none=True,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        529: {"model": ErrorResponse},
    },
    tags=["sessions"],
)
async def create_session_endpoint(
    payload: CreateSessionRequest,
    http_request: Request,
    scheduler: SessionScheduler = Depends(get_session_scheduler),
) -> SessionPlan:
    """Turn the submitted stories into a time-boxed session plan."""
    request_id = getattr(http_request.state, "request_id", None)
    metadata: Dict[str, Any] = {
        "route": "/api/tasks/create-session",
        "stories": len(payload.stories),
        "tasks": sum(len(story.tasks) for story in payload.stories),
        "start_time": payload.start_time,
    }

    start_time = perf_counter()
    plan: Optional[SessionPlan] = None
    code: Optional[str] = None

    try:
        with trace("session.create", metadata=metadata, request_id=request_id):
            plan = await scheduler.create_session(payload, request_id=request_id)
    except SchedulingError as exc:
        code = exc.code
        raise
    except Exception as exc:
        logger.exception("Session creation error")
        code = "INTERNAL_ERROR"
        raise SchedulingError("Failed to create session plan", "INTERNAL_ERROR", str(exc)) from exc
    finally:
        log_session_outcome(
            success=plan is not None,
            latency_ms=(perf_counter() - start_time) * 1000,
            code=code,
            story_blocks=len(plan.story_blocks) if plan else 0,
            generation_attempts=scheduler.generation_attempts,
        )

    logger.info(
        "Created session with %s story block(s), %s min total",
        len(plan.story_blocks),
        plan.summary.total_duration,
    )
    return plan
