"""Scheduling error taxonomy."""
from __future__ import annotations

from typing import Any, Dict, Optional

# Stable machine-readable codes and the HTTP status each one maps to.
ERROR_STATUS: Dict[str, int] = {
    "VALIDATION_ERROR": 400,
    "DURATION_EXCEEDED": 400,
    "JSON_PARSE_ERROR": 400,
    "INVALID_DATA_STRUCTURE": 400,
    "UNKNOWN_STORY": 400,
    "BLOCK_DURATION_ERROR": 400,
    "EXCESSIVE_WORK_TIME": 400,
    "MISSING_TASKS": 400,
    "MISSING_API_KEY": 401,
    "GENERATION_ERROR": 502,
    "INVALID_RESPONSE": 502,
    "OVERLOADED": 529,
    "PROCESSING_ERROR": 500,
    "INTERNAL_ERROR": 500,
}


class SchedulingError(Exception):
    """A tagged failure raised anywhere in the session scheduling pipeline."""

    def __init__(self, message: str, code: str, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.details = details
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return ERROR_STATUS.get(self.code, 500)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class GenerationError(Exception):
    """Base class for failures reported by the text-generation service."""


class GenerationOverloadedError(GenerationError):
    """The generation service is temporarily overloaded; safe to retry."""


class GenerationServiceError(GenerationError):
    """Any other generation failure. Not retried."""

    def __init__(self, message: str, code: str = "GENERATION_ERROR"):
        self.code = code
        super().__init__(message)


def is_overloaded_error(exc: BaseException) -> bool:
    """Return True when ``exc`` is the transient "overloaded" signal."""
    if isinstance(exc, GenerationOverloadedError):
        return True
    if isinstance(exc, GenerationServiceError):
        return False
    return "overloaded" in str(exc).lower()
