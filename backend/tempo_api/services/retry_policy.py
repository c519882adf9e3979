"""Bounded retry-with-backoff for calls to the generation service."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from tempo_api.core.config import Settings
from tempo_api.core.exceptions import is_overloaded_error

logger = logging.getLogger(__name__)

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay_ms: int = 1000
    multiplier: float = 2.0
    max_delay_ms: int = 10000
    is_retryable: Callable[[BaseException], bool] = is_overloaded_error

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_retries=settings.generation_max_retries,
            base_delay_ms=settings.generation_base_delay_ms,
            max_delay_ms=settings.generation_max_delay_ms,
        )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, retry_index: int) -> int:
        """Delay in milliseconds before retry number ``retry_index`` (0-based)."""
        return int(min(self.base_delay_ms * self.multiplier**retry_index, self.max_delay_ms))

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        sleep: Optional[Sleep] = None,
        on_retry: Optional[Callable[[int, BaseException], None]] = None,
    ) -> T:
        sleeper = sleep or asyncio.sleep
        retry_index = 0
        while True:
            try:
                return await operation()
            except Exception as exc:
                if retry_index >= self.max_retries or not self.is_retryable(exc):
                    raise
                delay_ms = self.delay_for(retry_index)
                logger.warning(
                    "Generation service overloaded, retrying in %sms (attempt %s of %s)",
                    delay_ms,
                    retry_index + 2,
                    self.max_attempts,
                )
                if on_retry:
                    on_retry(retry_index, exc)
                await sleeper(delay_ms / 1000)
                retry_index += 1
