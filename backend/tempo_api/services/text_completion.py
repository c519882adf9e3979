"""Text completion port and its OpenAI-backed implementation."""
from __future__ import annotations

import logging
from typing import Optional

import openai

from tempo_api.core.exceptions import GenerationOverloadedError, GenerationServiceError

logger = logging.getLogger(__name__)

OVERLOADED_STATUS_CODES = {503, 529}


class TextCompletionPort:
    """Base interface for the text-generation service."""

    async def complete(
        self,
        prompt: str,
        *,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Return the raw text produced for ``prompt``."""
        raise NotImplementedError


class OpenAITextCompletion(TextCompletionPort):
    def __init__(self, client: "openai.AsyncOpenAI"):
        self._client = client

    async def complete(
        self,
        prompt: str,
        *,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        try:
            completion = await self._client.chat.completions.create(
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                response_format={"type": "json_object"},
                messages=[{"role": "user", "content": prompt}],
            )
        except openai.APIStatusError as exc:
            if exc.status_code in OVERLOADED_STATUS_CODES or "overloaded" in str(exc).lower():
                raise GenerationOverloadedError(str(exc)) from exc
            raise GenerationServiceError(f"Generation request failed: {exc}") from exc
        except openai.OpenAIError as exc:
            raise GenerationServiceError(f"Generation request failed: {exc}") from exc

        choice = completion.choices[0] if completion.choices else None
        content = choice.message.content if choice else None
        if not content:
            raise GenerationServiceError("Invalid response format from AI", code="INVALID_RESPONSE")
        if choice.finish_reason == "length":
            logger.warning("Generation hit the token limit; output may be truncated")
        return content


def build_text_completion(api_key: Optional[str]) -> Optional[TextCompletionPort]:
    """Return an OpenAI-backed port, or None when no key is configured."""
    if not api_key:
        return None
    return OpenAITextCompletion(openai.AsyncOpenAI(api_key=api_key))
