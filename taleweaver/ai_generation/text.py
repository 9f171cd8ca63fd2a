"""
Structured story text generation via LiteLLM-compatible models.
"""

from __future__ import annotations

import logging
import os
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from taleweaver.common import (
    ChatResult,
    CompletionCallable,
    GenerationService,
    build_messages,
    call_chat_completion,
    call_with_retries,
    parse_json_payload,
)
from taleweaver.story_generation import StoryPrompt

logger = logging.getLogger(__name__)

STRICT_JSON_HINT = "\n\nReturn valid strict JSON only."

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class StoryTextGenerator:
    """
    Calls the story model and validates its JSON reply against a response schema.

    Parameters
    ----------
    api_key:
        Provider API key. Falls back to ``OPENAI_API_KEY`` / ``LITELLM_API_KEY``.
    model:
        LiteLLM model identifier. Falls back to ``TALEWEAVER_STORY_MODEL`` /
        ``LITELLM_MODEL`` and finally ``gpt-4.1-mini``.
    completion_fn:
        Chat completion callable, mainly useful for testing.
    enabled:
        When false, every call returns the response schema's ``stub()``.
    max_retries:
        Extra attempts after the first failure.
    json_mode:
        Ask providers that support it for a JSON object reply.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        completion_fn: CompletionCallable | None = None,
        enabled: bool = True,
        max_retries: int = 1,
        temperature: float = 0.8,
        max_output_tokens: int = 2000,
        json_mode: bool = True,
    ) -> None:
        self._api_key = api_key or os.getenv("OPENAI_API_KEY") or os.getenv("LITELLM_API_KEY")
        self._model = (
            model
            or os.getenv("TALEWEAVER_STORY_MODEL")
            or os.getenv("LITELLM_STORY_MODEL")
            or os.getenv("LITELLM_MODEL")
            or "gpt-4.1-mini"
        )
        self._completion_fn: CompletionCallable = completion_fn or call_chat_completion
        self._enabled = enabled
        self._max_retries = max_retries
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._json_mode = json_mode

    @property
    def model(self) -> str:
        """Return the model identifier in use."""
        return self._model

    @property
    def enabled(self) -> bool:
        return self._enabled

    def generate(
        self,
        prompt: StoryPrompt,
        response_model: type[ResponseT],
        **response_kwargs: Any,
    ) -> ResponseT:
        """
        Return the model's reply parsed into ``response_model``.

        Raises
        ------
        GenerationError
            When every attempt fails to produce a valid reply.
        """
        if not self._enabled:
            logger.debug("Text generation disabled, returning stub %s", response_model.__name__)
            return response_model.stub()

        malformed_reply = False

        def attempt(index: int) -> ResponseT:
            nonlocal malformed_reply
            user_prompt = prompt.user + STRICT_JSON_HINT if malformed_reply else prompt.user
            logger.debug(
                "Requesting %s from %s (attempt %d)", response_model.__name__, self._model, index + 1
            )
            result: ChatResult = self._completion_fn(
                model=self._model,
                messages=build_messages(prompt.system, user_prompt),
                temperature=self._temperature,
                max_tokens=self._max_output_tokens,
                api_key=self._api_key,
                json_mode=self._json_mode,
                **response_kwargs,
            )
            try:
                payload = parse_json_payload(result.text)
                return response_model.model_validate(payload)
            except (ValueError, PydanticValidationError):
                malformed_reply = True
                raise

        return call_with_retries(
            attempt,
            service=GenerationService.TEXT,
            max_retries=self._max_retries,
        )
