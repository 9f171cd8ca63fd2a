"""
LiteLLM-powered chat completion helper utilities for the story prompts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, MutableMapping, Sequence

from litellm import completion

logger = logging.getLogger(__name__)

ChatMessage = Mapping[str, Any]

JSON_RESPONSE_FORMAT = {"type": "json_object"}


@dataclass
class ChatResult:
    """
    Structured response returned from an LLM chat completion.
    """

    text: str
    raw: Any
    finish_reason: str | None = None
    total_tokens: int | None = None


CompletionCallable = Callable[..., ChatResult]


def build_messages(system: str, user: str) -> list[dict[str, str]]:
    """Return the two-message conversation used by every story prompt."""
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def call_chat_completion(
    *,
    model: str,
    messages: Sequence[ChatMessage],
    temperature: float | None = None,
    max_tokens: int | None = None,
    api_key: str | None = None,
    json_mode: bool = False,
    **extra_kwargs: Any,
) -> ChatResult:
    """
    Invoke LiteLLM's `completion` API and return the consolidated text.

    With ``json_mode`` the provider is asked for a JSON object reply. Providers
    without a JSON mode ignore the request and rely on the prompt alone.

    Raises
    ------
    RuntimeError
        When the reply is empty, malformed, or cut off by ``max_tokens``. A cut-off
        story is never returned because its JSON envelope would be incomplete.
    """
    payload: MutableMapping[str, Any] = {
        "model": model,
        "messages": list(messages),
    }

    if temperature is not None:
        payload["temperature"] = temperature

    if max_tokens is not None:
        payload["max_tokens"] = max_tokens

    if api_key is not None:
        payload["api_key"] = api_key

    if json_mode:
        payload["response_format"] = JSON_RESPONSE_FORMAT
        payload["drop_params"] = True

    payload.update(extra_kwargs)

    response = completion(**payload)

    try:
        choice = response["choices"][0]
        message = choice["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise RuntimeError("Unexpected LiteLLM response format.") from exc

    finish_reason = _field(choice, "finish_reason")
    total_tokens = _field(_field(response, "usage"), "total_tokens")
    logger.debug(
        "%s replied (finish_reason=%s, total_tokens=%s)", model, finish_reason, total_tokens
    )

    if finish_reason == "length":
        raise RuntimeError(f"Reply from {model} was cut off at {max_tokens} tokens.")

    text = str(message or "").strip()
    if not text:
        raise RuntimeError(f"{model} returned an empty reply.")
    return ChatResult(
        text=text, raw=response, finish_reason=finish_reason, total_tokens=total_tokens
    )
