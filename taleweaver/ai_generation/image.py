"""
Integration with Replicate for storybook illustration generation.
"""

from __future__ import annotations

import base64
import logging
import os
import time
from collections.abc import Iterable as IterableABC
from typing import Any, Callable

import replicate
import requests

from taleweaver.common import GenerationService, call_with_retries

from .prompting import IllustrationPrompt, build_illustration_prompt

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "black-forest-labs/flux-schnell"
RETRY_DELAY_SECONDS = 0.5

PLACEHOLDER_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)


def _build_flux_schnell_input(*, prompt: IllustrationPrompt, aspect_ratio: str) -> dict[str, Any]:
    return {
        "prompt": prompt.positive,
        "aspect_ratio": aspect_ratio,
        "output_format": "png",
        "num_outputs": 1,
        "go_fast": True,
    }


def _build_flux_pro_input(*, prompt: IllustrationPrompt, aspect_ratio: str) -> dict[str, Any]:
    return {
        "prompt": prompt.positive,
        "aspect_ratio": aspect_ratio,
        "output_format": "png",
        "safety_tolerance": 2,
        "prompt_upsampling": True,
    }


def _build_imagen_input(*, prompt: IllustrationPrompt, aspect_ratio: str) -> dict[str, Any]:
    return {
        "prompt": prompt.positive,
        "negative_prompt": prompt.negative,
        "aspect_ratio": aspect_ratio,
        "output_format": "png",
        "safety_filter_level": "block_medium_and_above",
    }


_MODEL_INPUT_BUILDERS: dict[str, Callable[..., dict[str, Any]]] = {
    "black-forest-labs/flux-schnell": _build_flux_schnell_input,
    "black-forest-labs/flux-1.1-pro": _build_flux_pro_input,
    "google/imagen-4": _build_imagen_input,
}


def _build_replicate_input_payload(
    *,
    model_identifier: str,
    prompt: IllustrationPrompt,
    aspect_ratio: str,
) -> dict[str, Any]:
    normalized_identifier = model_identifier.strip().lower()
    builder = _MODEL_INPUT_BUILDERS.get(normalized_identifier)
    if builder is None and ":" in normalized_identifier:
        base_identifier = normalized_identifier.split(":", maxsplit=1)[0]
        builder = _MODEL_INPUT_BUILDERS.get(base_identifier)
    if builder is None:
        supported_models = ", ".join(sorted(_MODEL_INPUT_BUILDERS))
        raise ValueError(
            "Model identifier "
            f"'{model_identifier}' is not configured with a default input payload. "
            f"Supported models: {supported_models}."
        )
    return builder(prompt=prompt, aspect_ratio=aspect_ratio)


def normalize_image_outputs(raw: Any) -> list[Any]:
    """
    Flatten Replicate output into a list of URL strings or file-like objects.
    """
    if raw is None:
        return []

    if hasattr(raw, "read") or isinstance(raw, str):
        return [raw]

    if isinstance(raw, bytes):
        return [raw.decode("utf-8", errors="ignore")]

    if isinstance(raw, IterableABC):
        collected = list(raw)
        if not collected:
            return []

        if all(isinstance(item, str) and len(item) == 1 for item in collected):
            return ["".join(collected)]

        normalized: list[Any] = []
        for item in collected:
            if item is None:
                continue
            normalized.extend(normalize_image_outputs(item))
        return normalized

    return [str(raw)]


class IllustrationGenerator:
    """
    Convenience wrapper around the Replicate client returning PNG bytes.

    Parameters
    ----------
    api_token:
        Replicate API token. Falls back to ``REPLICATE_API_TOKEN``.
    model_identifier:
        Falls back to ``REPLICATE_IMAGE_MODEL`` and then ``black-forest-labs/flux-schnell``.
    aspect_ratio:
        Passed through to the model, e.g. ``4:3``.
    client:
        Optional pre-configured :class:`replicate.Client`. Mainly useful for testing.
    http_session:
        Session used to download URL outputs.
    enabled:
        When false, returns a 1x1 placeholder PNG without any network call.
    """

    def __init__(
        self,
        *,
        api_token: str | None = None,
        model_identifier: str | None = None,
        aspect_ratio: str = "4:3",
        client: replicate.Client | None = None,
        http_session: requests.Session | None = None,
        enabled: bool = True,
        max_retries: int = 1,
        timeout_seconds: float = 60.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._enabled = enabled
        self._api_token = api_token or os.getenv("REPLICATE_API_TOKEN")
        if enabled and not self._api_token and not client:
            raise ValueError(
                "Replicate API token is required. Set REPLICATE_API_TOKEN or pass api_token."
            )
        self._model_identifier = (
            model_identifier or os.getenv("REPLICATE_IMAGE_MODEL") or DEFAULT_MODEL
        )
        self._aspect_ratio = aspect_ratio
        self._client = client
        if self._client is None and enabled:
            self._client = replicate.Client(api_token=self._api_token)
        self._http = http_session or requests.Session()
        self._max_retries = max_retries
        self._timeout_seconds = timeout_seconds
        self._sleep = sleep

    @property
    def model_identifier(self) -> str:
        """Return the model identifier currently used."""
        return self._model_identifier

    def generate(self, segment_text: str) -> bytes:
        """
        Illustrate a story segment.

        Raises
        ------
        GenerationError
            If Replicate keeps failing or returns no usable image.
        """
        if not self._enabled:
            return PLACEHOLDER_PNG

        prompt = build_illustration_prompt(segment_text)
        replicate_input = _build_replicate_input_payload(
            model_identifier=self._model_identifier,
            prompt=prompt,
            aspect_ratio=self._aspect_ratio,
        )

        def attempt(index: int) -> bytes:
            logger.debug("Requesting illustration from %s (attempt %d)", self._model_identifier, index + 1)
            outputs = normalize_image_outputs(
                self._client.run(self._model_identifier, input=replicate_input)
            )
            if not outputs:
                raise RuntimeError("No image returned")
            data = self._read_output(outputs[0])
            if not data:
                raise RuntimeError("Empty image received")
            return data

        image = call_with_retries(
            attempt,
            service=GenerationService.IMAGE,
            max_retries=self._max_retries,
            delay_seconds=RETRY_DELAY_SECONDS,
            sleep=self._sleep,
        )
        logger.info("Illustration generated (%d bytes)", len(image))
        return image

    def _read_output(self, output: Any) -> bytes:
        if hasattr(output, "read"):
            return output.read()

        url = str(output)
        if not url.lower().startswith(("http://", "https://")):
            raise RuntimeError(f"Unsupported image output: {url[:80]!r}")
        response = self._http.get(url, timeout=self._timeout_seconds)
        response.raise_for_status()
        return response.content
