"""
Narration audio via the ElevenLabs text-to-speech API.
"""

from __future__ import annotations

import logging
import os
import time
from enum import Enum
from typing import Callable

import requests

from taleweaver.common import GenerationError, GenerationService, call_with_retries

logger = logging.getLogger(__name__)

ELEVENLABS_API_URL = "https://api.elevenlabs.io/v1/text-to-speech"
DEFAULT_MODEL_ID = "eleven_multilingual_v2"
MAX_TEXT_LENGTH = 5000
RETRY_DELAY_SECONDS = 0.5

# One MPEG-1 Layer III frame (128 kbps, 44.1 kHz) with empty side info, which decodes to silence.
SILENT_MP3 = b"\xff\xfb\x90\x64" + b"\x00" * 413


class Emotion(str, Enum):
    WARM = "warm"
    CURIOUS = "curious"
    TENSE = "tense"
    RELIEVED = "relieved"


VOICE_SETTINGS: dict[Emotion, dict[str, float]] = {
    Emotion.WARM: {"stability": 0.7, "similarity_boost": 0.8},
    Emotion.CURIOUS: {"stability": 0.6, "similarity_boost": 0.7},
    Emotion.TENSE: {"stability": 0.5, "similarity_boost": 0.75},
    Emotion.RELIEVED: {"stability": 0.75, "similarity_boost": 0.85},
}


class SpeechSynthesizer:
    """
    Thin ElevenLabs client returning MP3 narration bytes.

    Parameters
    ----------
    api_key:
        ElevenLabs API key. Falls back to ``ELEVENLABS_API_KEY``.
    voice_id:
        Default narrator voice. Falls back to ``ELEVENLABS_VOICE_ID``.
    model_id:
        Falls back to ``ELEVENLABS_MODEL_ID`` and then ``eleven_multilingual_v2``.
    session:
        Optional pre-configured :class:`requests.Session`. Mainly useful for testing.
    enabled:
        When false, returns a single silent MP3 frame without any network call.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        voice_id: str | None = None,
        model_id: str | None = None,
        session: requests.Session | None = None,
        enabled: bool = True,
        max_retries: int = 1,
        timeout_seconds: float = 60.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._enabled = enabled
        self._api_key = api_key or os.getenv("ELEVENLABS_API_KEY")
        if enabled and not self._api_key:
            raise ValueError(
                "ElevenLabs API key is required. Set ELEVENLABS_API_KEY or pass api_key."
            )
        self._voice_id = voice_id or os.getenv("ELEVENLABS_VOICE_ID")
        self._model_id = model_id or os.getenv("ELEVENLABS_MODEL_ID") or DEFAULT_MODEL_ID
        self._session = session or requests.Session()
        self._max_retries = max_retries
        self._timeout_seconds = timeout_seconds
        self._sleep = sleep

    def synthesize(
        self,
        text: str,
        *,
        emotion: Emotion | str = Emotion.WARM,
        voice_id: str | None = None,
    ) -> bytes:
        """
        Convert ``text`` to narration audio.

        Raises
        ------
        GenerationError
            If the text is empty or longer than 5000 characters, no voice is
            configured, or the API keeps failing or returns no audio.
        """
        if not text or not text.strip():
            raise GenerationError(GenerationService.SPEECH, "Narration text cannot be empty")
        if len(text) > MAX_TEXT_LENGTH:
            raise GenerationError(
                GenerationService.SPEECH,
                f"Narration text exceeds {MAX_TEXT_LENGTH} characters ({len(text)})",
            )

        if not self._enabled:
            return SILENT_MP3

        selected_voice = voice_id or self._voice_id
        if not selected_voice:
            raise GenerationError(
                GenerationService.SPEECH, "No narrator voice configured. Set ELEVENLABS_VOICE_ID."
            )

        body = {
            "text": text,
            "model_id": self._model_id,
            "voice_settings": VOICE_SETTINGS[Emotion(emotion)],
        }

        def attempt(index: int) -> bytes:
            logger.debug(
                "Requesting narration (attempt %d, %d chars)", index + 1, len(text)
            )
            response = self._session.post(
                f"{ELEVENLABS_API_URL}/{selected_voice}",
                headers={"xi-api-key": self._api_key, "Content-Type": "application/json"},
                json=body,
                timeout=self._timeout_seconds,
            )
            if not response.ok:
                raise RuntimeError(f"API returned {response.status_code}: {response.text[:200]}")
            if not response.content:
                raise RuntimeError("Empty audio buffer received")
            return response.content

        audio = call_with_retries(
            attempt,
            service=GenerationService.SPEECH,
            max_retries=self._max_retries,
            delay_seconds=RETRY_DELAY_SECONDS,
            sleep=self._sleep,
        )
        logger.info("Narration generated (%d bytes)", len(audio))
        return audio
