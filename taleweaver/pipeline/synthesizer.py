"""
Turns segment text into a stored, narrated and illustrated :class:`Segment`.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

from taleweaver.ai_generation import Emotion, IllustrationGenerator, SpeechSynthesizer
from taleweaver.sessions import ArtifactKind, ArtifactStore, Segment
from taleweaver.story_generation import ChoiceQuality

logger = logging.getLogger(__name__)


class SegmentSynthesizer:
    """
    Runs narration and illustration for one segment concurrently.

    Both pipelines (generate, store, build URL) must succeed; the first failure is
    raised and no segment is returned. Nothing is written to the session here.
    """

    def __init__(
        self,
        *,
        speech: SpeechSynthesizer,
        images: IllustrationGenerator,
        artifacts: ArtifactStore,
    ) -> None:
        self._speech = speech
        self._images = images
        self._artifacts = artifacts

    def synthesize(
        self,
        session_id: str,
        segment_id: str,
        text: str,
        checkpoint_number: int,
        *,
        choice_text: str | None = None,
        choice_quality: ChoiceQuality | None = None,
        choice_prompt: str | None = None,
        voice_id: str | None = None,
        emotion: Emotion = Emotion.WARM,
        base_url: str | None = None,
    ) -> Segment:
        logger.debug("Synthesizing %s for session %s", segment_id, session_id)
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="segment") as pool:
            audio_future = pool.submit(
                self._narrate, session_id, segment_id, text, emotion, voice_id, base_url
            )
            image_future = pool.submit(self._illustrate, session_id, segment_id, text, base_url)
            audio_url = audio_future.result()
            image_url = image_future.result()

        return Segment(
            id=segment_id,
            text=text,
            audio_url=audio_url,
            image_url=image_url,
            checkpoint_number=checkpoint_number,
            choice_text=choice_text,
            choice_quality=choice_quality,
            choice_prompt=choice_prompt,
        )

    def _narrate(
        self,
        session_id: str,
        segment_id: str,
        text: str,
        emotion: Emotion,
        voice_id: str | None,
        base_url: str | None,
    ) -> str:
        audio = self._speech.synthesize(text, emotion=emotion, voice_id=voice_id)
        key = self._artifacts.put(ArtifactKind.AUDIO, session_id, segment_id, audio)
        return self._artifacts.url_for(ArtifactKind.AUDIO, key, base_url=base_url)

    def _illustrate(
        self,
        session_id: str,
        segment_id: str,
        text: str,
        base_url: str | None,
    ) -> str:
        image = self._images.generate(text)
        key = self._artifacts.put(ArtifactKind.IMAGE, session_id, segment_id, image)
        return self._artifacts.url_for(ArtifactKind.IMAGE, key, base_url=base_url)
