"""
Produces the matched (A, B) branch pair offered at a checkpoint.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

from taleweaver.common.errors import ValidationError
from taleweaver.sessions import Branch
from taleweaver.story_generation import BranchLetter, ChoiceQuality, segment_id

from .synthesizer import SegmentSynthesizer

logger = logging.getLogger(__name__)


class BranchOrchestrator:
    def __init__(self, synthesizer: SegmentSynthesizer) -> None:
        self._synthesizer = synthesizer

    def create_branch_pair(
        self,
        session_id: str,
        *,
        choice_a_text: str,
        segment_a_text: str,
        choice_b_text: str,
        segment_b_text: str,
        next_checkpoint: int,
        base_id: str,
        choice_a_quality: ChoiceQuality = ChoiceQuality.GROWTH_ORIENTED,
        choice_b_quality: ChoiceQuality = ChoiceQuality.LESS_IDEAL,
        choice_prompt: str | None = None,
        voice_id: str | None = None,
        base_url: str | None = None,
    ) -> tuple[Branch, Branch]:
        """
        Synthesize both branch segments concurrently.

        The pair is all-or-nothing: if either side fails the error is raised and no
        branch is returned. The result is always ordered (A, B).
        """
        if next_checkpoint < 1:
            raise ValidationError("Branches start at checkpoint 1")
        expected_base = segment_id(next_checkpoint)
        if base_id != expected_base:
            raise ValidationError(
                f"Base id {base_id!r} does not match checkpoint {next_checkpoint} ({expected_base!r})"
            )

        sides = (
            (BranchLetter.A, choice_a_text, segment_a_text, choice_a_quality),
            (BranchLetter.B, choice_b_text, segment_b_text, choice_b_quality),
        )
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="branch") as pool:
            futures = [
                pool.submit(
                    self._synthesizer.synthesize,
                    session_id,
                    base_id + letter.value.lower(),
                    text,
                    next_checkpoint,
                    choice_text=choice_text,
                    choice_quality=quality,
                    choice_prompt=choice_prompt,
                    voice_id=voice_id,
                    base_url=base_url,
                )
                for letter, choice_text, text, quality in sides
            ]
            segment_a, segment_b = (future.result() for future in futures)

        logger.info("Branch pair %sa/%sb ready for session %s", base_id, base_id, session_id)
        return (
            Branch(choice_value=BranchLetter.A, choice_text=choice_a_text, segment=segment_a),
            Branch(choice_value=BranchLetter.B, choice_text=choice_b_text, segment=segment_b),
        )
