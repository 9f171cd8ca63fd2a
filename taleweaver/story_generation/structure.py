"""
Story structure arithmetic: word budgets, checkpoints and segment identifiers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from taleweaver.common.errors import ValidationError

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 150
MIN_STORY_MINUTES = 1
MAX_STORY_MINUTES = 5


class BranchLetter(str, Enum):
    A = "A"
    B = "B"


@dataclass(frozen=True)
class StoryStructure:
    total_words: int
    total_checkpoints: int
    total_segments: int
    words_per_segment: int


def calculate_story_structure(story_length_minutes: int, interactive: bool) -> StoryStructure:
    """
    Derive the word and checkpoint budget for a story.

    A three-minute interactive story gets three checkpoints and four segments:
    ``segment_1 -> choice 1 -> segment_2 -> choice 2 -> segment_3 -> choice 3 -> segment_4``.
    Non-interactive stories are a single segment carrying the whole word budget.
    """
    if isinstance(story_length_minutes, bool) or not isinstance(story_length_minutes, int):
        raise ValidationError(
            f"Story length must be a whole number of minutes, got {story_length_minutes!r}"
        )
    if not MIN_STORY_MINUTES <= story_length_minutes <= MAX_STORY_MINUTES:
        raise ValidationError(
            f"Story length must be between {MIN_STORY_MINUTES} and {MAX_STORY_MINUTES} minutes, "
            f"got {story_length_minutes}"
        )

    total_words = story_length_minutes * WORDS_PER_MINUTE
    total_checkpoints = story_length_minutes if interactive else 0
    total_segments = total_checkpoints + 1
    structure = StoryStructure(
        total_words=total_words,
        total_checkpoints=total_checkpoints,
        total_segments=total_segments,
        words_per_segment=total_words // total_segments,
    )
    logger.debug("Story structure for %d minute(s), interactive=%s: %s", story_length_minutes, interactive, structure)
    return structure


def segment_id(checkpoint: int, branch: BranchLetter | str | None = None) -> str:
    """
    Return the identifier of the segment reached at ``checkpoint``.

    Checkpoint 0 is the opening segment ``segment_1``; branch segments carry a
    lower-case suffix, e.g. ``segment_2a`` / ``segment_2b`` for checkpoint 1.
    """
    if checkpoint < 0:
        raise ValueError("checkpoint must be non-negative.")
    base = f"segment_{checkpoint + 1}"
    if branch is None:
        return base
    return base + BranchLetter(branch).value.lower()


def is_final_checkpoint(current_checkpoint: int, total_checkpoints: int) -> bool:
    return current_checkpoint == total_checkpoints
