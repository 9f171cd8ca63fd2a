"""
Story generation utilities for crafting personalized TaleWeaver narratives.
"""

from .profile import AgeRange, ChildProfile, Gender, Pronouns
from .prompting import (
    ChoiceRecord,
    StoryPrompt,
    build_branch_choices_prompt,
    build_evaluation_prompt,
    build_opening_segment_prompt,
    build_story_premise_prompt,
    build_story_text_prompt,
)
from .responses import (
    BranchChoicesResponse,
    BranchOption,
    OpeningSegmentResponse,
    StoryEvaluation,
    StoryPromptResponse,
    StoryTextResponse,
)
from .structure import (
    WORDS_PER_MINUTE,
    BranchLetter,
    StoryStructure,
    calculate_story_structure,
    is_final_checkpoint,
    segment_id,
)
from .themes import ChoiceQuality, MoralFocus, theme_for

__all__ = [
    "AgeRange",
    "BranchChoicesResponse",
    "BranchLetter",
    "BranchOption",
    "ChildProfile",
    "ChoiceQuality",
    "ChoiceRecord",
    "Gender",
    "MoralFocus",
    "OpeningSegmentResponse",
    "Pronouns",
    "StoryEvaluation",
    "StoryPrompt",
    "StoryPromptResponse",
    "StoryStructure",
    "StoryTextResponse",
    "WORDS_PER_MINUTE",
    "build_branch_choices_prompt",
    "build_evaluation_prompt",
    "build_opening_segment_prompt",
    "build_story_premise_prompt",
    "build_story_text_prompt",
    "calculate_story_structure",
    "is_final_checkpoint",
    "segment_id",
    "theme_for",
]
