"""
Schemas for the structured JSON replies expected from the story model.

Each schema exposes ``stub()`` returning a valid placeholder instance, used when
text generation is disabled.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from .themes import ChoiceQuality, GrowTheme, SELCompetency

_STUB_SENTENCE = (
    "Once upon a time, under a sky full of sleepy stars, a curious child set out "
    "on a gentle adventure."
)


class StoryPromptResponse(BaseModel):
    story_prompt: str = Field(min_length=1)
    story_theme: str | None = None

    @classmethod
    def stub(cls) -> "StoryPromptResponse":
        return cls(story_prompt=_STUB_SENTENCE, story_theme="adventure")


class StoryTextResponse(BaseModel):
    story_text: str = Field(min_length=1)

    @classmethod
    def stub(cls) -> "StoryTextResponse":
        return cls(story_text=_STUB_SENTENCE + " And then everyone slept soundly. The end.")


class OpeningSegmentResponse(BaseModel):
    segment_text: str = Field(min_length=1)

    @classmethod
    def stub(cls) -> "OpeningSegmentResponse":
        return cls(segment_text=_STUB_SENTENCE)


class BranchOption(BaseModel):
    text: str = Field(min_length=1)
    quality: ChoiceQuality
    next_segment: str = Field(min_length=1)


class BranchChoicesResponse(BaseModel):
    choice_prompt: str | None = None
    choice_a: BranchOption
    choice_b: BranchOption

    @classmethod
    def stub(cls) -> "BranchChoicesResponse":
        return cls(
            choice_prompt="What should happen next?",
            choice_a=BranchOption(
                text="Offer to help a friend",
                quality=ChoiceQuality.GROWTH_ORIENTED,
                next_segment="Together they found the lost lantern and laughed all the way home.",
            ),
            choice_b=BranchOption(
                text="Keep walking alone",
                quality=ChoiceQuality.LESS_IDEAL,
                next_segment="The path felt long and quiet, and soon they wished for company.",
            ),
        )


class StoryEvaluation(BaseModel):
    summary: str = Field(min_length=50, max_length=600)
    sel_competencies_demonstrated: list[SELCompetency] = Field(default_factory=list)
    grow_themes_demonstrated: list[GrowTheme] = Field(default_factory=list)
    growth_oriented_count: int = Field(ge=0)
    total_choices: int = Field(ge=1)
    key_moments: list[str] = Field(default_factory=list, max_length=3)

    @model_validator(mode="after")
    def _check_counts(self) -> "StoryEvaluation":
        if self.growth_oriented_count > self.total_choices:
            raise ValueError("growth_oriented_count cannot exceed total_choices")
        return self

    @classmethod
    def stub(cls) -> "StoryEvaluation":
        return cls(
            summary=(
                "You made thoughtful choices throughout this story and showed how small "
                "decisions can make a big difference to the people around you."
            ),
            growth_oriented_count=0,
            total_choices=1,
        )
