"""
Tests for the child profile and prompt builders.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from taleweaver.story_generation import (
    AgeRange,
    ChildProfile,
    ChoiceQuality,
    ChoiceRecord,
    MoralFocus,
    build_branch_choices_prompt,
    build_evaluation_prompt,
    build_story_premise_prompt,
)


class TestChildProfile:
    """Tests for ChildProfile parsing and validation."""

    def test_from_mapping_with_aliases(self):
        profile = ChildProfile.from_mapping(
            {"name": " Leo ", "age": 5, "hobbies": "trains, space,  ", "sex": "Male"}
        )

        assert profile.name == "Leo"
        assert profile.age_range is AgeRange.YOUNG
        assert profile.interests == ("trains", "space")
        assert profile.pronouns.subject == "he"

    @pytest.mark.parametrize("age, expected", [(4, "4-6"), (7, "7-9"), (9, "7-9"), (11, "10-12")])
    def test_age_to_range(self, age, expected):
        profile = ChildProfile.from_mapping({"name": "Ana", "age": age})
        assert profile.age_range.value == expected

    def test_pronouns_default_to_they(self):
        profile = ChildProfile(name="Sam", age_range="10-12")
        assert profile.pronouns.label() == "they/them/their"

    def test_rejects_too_many_interests(self):
        with pytest.raises(PydanticValidationError):
            ChildProfile(name="Sam", age_range="4-6", interests=["a", "b", "c", "d", "e", "f"])

    @pytest.mark.parametrize("name", ["R2D2", "", "x" * 51])
    def test_rejects_bad_names(self, name):
        with pytest.raises((PydanticValidationError, ValueError)):
            ChildProfile.from_mapping({"name": name, "age_range": "4-6"})

    def test_rejects_long_context(self):
        with pytest.raises(PydanticValidationError):
            ChildProfile(name="Sam", age_range="4-6", context="x" * 121)

    def test_summary_mentions_interests(self, child):
        summary = child.summary_for_prompt()

        assert "- Name: Maya" in summary
        assert "dragons, painting" in summary


class TestPrompts:
    """Tests for the story prompt builders."""

    def test_premise_prompt_describes_checkpoints(self, child):
        prompt = build_story_premise_prompt(
            child, moral_focus=MoralFocus.COURAGE, story_length=3, interactive=True, total_words=450
        )

        assert "4 segments with 3 choice points" in prompt.user
        assert '"story_prompt"' in prompt.user

    def test_final_checkpoint_asks_for_endings(self, child):
        prompt = build_branch_choices_prompt(
            child,
            story_prompt="premise",
            moral_focus=MoralFocus.SHARING,
            words_per_segment=100,
            chosen_path=["A"],
            target_checkpoint=2,
            total_checkpoints=2,
            previous_segment_text="Maya smiled.",
        )

        assert "FINAL segment" in prompt.user
        assert "take turns" in prompt.user

    def test_middle_checkpoint_asks_for_new_decision(self, child):
        prompt = build_branch_choices_prompt(
            child,
            story_prompt="premise",
            moral_focus=MoralFocus.KINDNESS,
            words_per_segment=100,
            chosen_path=[],
            target_checkpoint=1,
            total_checkpoints=3,
            previous_segment_text="Maya smiled.",
        )

        assert "NEW decision point" in prompt.user
        assert "no choices yet" in prompt.user

    def test_evaluation_prompt_counts_growth_choices(self, child):
        prompt = build_evaluation_prompt(
            child,
            story_prompt="premise",
            moral_focus=MoralFocus.HONESTY,
            choices=[
                ChoiceRecord(1, "A", "Tell the truth", ChoiceQuality.GROWTH_ORIENTED),
                ChoiceRecord(2, "B", "Hide the vase", ChoiceQuality.LESS_IDEAL),
            ],
        )

        assert '"growth_oriented_count": 1' in prompt.user
        assert '"total_choices": 2' in prompt.user
