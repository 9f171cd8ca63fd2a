"""
Prompt construction utilities for the TaleWeaver story workflow.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .profile import ChildProfile
from .themes import ChoiceQuality, MoralFocus, theme_for

SYSTEM_PROMPT = """You are TaleWeaver, a warm children's bedtime storyteller and social-emotional learning coach.
You write personalized, calming stories in which the child is the hero and gently learns a value chosen by their family.

Writing directives:
- Keep every scene bedtime-appropriate: no scary, violent or upsetting content.
- Honour the child's profile (name, pronouns, interests, context) naturally instead of listing it.
- Follow the requested word counts closely; they control narration length.
- Write prose meant to be read aloud: clear rhythm, gentle repetition, sensory detail.
- Never include author notes, meta commentary, or mention that you are an AI.
- Always answer with a single strict JSON object and nothing else."""


@dataclass(frozen=True)
class StoryPrompt:
    """
    Container for the system and user prompts passed to the story model.
    """

    system: str
    user: str


@dataclass(frozen=True)
class ChoiceRecord:
    """A choice the child made, as described to the evaluation prompt."""

    checkpoint: int
    letter: str
    text: str
    quality: ChoiceQuality | None = None


def _character_line(child: ChildProfile) -> str:
    pronouns = child.pronouns
    return f"{child.name} (use {pronouns.subject}/{pronouns.object}/{pronouns.possessive})"


def _language_block(child: ChildProfile) -> str:
    guidelines = child.guidelines
    return (
        f"AGE-APPROPRIATE LANGUAGE (Ages {child.age_range.value}):\n"
        f"- Reading level: {guidelines.reading_level}\n"
        f"- Vocabulary: {guidelines.complexity}\n"
        f"- Sentence structure: {guidelines.sentence_length}\n"
        f"- Use words like: {', '.join(guidelines.example_vocabulary)}\n"
        f"- AVOID words like: {', '.join(guidelines.avoid_vocabulary)}\n"
        f"- Maximum {guidelines.max_syllables_per_word} syllables per word"
    )


def _choice_design_block(moral_focus: MoralFocus) -> str:
    theme = theme_for(moral_focus)
    value = moral_focus.value
    return f"""CHOICE DESIGN FOR "{value}":
Choice A is GROWTH-ORIENTED:
- Demonstrates the value of {value}
- Uses ideas like: {', '.join(theme.growth_keywords[:5])}
- Mark it with "quality": "growth_oriented"

Choice B is LESS IDEAL (but never harmful):
- A natural alternative that misses the growth opportunity
- May use ideas like: {', '.join(theme.less_ideal_keywords[:3])}
- Mark it with "quality": "less_ideal"

Both choices continue the story. Choice A leads to outcomes that show the value of {value};
choice B shows why the lesson matters through gentle, kind consequences."""


def build_story_premise_prompt(
    child: ChildProfile,
    *,
    moral_focus: MoralFocus,
    story_length: int,
    interactive: bool,
    total_words: int,
) -> StoryPrompt:
    """
    Build the first-phase prompt that turns the child's profile into a detailed story premise.
    """
    if interactive:
        mode = (
            f"Interactive: the story is split into {story_length + 1} segments with "
            f"{story_length} choice points, each a meaningful decision about {moral_focus.value}."
        )
        arc = f"Key decision points that relate to {moral_focus.value}"
    else:
        mode = "Not interactive: one continuous story without choices."
        arc = "A clear narrative arc with a satisfying resolution"

    plural = "s" if story_length > 1 else ""
    user_prompt = f"""Create a detailed story premise for a personalized bedtime story.

CHILD INFORMATION:
{child.summary_for_prompt()}

STORY REQUIREMENTS:
- Length: {story_length} minute{plural} (approximately {total_words} words)
- {mode}
- Moral focus: {moral_focus.value}, woven in naturally
- Complexity: {child.guidelines.complexity} vocabulary and sentences for ages {child.age_range.value}

The premise must cover:
1. A compelling situation that uses the child's interests
2. The main character ({child.name}) and their personality
3. The setting and the opening situation
4. {arc}

Return STRICT JSON only:
{{
  "story_prompt": "detailed premise for story generation (3-5 sentences)",
  "story_theme": "one-word theme, e.g. friendship, adventure, discovery"
}}"""
    return StoryPrompt(system=SYSTEM_PROMPT, user=user_prompt)


def build_story_text_prompt(
    child: ChildProfile,
    *,
    story_prompt: str,
    moral_focus: MoralFocus,
    total_words: int,
) -> StoryPrompt:
    """
    Build the prompt for a complete, non-interactive story.
    """
    user_prompt = f"""Write a complete bedtime story based on this premise:

{story_prompt}

REQUIREMENTS:
- Main character: {_character_line(child)}
- Length: about {total_words} words
- Moral focus: {moral_focus.value}, woven in naturally
- Tone: warm, engaging, calming
- Ending: a satisfying conclusion with a gentle lesson about {moral_focus.value}

{_language_block(child)}

Return STRICT JSON only:
{{
  "story_text": "the complete story"
}}"""
    return StoryPrompt(system=SYSTEM_PROMPT, user=user_prompt)


def build_opening_segment_prompt(
    child: ChildProfile,
    *,
    story_prompt: str,
    moral_focus: MoralFocus,
    words_per_segment: int,
) -> StoryPrompt:
    """
    Build the prompt for the first segment of an interactive story.

    The segment ends at a decision point; the two continuations are produced later
    by the background branch job.
    """
    user_prompt = f"""Write the FIRST SEGMENT of an interactive bedtime story based on this premise:

{story_prompt}

REQUIREMENTS:
- Main character: {_character_line(child)}
- Length: about {words_per_segment} words
- Tone: warm, engaging, calming
- End at a decision point related to {moral_focus.value}, without listing the options

{_language_block(child)}

Return STRICT JSON only:
{{
  "segment_text": "opening segment"
}}"""
    return StoryPrompt(system=SYSTEM_PROMPT, user=user_prompt)


def build_branch_choices_prompt(
    child: ChildProfile,
    *,
    story_prompt: str,
    moral_focus: MoralFocus,
    words_per_segment: int,
    chosen_path: Sequence[str],
    target_checkpoint: int,
    total_checkpoints: int,
    previous_segment_text: str,
) -> StoryPrompt:
    """
    Build the prompt for the two continuations offered at ``target_checkpoint``.

    At the final checkpoint both continuations must conclude the story.
    """
    path_description = (
        ", ".join(f"choice {index}: {letter}" for index, letter in enumerate(chosen_path, start=1))
        or "no choices yet"
    )
    is_final = target_checkpoint == total_checkpoints

    if is_final:
        outcome = (
            f"Each continuation is the FINAL segment: it completes the story with a warm, "
            f"sleepy ending and a gentle lesson about {moral_focus.value}. Do not end on a new question."
        )
        prompt_hint = "question asking what the child decides at this last turn"
    else:
        outcome = (
            f"Each continuation ends at a NEW decision point related to {moral_focus.value}, "
            "without listing the options."
        )
        prompt_hint = f"question asking what {child.name} should do next"

    user_prompt = f"""Continue an interactive bedtime story. Offer the choice for checkpoint {target_checkpoint} of {total_checkpoints}.

STORY CONTEXT:
{story_prompt}

PREVIOUS SEGMENT:
{previous_segment_text}

PATH TAKEN SO FAR:
{path_description}

REQUIREMENTS:
- Main character: {_character_line(child)}
- Length per continuation: about {words_per_segment} words
- Tone: warm, engaging, calming
- {outcome}

{_language_block(child)}

{_choice_design_block(moral_focus)}

Return STRICT JSON only:
{{
  "choice_prompt": "{prompt_hint}",
  "choice_a": {{
    "text": "growth-oriented choice",
    "quality": "growth_oriented",
    "next_segment": "continuation showing the outcome of choice A"
  }},
  "choice_b": {{
    "text": "less ideal alternative",
    "quality": "less_ideal",
    "next_segment": "continuation showing the outcome of choice B"
  }}
}}"""
    return StoryPrompt(system=SYSTEM_PROMPT, user=user_prompt)


def build_evaluation_prompt(
    child: ChildProfile,
    *,
    story_prompt: str,
    moral_focus: MoralFocus,
    choices: Sequence[ChoiceRecord],
) -> StoryPrompt:
    """
    Build the prompt that reflects on the choices the child made.
    """
    theme = theme_for(moral_focus)
    history = "\n".join(
        f"- Checkpoint {record.checkpoint}: chose {record.letter} \"{record.text}\""
        + (f" ({record.quality.value})" if record.quality else "")
        for record in choices
    )
    growth_count = sum(1 for record in choices if record.quality is ChoiceQuality.GROWTH_ORIENTED)
    pronouns = child.pronouns

    user_prompt = f"""Reflect on the choices {child.name} made in an interactive bedtime story about {moral_focus.value}.

STORY CONTEXT:
{story_prompt}

CHOICES:
{history}

Relevant SEL competencies: {', '.join(item.value for item in theme.sel_competencies)}
Relevant GROW themes: {', '.join(item.value for item in theme.grow_themes)}

Write an encouraging summary addressed to {child.name} ({pronouns.label()}) for ages {child.age_range.value}.
Celebrate growth-oriented choices and frame less ideal ones as gentle learning moments.

Return STRICT JSON only:
{{
  "summary": "50-600 characters of warm feedback",
  "sel_competencies_demonstrated": ["competencies from the list above"],
  "grow_themes_demonstrated": ["themes from the list above"],
  "growth_oriented_count": {growth_count},
  "total_choices": {len(choices)},
  "key_moments": ["up to 3 short highlights"]
}}"""
    return StoryPrompt(system=SYSTEM_PROMPT, user=user_prompt)
