"""
Prompt construction utilities for TaleWeaver illustrations.
"""

from __future__ import annotations

from dataclasses import dataclass

MAX_SCENE_CHARACTERS = 600

NEGATIVE_PROMPT = (
    "text, words, letters, captions, speech bubbles, watermark, logo, scary imagery, "
    "violence, dark horror lighting, realistic photo, distorted faces"
)


@dataclass(frozen=True)
class IllustrationPrompt:
    """Container for the positive and negative prompts passed to the image model."""

    positive: str
    negative: str = NEGATIVE_PROMPT


def build_illustration_prompt(segment_text: str) -> IllustrationPrompt:
    """
    Build a watercolor picture-book prompt for a story segment.

    Long segments are trimmed to their opening so the model focuses on one scene.
    """
    scene = " ".join(segment_text.split())
    if len(scene) > MAX_SCENE_CHARACTERS:
        scene = scene[:MAX_SCENE_CHARACTERS].rsplit(" ", 1)[0] + "..."

    positive = (
        "A gentle, child-friendly watercolor illustration for a bedtime storybook. "
        f"Scene: {scene} "
        "Style: soft pastel watercolor, warm cozy lighting, rounded friendly characters, "
        "dreamy calm atmosphere. NO text, words, or letters anywhere in the image. "
        "Suitable for children aged 4-12."
    )
    return IllustrationPrompt(positive=positive)
