"""
Clients for the external text, speech and image generation services.
"""

from .image import IllustrationGenerator, normalize_image_outputs
from .prompting import IllustrationPrompt, build_illustration_prompt
from .speech import Emotion, SpeechSynthesizer
from .text import StoryTextGenerator

__all__ = [
    "Emotion",
    "IllustrationGenerator",
    "IllustrationPrompt",
    "SpeechSynthesizer",
    "StoryTextGenerator",
    "build_illustration_prompt",
    "normalize_image_outputs",
]
