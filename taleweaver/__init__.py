"""
TaleWeaver package exposing interactive story generation, sessions, and pipeline tooling.
"""

from .common import Settings
from .pipeline import (
    BranchJob,
    BranchScheduler,
    BranchStatusReport,
    StoryStart,
    StoryStep,
    TaleWeaverOrchestrator,
)
from .story_generation import ChildProfile, MoralFocus

__all__ = [
    "BranchJob",
    "BranchScheduler",
    "BranchStatusReport",
    "ChildProfile",
    "MoralFocus",
    "Settings",
    "StoryStart",
    "StoryStep",
    "TaleWeaverOrchestrator",
]
