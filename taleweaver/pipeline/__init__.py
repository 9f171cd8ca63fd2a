"""
Pipeline orchestration for narrated, branching stories.
"""

from .branches import BranchOrchestrator
from .pipeline import BranchStatusReport, StoryStart, StoryStep, TaleWeaverOrchestrator
from .scheduler import BranchJob, BranchScheduler
from .synthesizer import SegmentSynthesizer
from .transcript import build_transcript, transcript_to_yaml

__all__ = [
    "BranchJob",
    "BranchOrchestrator",
    "BranchScheduler",
    "BranchStatusReport",
    "SegmentSynthesizer",
    "StoryStart",
    "StoryStep",
    "TaleWeaverOrchestrator",
    "build_transcript",
    "transcript_to_yaml",
]
