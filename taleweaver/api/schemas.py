from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from taleweaver.sessions import Branch, BranchStatus, Segment
from taleweaver.story_generation import MoralFocus, StoryEvaluation


class StoryStartRequest(BaseModel):
    child: dict[str, Any]
    moral_focus: MoralFocus
    story_length: int
    interactive: bool = True
    narrator_voice_id: Optional[str] = None


class StoryStartResponse(BaseModel):
    session_id: str
    segment: Segment
    next_branches: Optional[list[Branch]] = None
    story_complete: bool
    current_checkpoint: int
    total_checkpoints: int


class StoryContinueRequest(BaseModel):
    session_id: str = Field(min_length=1)
    checkpoint: int = Field(ge=1)
    chosen_branch: str


class StoryContinueResponse(BaseModel):
    segment: Segment
    next_branches: Optional[list[Branch]] = None
    story_complete: bool
    current_checkpoint: int


class BranchStatusResponse(BaseModel):
    branches_ready: bool
    generation_in_progress: bool
    current_checkpoint: int
    total_checkpoints: int
    status: BranchStatus
    attempts: int
    error: Optional[str] = None


class BranchRetryResponse(BranchStatusResponse):
    scheduled: bool


class BranchesResponse(BaseModel):
    checkpoint: int
    branches_ready: bool
    choice_prompt: Optional[str] = None
    branches: list[Branch] = Field(default_factory=list)


class StoryEvaluateRequest(BaseModel):
    session_id: str = Field(min_length=1)


class StoryEvaluateResponse(BaseModel):
    evaluation: StoryEvaluation


class ErrorResponse(BaseModel):
    error: str
    message: str
    service: Optional[str] = None
