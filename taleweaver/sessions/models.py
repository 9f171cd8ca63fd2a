"""
Story session schemas.

A :class:`Session` is the aggregate persisted in the key-value store. Its
validator enforces the structural invariants, so a session that breaks them can
neither be saved nor loaded.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from taleweaver.common.errors import ValidationError
from taleweaver.story_generation import (
    BranchLetter,
    ChildProfile,
    ChoiceQuality,
    ChoiceRecord,
    MoralFocus,
    StoryEvaluation,
    segment_id,
)

_SEGMENT_ID = re.compile(r"^segment_(\d+)([ab])?$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_session_id() -> str:
    return uuid.uuid4().hex


class Segment(BaseModel):
    """A narrated unit of story text. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str = Field(min_length=1)
    audio_url: str
    image_url: str | None = None
    checkpoint_number: int = Field(ge=0)
    choice_text: str | None = None
    choice_quality: ChoiceQuality | None = None
    choice_prompt: str | None = None

    @model_validator(mode="after")
    def _check_id(self) -> "Segment":
        match = _SEGMENT_ID.match(self.id)
        if match is None or int(match.group(1)) != self.checkpoint_number + 1:
            raise ValueError(
                f"Segment id {self.id!r} does not match checkpoint {self.checkpoint_number}"
            )
        return self

    @property
    def branch(self) -> BranchLetter | None:
        suffix = _SEGMENT_ID.match(self.id).group(2)
        return BranchLetter(suffix.upper()) if suffix else None


class Branch(BaseModel):
    """One of the two continuations offered at a checkpoint."""

    model_config = ConfigDict(frozen=True)

    choice_value: BranchLetter
    choice_text: str
    segment: Segment


class BranchStatus(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    READY = "ready"
    FAILED = "failed"


class BranchGeneration(BaseModel):
    """Progress of background generation for the next checkpoint's branches."""

    status: BranchStatus = BranchStatus.IDLE
    target_checkpoint: int | None = None
    attempts: int = Field(default=0, ge=0)
    error: str | None = None
    updated_at: datetime | None = None


class Session(BaseModel):
    session_id: str = Field(default_factory=new_session_id, min_length=1)
    version: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=_utcnow)

    child: ChildProfile
    moral_focus: MoralFocus
    story_length: int = Field(ge=1)
    interactive: bool
    story_prompt: str
    narrator_voice_id: str | None = None
    total_words: int = Field(ge=1)
    total_checkpoints: int = Field(ge=0)
    words_per_segment: int = Field(ge=1)

    current_checkpoint: int = Field(default=0, ge=0)
    chosen_path: list[BranchLetter] = Field(default_factory=list)
    segments: list[Segment] = Field(default_factory=list)
    next_branches_ready: bool = False
    generation_in_progress: bool = False
    branch_generation: BranchGeneration = Field(default_factory=BranchGeneration)
    evaluation: StoryEvaluation | None = None

    @model_validator(mode="after")
    def _check_invariants(self) -> "Session":
        if not self.interactive and self.total_checkpoints != 0:
            raise ValueError("Non-interactive sessions cannot have checkpoints")
        if self.current_checkpoint > self.total_checkpoints:
            raise ValueError("current_checkpoint exceeds total_checkpoints")
        if len(self.chosen_path) != self.current_checkpoint:
            raise ValueError("chosen_path length must equal current_checkpoint")

        ids = [segment.id for segment in self.segments]
        if len(ids) != len(set(ids)):
            raise ValueError("Segment ids must be unique")

        next_checkpoint = self.current_checkpoint + 1
        if any(segment.checkpoint_number > next_checkpoint for segment in self.segments):
            raise ValueError("Segments exist beyond the next checkpoint")

        pending = [s for s in self.segments if s.checkpoint_number == next_checkpoint]
        if len(pending) not in (0, 2) or (
            pending and {s.branch for s in pending} != {BranchLetter.A, BranchLetter.B}
        ):
            raise ValueError("Next checkpoint must have either no branches or exactly one A and one B")

        if self.next_branches_ready != bool(pending):
            raise ValueError("next_branches_ready must be true exactly when both branches exist")
        status = self.branch_generation.status
        if self.next_branches_ready != (status is BranchStatus.READY):
            raise ValueError("next_branches_ready disagrees with branch_generation status")
        if self.generation_in_progress != (status is BranchStatus.GENERATING):
            raise ValueError("generation_in_progress disagrees with branch_generation status")
        return self

    @property
    def next_checkpoint(self) -> int:
        return self.current_checkpoint + 1

    @property
    def is_complete(self) -> bool:
        return self.current_checkpoint == self.total_checkpoints

    def get_segment(self, seg_id: str) -> Segment | None:
        for segment in self.segments:
            if segment.id == seg_id:
                return segment
        return None

    def current_segment(self) -> Segment:
        """Return the segment the child is currently listening to."""
        letter = self.chosen_path[-1] if self.chosen_path else None
        seg_id = segment_id(self.current_checkpoint, letter)
        segment = self.get_segment(seg_id)
        if segment is None:
            raise ValueError(f"Session {self.session_id} has no segment {seg_id}")
        return segment

    def branch_pair(self, checkpoint: int) -> tuple[Branch, Branch] | None:
        """Return the (A, B) branches for ``checkpoint``, or ``None`` if either is missing."""
        if checkpoint < 1:
            return None
        branches = []
        for letter in (BranchLetter.A, BranchLetter.B):
            segment = self.get_segment(segment_id(checkpoint, letter))
            if segment is None:
                return None
            branches.append(
                Branch(choice_value=letter, choice_text=segment.choice_text or "", segment=segment)
            )
        return branches[0], branches[1]

    def mark_generating(self, target_checkpoint: int, attempts: int) -> None:
        self._set_generation(BranchStatus.GENERATING, target_checkpoint, attempts=attempts)

    def mark_failed(self, target_checkpoint: int, reason: str, attempts: int) -> None:
        self._set_generation(BranchStatus.FAILED, target_checkpoint, attempts=attempts, error=reason)

    def reset_generation(self) -> None:
        self._set_generation(BranchStatus.IDLE, None, attempts=0)

    def attach_branches(self, branch_a: Branch, branch_b: Branch, attempts: int) -> None:
        """Append the next checkpoint's branch segments and mark them ready."""
        target = self.next_checkpoint
        if self.branch_pair(target) is not None:
            raise ValidationError(f"Branches for checkpoint {target} already exist")
        if branch_a.choice_value is not BranchLetter.A or branch_b.choice_value is not BranchLetter.B:
            raise ValidationError("Branches must be attached in (A, B) order")
        for branch in (branch_a, branch_b):
            if branch.segment.checkpoint_number != target:
                raise ValidationError(
                    f"Branch segment {branch.segment.id} does not belong to checkpoint {target}"
                )
        self.segments.extend([branch_a.segment, branch_b.segment])
        self._set_generation(BranchStatus.READY, target, attempts=attempts)

    def choose_branch(self, checkpoint: int, letter: BranchLetter | str) -> Segment:
        """
        Advance the story along ``letter`` at ``checkpoint``.

        Raises
        ------
        ValidationError
            If the checkpoint is out of sequence or its branch segment does not exist yet.
        """
        letter = BranchLetter(letter)
        if not self.interactive:
            raise ValidationError("Story is not interactive")
        if checkpoint != self.next_checkpoint or checkpoint > self.total_checkpoints:
            raise ValidationError(
                f"Expected checkpoint {self.next_checkpoint}, got {checkpoint}"
            )
        segment = self.get_segment(segment_id(checkpoint, letter))
        if segment is None:
            raise ValidationError(f"Branches for checkpoint {checkpoint} are not ready yet")

        self.chosen_path.append(letter)
        self.current_checkpoint = checkpoint
        self.reset_generation()
        return segment

    def choice_records(self) -> list[ChoiceRecord]:
        records: list[ChoiceRecord] = []
        for checkpoint, letter in enumerate(self.chosen_path, start=1):
            segment = self.get_segment(segment_id(checkpoint, letter))
            records.append(
                ChoiceRecord(
                    checkpoint=checkpoint,
                    letter=letter.value,
                    text=segment.choice_text if segment and segment.choice_text else letter.value,
                    quality=segment.choice_quality if segment else None,
                )
            )
        return records

    def _set_generation(
        self,
        status: BranchStatus,
        target_checkpoint: int | None,
        *,
        attempts: int,
        error: str | None = None,
    ) -> None:
        self.branch_generation = BranchGeneration(
            status=status,
            target_checkpoint=target_checkpoint,
            attempts=attempts,
            error=error,
            updated_at=_utcnow(),
        )
        self.generation_in_progress = status is BranchStatus.GENERATING
        self.next_branches_ready = status is BranchStatus.READY
