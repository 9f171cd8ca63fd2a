"""
Orchestrates the interactive story lifecycle: start, continue, branch status and evaluation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from pydantic import ValidationError as PydanticValidationError

from taleweaver.ai_generation import IllustrationGenerator, SpeechSynthesizer, StoryTextGenerator
from taleweaver.common import CompletionCallable, Settings, ValidationError
from taleweaver.sessions import (
    ArtifactStore,
    Branch,
    BranchStatus,
    KeyValueBackend,
    Segment,
    Session,
    SessionStore,
    backend_from_url,
    new_session_id,
)
from taleweaver.story_generation import (
    BranchChoicesResponse,
    BranchLetter,
    ChildProfile,
    ChoiceQuality,
    MoralFocus,
    OpeningSegmentResponse,
    StoryEvaluation,
    StoryPromptResponse,
    StoryTextResponse,
    build_branch_choices_prompt,
    build_evaluation_prompt,
    build_opening_segment_prompt,
    build_story_premise_prompt,
    build_story_text_prompt,
    calculate_story_structure,
    segment_id,
)

from .branches import BranchOrchestrator
from .scheduler import BranchJob, BranchScheduler
from .synthesizer import SegmentSynthesizer

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, dict[str, Any]], None]


@dataclass
class StoryStart:
    """Result of starting a story."""

    session: Session
    segment: Segment
    story_complete: bool
    next_branches: tuple[Branch, Branch] | None = None


@dataclass
class StoryStep:
    """Result of choosing a branch."""

    session: Session
    segment: Segment
    story_complete: bool
    next_branches: tuple[Branch, Branch] | None = None

    @property
    def current_checkpoint(self) -> int:
        return self.session.current_checkpoint


@dataclass(frozen=True)
class BranchStatusReport:
    session_id: str
    branches_ready: bool
    generation_in_progress: bool
    current_checkpoint: int
    total_checkpoints: int
    status: BranchStatus
    attempts: int = 0
    error: str | None = None
    scheduled: bool = field(default=False, compare=False)

    @classmethod
    def from_session(cls, session: Session, *, scheduled: bool = False) -> "BranchStatusReport":
        generation = session.branch_generation
        return cls(
            session_id=session.session_id,
            branches_ready=session.next_branches_ready,
            generation_in_progress=session.generation_in_progress,
            current_checkpoint=session.current_checkpoint,
            total_checkpoints=session.total_checkpoints,
            status=generation.status,
            attempts=generation.attempts,
            error=generation.error,
            scheduled=scheduled,
        )


class TaleWeaverOrchestrator:
    """
    High-level coordinator chaining text, narration and illustration generation
    with session persistence and background branch pre-generation.
    """

    def __init__(
        self,
        *,
        store: SessionStore,
        artifacts: ArtifactStore,
        text_generator: StoryTextGenerator,
        speech: SpeechSynthesizer,
        images: IllustrationGenerator,
        branch_workers: int = 4,
        branch_job_timeout_seconds: float | None = 600.0,
        branch_job_max_attempts: int = 1,
    ) -> None:
        self._store = store
        self._artifacts = artifacts
        self._text = text_generator
        self._synthesizer = SegmentSynthesizer(speech=speech, images=images, artifacts=artifacts)
        self._branches = BranchOrchestrator(self._synthesizer)
        self._scheduler = BranchScheduler(
            store,
            self._generate_branches,
            max_workers=branch_workers,
            timeout_seconds=branch_job_timeout_seconds,
            max_attempts=branch_job_max_attempts,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        backend: KeyValueBackend | None = None,
        completion_fn: CompletionCallable | None = None,
    ) -> "TaleWeaverOrchestrator":
        """Wire every collaborator from :class:`Settings` and environment credentials."""
        store = SessionStore(
            backend or backend_from_url(settings.session_store_url),
            ttl_seconds=settings.session_ttl_seconds,
        )
        return cls(
            store=store,
            artifacts=ArtifactStore(settings.media_root, public_url=settings.artifact_public_url),
            text_generator=StoryTextGenerator(
                completion_fn=completion_fn, enabled=not settings.disable_text
            ),
            speech=SpeechSynthesizer(enabled=not settings.disable_speech),
            images=IllustrationGenerator(
                aspect_ratio=settings.image_aspect_ratio, enabled=not settings.disable_images
            ),
            branch_workers=settings.branch_workers,
            branch_job_timeout_seconds=settings.branch_job_timeout_seconds,
            branch_job_max_attempts=settings.branch_job_max_attempts,
        )

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def artifacts(self) -> ArtifactStore:
        return self._artifacts

    @property
    def scheduler(self) -> BranchScheduler:
        return self._scheduler

    def start_story(
        self,
        child: ChildProfile | Mapping[str, Any],
        *,
        moral_focus: MoralFocus | str,
        story_length: int,
        interactive: bool = True,
        narrator_voice_id: str | None = None,
        base_url: str | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> StoryStart:
        """
        Create a session, narrate its opening segment and queue the first branches.

        Raises
        ------
        ValidationError
            For an invalid child profile, moral focus or story length.
        GenerationError
            If the premise, opening text, narration or illustration fails.
        """
        structure = calculate_story_structure(story_length, interactive)
        profile = _coerce_profile(child)
        focus = _coerce_moral_focus(moral_focus)
        self._notify(progress_callback, "profile:ready", name=profile.name, interactive=interactive)

        self._notify(progress_callback, "premise:generating")
        premise = self._text.generate(
            build_story_premise_prompt(
                profile,
                moral_focus=focus,
                story_length=story_length,
                interactive=interactive,
                total_words=structure.total_words,
            ),
            StoryPromptResponse,
        )
        self._notify(progress_callback, "premise:generated", theme=premise.story_theme)

        self._notify(progress_callback, "segment:writing", checkpoint=0)
        if interactive:
            opening = self._text.generate(
                build_opening_segment_prompt(
                    profile,
                    story_prompt=premise.story_prompt,
                    moral_focus=focus,
                    words_per_segment=structure.words_per_segment,
                ),
                OpeningSegmentResponse,
            )
            text = opening.segment_text
        else:
            story = self._text.generate(
                build_story_text_prompt(
                    profile,
                    story_prompt=premise.story_prompt,
                    moral_focus=focus,
                    total_words=structure.total_words,
                ),
                StoryTextResponse,
            )
            text = story.story_text

        session_id = new_session_id()
        self._notify(progress_callback, "segment:synthesizing", segment_id=segment_id(0))
        segment = self._synthesizer.synthesize(
            session_id,
            segment_id(0),
            text,
            0,
            voice_id=narrator_voice_id,
            base_url=base_url,
        )

        session = Session(
            session_id=session_id,
            child=profile,
            moral_focus=focus,
            story_length=story_length,
            interactive=interactive,
            story_prompt=premise.story_prompt,
            narrator_voice_id=narrator_voice_id,
            total_words=structure.total_words,
            total_checkpoints=structure.total_checkpoints,
            words_per_segment=structure.words_per_segment,
            segments=[segment],
        )
        self._store.create(session)
        logger.info(
            "Started %s story %s for %s (%d checkpoint(s))",
            "interactive" if interactive else "linear",
            session_id,
            profile.name,
            structure.total_checkpoints,
        )

        if not session.is_complete:
            self._scheduler.schedule(
                BranchJob(
                    session_id=session_id,
                    target_checkpoint=session.next_checkpoint,
                    upstream_text=segment.text,
                    base_url=base_url,
                )
            )
        self._notify(progress_callback, "segment:ready", segment_id=segment.id)

        return StoryStart(
            session=session,
            segment=segment,
            story_complete=session.is_complete,
            next_branches=session.branch_pair(session.next_checkpoint),
        )

    def continue_story(
        self,
        session_id: str,
        checkpoint: int,
        chosen_branch: BranchLetter | str,
        *,
        base_url: str | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> StoryStep:
        """
        Advance the story along the chosen branch and queue the following checkpoint.

        Raises
        ------
        SessionNotFoundError
            If the session expired.
        ValidationError
            If the checkpoint is out of sequence or the chosen branch is not ready.
        """
        try:
            letter = BranchLetter(str(chosen_branch).upper())
        except ValueError as exc:
            raise ValidationError(f"chosen_branch must be 'A' or 'B', got {chosen_branch!r}") from exc

        chosen: list[Segment] = []

        def advance(session: Session) -> None:
            chosen.clear()
            chosen.append(session.choose_branch(checkpoint, letter))

        session = self._store.mutate(session_id, advance)
        segment = chosen[0]
        self._notify(
            progress_callback,
            "checkpoint:advanced",
            checkpoint=checkpoint,
            choice=letter.value,
            segment_id=segment.id,
        )

        if session.is_complete:
            logger.info("Session %s reached its final segment", session_id)
            self._notify(progress_callback, "story:complete", session_id=session_id)
        else:
            self._scheduler.schedule(
                BranchJob(
                    session_id=session_id,
                    target_checkpoint=session.next_checkpoint,
                    upstream_text=segment.text,
                    base_url=base_url,
                )
            )

        return StoryStep(
            session=session,
            segment=segment,
            story_complete=session.is_complete,
            next_branches=session.branch_pair(session.next_checkpoint),
        )

    def branch_status(self, session_id: str) -> BranchStatusReport:
        return BranchStatusReport.from_session(self._store.load(session_id))

    def get_branches(self, session_id: str, checkpoint: int) -> tuple[Branch, Branch] | None:
        """Return the stored (A, B) pair for ``checkpoint``, or ``None`` if not generated yet."""
        return self._store.load(session_id).branch_pair(checkpoint)

    def retry_branches(self, session_id: str, *, base_url: str | None = None) -> BranchStatusReport:
        """
        Re-queue branch generation after a failure or a lost job.

        Raises
        ------
        ValidationError
            If the story has no further checkpoints.
        """
        session = self._store.load(session_id)
        if session.is_complete:
            raise ValidationError("Story is complete; there are no branches to generate")

        status = session.branch_generation.status
        if status is BranchStatus.READY or self._scheduler.is_pending(session_id):
            return BranchStatusReport.from_session(session)

        self._scheduler.schedule(
            BranchJob(
                session_id=session_id,
                target_checkpoint=session.next_checkpoint,
                upstream_text=session.current_segment().text,
                base_url=base_url,
            )
        )
        logger.info(
            "Re-queued branches for session %s checkpoint %d (was %s)",
            session_id,
            session.next_checkpoint,
            status.value,
        )
        return BranchStatusReport.from_session(session, scheduled=True)

    def evaluate_story(self, session_id: str) -> StoryEvaluation:
        """
        Reflect on the choices made in a completed interactive story.

        The first evaluation is cached on the session and returned on later calls.
        """
        session = self._store.load(session_id)
        if not session.interactive:
            raise ValidationError("Evaluation is only available for interactive stories")
        if not session.is_complete:
            raise ValidationError(
                f"Story is not complete yet (checkpoint {session.current_checkpoint} "
                f"of {session.total_checkpoints})"
            )
        if session.evaluation is not None:
            return session.evaluation

        records = session.choice_records()
        evaluation = self._text.generate(
            build_evaluation_prompt(
                session.child,
                story_prompt=session.story_prompt,
                moral_focus=session.moral_focus,
                choices=records,
            ),
            StoryEvaluation,
        )
        growth = sum(1 for record in records if record.quality is ChoiceQuality.GROWTH_ORIENTED)
        evaluation = evaluation.model_copy(
            update={"growth_oriented_count": growth, "total_choices": len(records)}
        )

        def cache(stored: Session) -> None:
            if stored.evaluation is None:
                stored.evaluation = evaluation

        stored = self._store.mutate(session_id, cache)
        return stored.evaluation or evaluation

    def shutdown(self, wait: bool = True) -> None:
        self._scheduler.shutdown(wait=wait)

    def _generate_branches(self, session: Session, job: BranchJob) -> tuple[Branch, Branch]:
        choices = self._text.generate(
            build_branch_choices_prompt(
                session.child,
                story_prompt=session.story_prompt,
                moral_focus=session.moral_focus,
                words_per_segment=session.words_per_segment,
                chosen_path=[letter.value for letter in session.chosen_path],
                target_checkpoint=job.target_checkpoint,
                total_checkpoints=session.total_checkpoints,
                previous_segment_text=job.upstream_text,
            ),
            BranchChoicesResponse,
        )
        return self._branches.create_branch_pair(
            session.session_id,
            choice_a_text=choices.choice_a.text,
            segment_a_text=choices.choice_a.next_segment,
            choice_b_text=choices.choice_b.text,
            segment_b_text=choices.choice_b.next_segment,
            next_checkpoint=job.target_checkpoint,
            base_id=segment_id(job.target_checkpoint),
            choice_a_quality=choices.choice_a.quality,
            choice_b_quality=choices.choice_b.quality,
            choice_prompt=choices.choice_prompt,
            voice_id=session.narrator_voice_id,
            base_url=job.base_url,
        )

    @staticmethod
    def _notify(
        callback: ProgressCallback | None,
        stage: str,
        **payload: Any,
    ) -> None:
        if callback is not None:
            callback(stage, payload)


def _coerce_profile(child: ChildProfile | Mapping[str, Any]) -> ChildProfile:
    if isinstance(child, ChildProfile):
        return child
    try:
        return ChildProfile.from_mapping(child)
    except (PydanticValidationError, ValueError, TypeError) as exc:
        raise ValidationError(f"Invalid child profile: {exc}") from exc


def _coerce_moral_focus(value: MoralFocus | str) -> MoralFocus:
    try:
        return MoralFocus(value)
    except ValueError as exc:
        allowed = ", ".join(focus.value for focus in MoralFocus)
        raise ValidationError(f"moral_focus must be one of {allowed}, got {value!r}") from exc
