"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import json
from typing import Any, Callable

import pytest

from taleweaver.ai_generation import IllustrationGenerator, SpeechSynthesizer, StoryTextGenerator
from taleweaver.common import ChatResult, Settings
from taleweaver.pipeline import TaleWeaverOrchestrator
from taleweaver.sessions import ArtifactStore, Branch, MemoryBackend, Segment, Session, SessionStore
from taleweaver.story_generation import (
    BranchLetter,
    ChildProfile,
    ChoiceQuality,
    MoralFocus,
    segment_id,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedCompletion:
    """Completion callable replaying canned replies and recording every request."""

    def __init__(self, replies: list[str | dict[str, Any]]) -> None:
        self._replies = list(replies)
        self.calls: list[dict[str, Any]] = []

    def __call__(self, **kwargs: Any) -> ChatResult:
        self.calls.append(kwargs)
        if not self._replies:
            raise RuntimeError("No scripted reply left")
        reply = self._replies.pop(0)
        text = reply if isinstance(reply, str) else json.dumps(reply)
        return ChatResult(text=text, raw=None)

    def user_prompt(self, index: int) -> str:
        return self.calls[index]["messages"][-1]["content"]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend(clock) -> MemoryBackend:
    return MemoryBackend(clock=clock)


@pytest.fixture
def store(backend) -> SessionStore:
    return SessionStore(backend, ttl_seconds=3600)


@pytest.fixture
def artifacts(tmp_path) -> ArtifactStore:
    return ArtifactStore(str(tmp_path / "media"))


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        media_root=str(tmp_path / "media"),
        disable_text=True,
        disable_speech=True,
        disable_images=True,
        branch_workers=2,
        branch_job_timeout_seconds=10,
    )


@pytest.fixture
def child() -> ChildProfile:
    return ChildProfile(
        name="Maya",
        age_range="7-9",
        gender="female",
        interests=("dragons", "painting"),
    )


@pytest.fixture
def make_segment() -> Callable[..., Segment]:
    def build(
        checkpoint: int,
        letter: str | None = None,
        *,
        text: str | None = None,
        session_id: str = "sess",
    ) -> Segment:
        seg_id = segment_id(checkpoint, letter)
        quality = None
        if letter is not None:
            quality = (
                ChoiceQuality.GROWTH_ORIENTED if letter == "A" else ChoiceQuality.LESS_IDEAL
            )
        return Segment(
            id=seg_id,
            text=text or f"Text of {seg_id}.",
            audio_url=f"/audio/{session_id}/{seg_id}.mp3",
            image_url=f"/image/{session_id}/{seg_id}.png",
            checkpoint_number=checkpoint,
            choice_text=f"Choice {letter}" if letter else None,
            choice_quality=quality,
        )

    return build


@pytest.fixture
def make_branches(make_segment) -> Callable[..., tuple[Branch, Branch]]:
    def build(checkpoint: int, session_id: str = "sess") -> tuple[Branch, Branch]:
        return tuple(
            Branch(
                choice_value=letter,
                choice_text=f"Choice {letter.value}",
                segment=make_segment(checkpoint, letter.value, session_id=session_id),
            )
            for letter in (BranchLetter.A, BranchLetter.B)
        )

    return build


@pytest.fixture
def make_session(child, make_segment) -> Callable[..., Session]:
    def build(**overrides: Any) -> Session:
        session_id = overrides.pop("session_id", "sess")
        values: dict[str, Any] = {
            "session_id": session_id,
            "child": child,
            "moral_focus": MoralFocus.KINDNESS,
            "story_length": 2,
            "interactive": True,
            "story_prompt": "Maya finds a lost baby dragon in the garden.",
            "total_words": 300,
            "total_checkpoints": 2,
            "words_per_segment": 100,
            "segments": [make_segment(0, session_id=session_id)],
        }
        values.update(overrides)
        return Session(**values)

    return build


@pytest.fixture
def build_orchestrator(store, artifacts):
    created: list[TaleWeaverOrchestrator] = []

    def build(
        *,
        text: StoryTextGenerator | None = None,
        speech: SpeechSynthesizer | None = None,
        images: IllustrationGenerator | None = None,
        **kwargs: Any,
    ) -> TaleWeaverOrchestrator:
        kwargs.setdefault("branch_workers", 2)
        kwargs.setdefault("branch_job_timeout_seconds", 10)
        orchestrator = TaleWeaverOrchestrator(
            store=store,
            artifacts=artifacts,
            text_generator=text or StoryTextGenerator(enabled=False),
            speech=speech or SpeechSynthesizer(enabled=False),
            images=images or IllustrationGenerator(enabled=False),
            **kwargs,
        )
        created.append(orchestrator)
        return orchestrator

    yield build

    for orchestrator in created:
        orchestrator.shutdown()


@pytest.fixture
def child_payload() -> dict[str, Any]:
    return {
        "name": "Maya",
        "age_range": "7-9",
        "gender": "female",
        "interests": ["dragons", "painting"],
    }
