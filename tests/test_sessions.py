"""
Tests for session schemas, the session store and artifact storage.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from taleweaver.common import (
    SessionConflictError,
    SessionNotFoundError,
    StorageError,
    ValidationError,
)
from taleweaver.sessions import (
    ArtifactKind,
    ArtifactStore,
    BranchStatus,
    MemoryBackend,
    backend_from_url,
)
from taleweaver.story_generation import BranchLetter


class TestSessionInvariants:
    """Tests for the structural invariants enforced by Session."""

    def test_fresh_session_is_idle(self, make_session):
        session = make_session()

        assert session.current_checkpoint == 0
        assert session.branch_generation.status is BranchStatus.IDLE
        assert not session.next_branches_ready
        assert session.current_segment().id == "segment_1"

    def test_single_branch_is_rejected(self, make_session, make_segment):
        with pytest.raises(PydanticValidationError):
            make_session(segments=[make_segment(0), make_segment(1, "A")])

    def test_ready_flag_requires_branches(self, make_session):
        with pytest.raises(PydanticValidationError):
            make_session(next_branches_ready=True)

    def test_path_length_must_match_checkpoint(self, make_session):
        with pytest.raises(PydanticValidationError):
            make_session(current_checkpoint=1)

    def test_non_interactive_has_no_checkpoints(self, make_session):
        with pytest.raises(PydanticValidationError):
            make_session(interactive=False, total_checkpoints=1)

    def test_segment_id_must_match_checkpoint(self, make_segment):
        segment = make_segment(1, "A")

        with pytest.raises(PydanticValidationError):
            segment.model_validate({**segment.model_dump(), "checkpoint_number": 2})

    def test_segments_are_frozen(self, make_segment):
        segment = make_segment(0)

        with pytest.raises(PydanticValidationError):
            segment.text = "rewritten"


class TestSessionTransitions:
    """Tests for branch attachment and choice handling."""

    def test_attach_then_choose(self, make_session, make_branches):
        session = make_session()
        session.attach_branches(*make_branches(1), attempts=1)

        assert session.next_branches_ready
        assert session.branch_generation.status is BranchStatus.READY
        assert session.branch_pair(1)[1].segment.id == "segment_2b"

        segment = session.choose_branch(1, "B")

        assert segment.id == "segment_2b"
        assert session.chosen_path == [BranchLetter.B]
        assert session.current_checkpoint == 1
        assert not session.next_branches_ready
        assert session.branch_generation.status is BranchStatus.IDLE
        assert session.current_segment().id == "segment_2b"
        # Unchosen branch stays in the session.
        assert session.get_segment("segment_2a") is not None

    def test_choose_before_branches_ready(self, make_session):
        session = make_session()

        with pytest.raises(ValidationError):
            session.choose_branch(1, "A")

    def test_out_of_sequence_checkpoint(self, make_session, make_branches):
        session = make_session()
        session.attach_branches(*make_branches(1), attempts=1)

        with pytest.raises(ValidationError):
            session.choose_branch(2, "A")
        assert session.current_checkpoint == 0

    def test_invalid_branch_letter(self, make_session):
        with pytest.raises(ValueError):
            make_session().choose_branch(1, "C")

    def test_attach_twice(self, make_session, make_branches):
        session = make_session()
        session.attach_branches(*make_branches(1), attempts=1)

        with pytest.raises(ValidationError):
            session.attach_branches(*make_branches(1), attempts=1)

    def test_attach_wrong_checkpoint(self, make_session, make_branches):
        with pytest.raises(ValidationError):
            make_session().attach_branches(*make_branches(2), attempts=1)

    def test_failure_and_reset(self, make_session):
        session = make_session()
        session.mark_generating(1, attempts=1)
        assert session.generation_in_progress

        session.mark_failed(1, "speech generation failed", attempts=1)
        assert not session.generation_in_progress
        assert session.branch_generation.error == "speech generation failed"

        session.reset_generation()
        assert session.branch_generation.status is BranchStatus.IDLE

    def test_choice_records(self, make_session, make_branches):
        session = make_session()
        session.attach_branches(*make_branches(1), attempts=1)
        session.choose_branch(1, "A")

        (record,) = session.choice_records()

        assert record.checkpoint == 1
        assert record.letter == "A"
        assert record.text == "Choice A"
        assert record.quality.value == "growth_oriented"


class TestSessionStore:
    """Tests for SessionStore persistence."""

    def test_create_and_load(self, store, make_session):
        created = store.create(make_session())

        loaded = store.load("sess")

        assert created.version == 1
        assert loaded.version == 1
        assert loaded.child.name == "Maya"
        assert loaded.segments == created.segments

    def test_create_rejects_duplicate_id(self, store, make_session):
        store.create(make_session())

        with pytest.raises(SessionConflictError):
            store.create(make_session())

    def test_unknown_session(self, store):
        with pytest.raises(SessionNotFoundError):
            store.load("missing")
        assert not store.exists("missing")

    def test_ttl_expiry(self, store, clock, make_session):
        store.create(make_session())

        clock.advance(3601)

        with pytest.raises(SessionNotFoundError):
            store.load("sess")

    def test_save_refreshes_ttl(self, store, clock, make_session):
        store.create(make_session())
        clock.advance(3000)
        store.save(store.load("sess"))
        clock.advance(3000)

        assert store.load("sess").version == 2

    def test_concurrent_save_conflicts(self, store, make_session, make_branches):
        store.create(make_session())
        first = store.load("sess")
        second = store.load("sess")

        first.attach_branches(*make_branches(1), attempts=1)
        store.save(first)

        second.mark_generating(1, attempts=1)
        with pytest.raises(SessionConflictError):
            store.save(second)
        assert store.load("sess").next_branches_ready

    def test_refuses_to_drop_segments(self, store, make_session, make_branches):
        session = make_session()
        session.attach_branches(*make_branches(1), attempts=1)
        store.create(session)

        loaded = store.load("sess")
        loaded.segments = loaded.segments[:1]
        loaded.reset_generation()

        with pytest.raises(StorageError):
            store.save(loaded)

    def test_save_after_expiry(self, store, clock, make_session):
        store.create(make_session())
        session = store.load("sess")
        clock.advance(3601)

        with pytest.raises(SessionNotFoundError):
            store.save(session)

    def test_corrupt_record(self, store, backend):
        backend.compare_and_set("session:bad", "{not json", ttl_seconds=60, check=lambda current: True)

        with pytest.raises(StorageError):
            store.load("bad")

    def test_mutate_retries_on_conflict(self, store, make_session, make_branches):
        store.create(make_session())
        racing = store.load("sess")
        calls = []

        def mutator(session):
            calls.append(session.version)
            if len(calls) == 1:
                # Another writer saves between our load and save.
                store.save(racing)
            session.mark_generating(1, attempts=1)

        result = store.mutate("sess", mutator)

        assert calls == [1, 2]
        assert result.version == 3
        assert store.load("sess").generation_in_progress

    def test_invalid_session_is_not_saved(self, store, make_session):
        store.create(make_session())
        session = store.load("sess")
        session.next_branches_ready = True

        with pytest.raises(StorageError):
            store.save(session)


class TestBackends:
    """Tests for backend selection and the in-memory backend."""

    def test_memory_url(self):
        assert isinstance(backend_from_url("memory://"), MemoryBackend)

    def test_unknown_url(self):
        with pytest.raises(ValueError):
            backend_from_url("postgres://db")

    def test_compare_and_set(self, backend):
        assert backend.compare_and_set("k", "v1", ttl_seconds=10, check=lambda current: current is None)
        assert not backend.compare_and_set("k", "v2", ttl_seconds=10, check=lambda current: current is None)
        assert backend.get("k") == "v1"


class TestArtifactStore:
    """Tests for ArtifactStore."""

    def test_put_and_get(self, artifacts):
        key = artifacts.put(ArtifactKind.AUDIO, "sess", "segment_1", b"mp3")

        assert key == "sess/segment_1.mp3"
        assert artifacts.get(ArtifactKind.AUDIO, "sess", "segment_1.mp3") == b"mp3"
        assert artifacts.get(ArtifactKind.IMAGE, "sess", "segment_1.mp3") is None
        assert artifacts.get(ArtifactKind.AUDIO, "sess", "segment_9.mp3") is None

    def test_urls(self, tmp_path):
        local = tmp_path / "media"

        assert ArtifactStore(str(local)).url_for(ArtifactKind.IMAGE, "s/x.png") == "/image/s/x.png"
        assert (
            ArtifactStore(str(local)).url_for(
                ArtifactKind.AUDIO, "s/x.mp3", base_url="http://api.test/"
            )
            == "http://api.test/audio/s/x.mp3"
        )
        assert (
            ArtifactStore(str(local), public_url="https://cdn.test/").url_for(
                ArtifactKind.AUDIO, "s/x.mp3"
            )
            == "https://cdn.test/s/x.mp3"
        )

    @pytest.mark.parametrize("name", ["../etc", "a/b", ""])
    def test_rejects_unsafe_names(self, artifacts, name):
        with pytest.raises(ValidationError):
            artifacts.put(ArtifactKind.IMAGE, name, "segment_1", b"png")

    def test_put_overwrites(self, artifacts):
        artifacts.put(ArtifactKind.IMAGE, "sess", "segment_1", b"old")
        artifacts.put(ArtifactKind.IMAGE, "sess", "segment_1", b"new")

        assert artifacts.get(ArtifactKind.IMAGE, "sess", "segment_1.png") == b"new"
