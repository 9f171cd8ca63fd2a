"""
Tests for the background branch scheduler.
"""

import threading

import pytest

from taleweaver.common import GenerationError
from taleweaver.pipeline import BranchJob, BranchScheduler
from taleweaver.sessions import BranchStatus

WAIT = 5


@pytest.fixture
def make_scheduler(store):
    created = []

    def build(generate_branches, **kwargs):
        kwargs.setdefault("max_workers", 2)
        kwargs.setdefault("timeout_seconds", WAIT)
        scheduler = BranchScheduler(store, generate_branches, **kwargs)
        created.append(scheduler)
        return scheduler

    yield build

    for scheduler in created:
        scheduler.shutdown(wait=False)


@pytest.fixture
def stored_session(store, make_session):
    return store.create(make_session())


def _job(target=1):
    return BranchJob(session_id="sess", target_checkpoint=target, upstream_text="Text of segment_1.")


class TestBranchScheduler:
    """Tests for BranchScheduler job execution."""

    def test_generates_and_attaches_branches(self, store, stored_session, make_scheduler, make_branches):
        scheduler = make_scheduler(lambda session, job: make_branches(job.target_checkpoint))

        status = scheduler.schedule(_job()).result(timeout=WAIT)

        session = store.load("sess")
        assert status is BranchStatus.READY
        assert session.next_branches_ready
        assert not session.generation_in_progress
        assert session.branch_generation.attempts == 1
        assert [segment.id for segment in session.segments] == ["segment_1", "segment_2a", "segment_2b"]

    def test_generator_sees_generating_state(self, stored_session, make_scheduler, make_branches):
        observed = []

        def generate(session, job):
            observed.append(session.branch_generation.status)
            return make_branches(job.target_checkpoint)

        make_scheduler(generate).schedule(_job()).result(timeout=WAIT)

        assert observed == [BranchStatus.GENERATING]

    def test_failure_is_recorded_without_segments(self, store, stored_session, make_scheduler):
        def generate(session, job):
            raise GenerationError("speech", "quota exceeded")

        status = make_scheduler(generate).schedule(_job()).result(timeout=WAIT)

        session = store.load("sess")
        assert status is BranchStatus.FAILED
        assert session.branch_generation.status is BranchStatus.FAILED
        assert "quota exceeded" in session.branch_generation.error
        assert not session.next_branches_ready
        assert not session.generation_in_progress
        assert len(session.segments) == 1

    def test_retries_up_to_max_attempts(self, store, stored_session, make_scheduler, make_branches):
        calls = []

        def generate(session, job):
            calls.append(job.target_checkpoint)
            if len(calls) == 1:
                raise RuntimeError("transient")
            return make_branches(job.target_checkpoint)

        status = make_scheduler(generate, max_attempts=2).schedule(_job()).result(timeout=WAIT)

        assert status is BranchStatus.READY
        assert len(calls) == 2
        assert store.load("sess").branch_generation.attempts == 2

    def test_stale_job_is_dropped(self, store, stored_session, make_scheduler, make_branches):
        generate_calls = []

        def generate(session, job):
            generate_calls.append(job)
            return make_branches(job.target_checkpoint)

        status = make_scheduler(generate).schedule(_job(target=2)).result(timeout=WAIT)

        assert status is None
        assert generate_calls == []
        assert store.load("sess").version == stored_session.version

    def test_expired_session_is_dropped(self, store, clock, stored_session, make_scheduler, make_branches):
        def generate(session, job):
            clock.advance(store.ttl_seconds + 1)
            return make_branches(job.target_checkpoint)

        status = make_scheduler(generate).schedule(_job()).result(timeout=WAIT)

        assert status is None
        assert not store.exists("sess")

    def test_timeout_marks_failure(self, store, stored_session, make_scheduler, make_branches):
        release = threading.Event()

        def generate(session, job):
            release.wait(WAIT)
            return make_branches(job.target_checkpoint)

        scheduler = make_scheduler(generate, timeout_seconds=0.2)
        try:
            status = scheduler.schedule(_job()).result(timeout=WAIT)
        finally:
            release.set()

        session = store.load("sess")
        assert status is BranchStatus.FAILED
        assert "timed out" in session.branch_generation.error
        assert len(session.segments) == 1

    def test_duplicate_schedule_reuses_job(self, stored_session, make_scheduler, make_branches):
        release = threading.Event()

        def generate(session, job):
            release.wait(WAIT)
            return make_branches(job.target_checkpoint)

        scheduler = make_scheduler(generate)
        first = scheduler.schedule(_job())
        second = scheduler.schedule(_job())
        assert scheduler.is_pending("sess")
        release.set()

        assert first is second
        assert first.result(timeout=WAIT) is BranchStatus.READY

    def test_cancel_resets_to_idle(self, store, stored_session, make_scheduler, make_branches):
        started = threading.Event()
        release = threading.Event()

        def generate(session, job):
            started.set()
            release.wait(WAIT)
            return make_branches(job.target_checkpoint)

        scheduler = make_scheduler(generate)
        future = scheduler.schedule(_job())
        assert started.wait(WAIT)
        assert store.load("sess").generation_in_progress

        assert scheduler.cancel("sess")
        release.set()

        assert future.result(timeout=WAIT) is None
        session = store.load("sess")
        assert session.branch_generation.status is BranchStatus.IDLE
        assert len(session.segments) == 1

    def test_wait_without_job(self, make_scheduler, make_branches):
        scheduler = make_scheduler(lambda session, job: make_branches(job.target_checkpoint))

        assert scheduler.wait("sess", timeout=0.1) is None
        assert not scheduler.cancel("sess")
