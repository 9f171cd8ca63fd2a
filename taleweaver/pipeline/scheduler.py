"""
Background pre-generation of the next checkpoint's branches.

Jobs are keyed by session id and run on a bounded worker pool. Each job walks
the branch generation state machine stored on the session:

    idle -> generating -> ready
                       -> failed (after max_attempts)

A job whose session expired, or whose story moved past the job's target
checkpoint, is dropped without writing anything.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Callable

from taleweaver.common.errors import SessionNotFoundError, TaleWeaverError
from taleweaver.sessions import Branch, BranchStatus, Session, SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BranchJob:
    session_id: str
    target_checkpoint: int
    upstream_text: str
    base_url: str | None = None


BranchGenerator = Callable[[Session, BranchJob], "tuple[Branch, Branch]"]


@dataclass
class _ActiveJob:
    job: BranchJob
    future: Future
    cancelled: threading.Event


class _StaleJob(Exception):
    """The session no longer expects this job's branches."""


class BranchScheduler:
    """
    Parameters
    ----------
    store:
        Session store the job state is written to.
    generate_branches:
        Produces the (A, B) pair for a job. Called on the generation pool.
    max_workers:
        Number of jobs that can run at once.
    timeout_seconds:
        Deadline per generation attempt; ``0`` or ``None`` disables it. Results
        arriving after the deadline are discarded.
    max_attempts:
        Attempts per job before the failure is recorded on the session.
    """

    def __init__(
        self,
        store: SessionStore,
        generate_branches: BranchGenerator,
        *,
        max_workers: int = 4,
        timeout_seconds: float | None = 600.0,
        max_attempts: int = 1,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        self._store = store
        self._generate_branches = generate_branches
        self._timeout_seconds = timeout_seconds or None
        self._max_attempts = max_attempts
        self._jobs = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="branch-job")
        self._generation = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="branch-generation"
        )
        self._lock = threading.Lock()
        self._active: dict[str, _ActiveJob] = {}

    def schedule(self, job: BranchJob) -> Future:
        """
        Queue ``job`` and return immediately.

        A pending job for the same session and target is reused; a pending job for
        an older target is cancelled.
        """
        with self._lock:
            active = self._active.get(job.session_id)
            if active is not None and not active.future.done():
                if active.job.target_checkpoint == job.target_checkpoint:
                    return active.future
                logger.info(
                    "Superseding branch job for session %s (checkpoint %d -> %d)",
                    job.session_id,
                    active.job.target_checkpoint,
                    job.target_checkpoint,
                )
                active.cancelled.set()

            cancelled = threading.Event()
            future = self._jobs.submit(self._run, job, cancelled)
            self._active[job.session_id] = _ActiveJob(job=job, future=future, cancelled=cancelled)

        future.add_done_callback(lambda done: self._forget(job.session_id, done))
        logger.debug(
            "Scheduled branch job for session %s checkpoint %d", job.session_id, job.target_checkpoint
        )
        return future

    def cancel(self, session_id: str) -> bool:
        """Ask the session's pending job to stop. Returns whether one was pending."""
        with self._lock:
            active = self._active.get(session_id)
            if active is None or active.future.done():
                return False
            active.cancelled.set()
            active.future.cancel()
            return True

    def is_pending(self, session_id: str) -> bool:
        with self._lock:
            active = self._active.get(session_id)
            return active is not None and not active.future.done()

    def wait(self, session_id: str, timeout: float | None = None) -> BranchStatus | None:
        """Block until the session's pending job finishes and return its outcome."""
        with self._lock:
            active = self._active.get(session_id)
        if active is None:
            return None
        if active.future.cancelled():
            return None
        return active.future.result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            for active in self._active.values():
                active.cancelled.set()
        self._jobs.shutdown(wait=wait, cancel_futures=True)
        self._generation.shutdown(wait=wait, cancel_futures=True)

    def _forget(self, session_id: str, future: Future) -> None:
        with self._lock:
            active = self._active.get(session_id)
            if active is not None and active.future is future:
                del self._active[session_id]

    def _run(self, job: BranchJob, cancelled: threading.Event) -> BranchStatus | None:
        try:
            return self._execute(job, cancelled)
        except Exception:
            logger.exception(
                "Branch job for session %s checkpoint %d crashed",
                job.session_id,
                job.target_checkpoint,
            )
            return None

    def _execute(self, job: BranchJob, cancelled: threading.Event) -> BranchStatus | None:
        error = "not attempted"
        for attempt in range(1, self._max_attempts + 1):
            if cancelled.is_set():
                self._abandon(job)
                return None

            try:
                session = self._store.mutate(
                    job.session_id, lambda s: self._begin(s, job, attempt)
                )
            except (_StaleJob, SessionNotFoundError) as exc:
                logger.info("Dropping branch job for session %s: %s", job.session_id, exc)
                return None

            generation = self._generation.submit(self._generate_branches, session, job)
            try:
                branch_a, branch_b = generation.result(timeout=self._timeout_seconds)
            except FuturesTimeoutError:
                generation.cancel()
                error = f"Branch generation timed out after {self._timeout_seconds:g}s"
            except TaleWeaverError as exc:
                error = exc.message
            except Exception as exc:
                logger.exception("Unexpected error generating branches for %s", job.session_id)
                error = str(exc) or type(exc).__name__
            else:
                if cancelled.is_set():
                    self._abandon(job)
                    return None
                try:
                    self._store.mutate(
                        job.session_id,
                        lambda s: self._finish(s, job, branch_a, branch_b, attempt),
                    )
                except (_StaleJob, SessionNotFoundError) as exc:
                    logger.info(
                        "Discarding branches for session %s: %s", job.session_id, exc
                    )
                    return None
                except TaleWeaverError as exc:
                    error = exc.message
                else:
                    logger.info(
                        "Branches for session %s checkpoint %d ready after %d attempt(s)",
                        job.session_id,
                        job.target_checkpoint,
                        attempt,
                    )
                    return BranchStatus.READY

            logger.warning(
                "Branch generation attempt %d/%d for session %s failed: %s",
                attempt,
                self._max_attempts,
                job.session_id,
                error,
            )

        try:
            self._store.mutate(
                job.session_id,
                lambda s: self._fail(s, job, error, self._max_attempts),
            )
        except (_StaleJob, SessionNotFoundError) as exc:
            logger.info("Not recording failure for session %s: %s", job.session_id, exc)
            return None
        logger.error(
            "Branch generation for session %s checkpoint %d failed: %s",
            job.session_id,
            job.target_checkpoint,
            error,
        )
        return BranchStatus.FAILED

    @staticmethod
    def _check_target(session: Session, job: BranchJob) -> None:
        if session.next_checkpoint != job.target_checkpoint:
            raise _StaleJob(
                f"story is at checkpoint {session.current_checkpoint}, "
                f"job targets {job.target_checkpoint}"
            )
        if job.target_checkpoint > session.total_checkpoints:
            raise _StaleJob("story is complete")

    def _begin(self, session: Session, job: BranchJob, attempt: int) -> None:
        self._check_target(session, job)
        if session.next_branches_ready:
            raise _StaleJob("branches already exist")
        session.mark_generating(job.target_checkpoint, attempt)

    def _finish(
        self,
        session: Session,
        job: BranchJob,
        branch_a: Branch,
        branch_b: Branch,
        attempt: int,
    ) -> None:
        self._check_target(session, job)
        if session.branch_generation.status is not BranchStatus.GENERATING:
            raise _StaleJob(f"generation state is {session.branch_generation.status.value}")
        session.attach_branches(branch_a, branch_b, attempt)

    def _fail(self, session: Session, job: BranchJob, error: str, attempts: int) -> None:
        self._check_target(session, job)
        if session.next_branches_ready:
            raise _StaleJob("branches already exist")
        session.mark_failed(job.target_checkpoint, error, attempts)

    def _abandon(self, job: BranchJob) -> None:
        def reset(session: Session) -> None:
            generation = session.branch_generation
            if (
                generation.status is not BranchStatus.GENERATING
                or generation.target_checkpoint != job.target_checkpoint
            ):
                raise _StaleJob("generation state changed")
            session.reset_generation()

        try:
            self._store.mutate(job.session_id, reset)
        except (_StaleJob, SessionNotFoundError) as exc:
            logger.debug("Nothing to reset for %s: %s", job.session_id, exc)
        except TaleWeaverError as exc:
            logger.warning("Could not reset cancelled job for %s: %s", job.session_id, exc)
        logger.info(
            "Branch job for session %s checkpoint %d cancelled", job.session_id, job.target_checkpoint
        )
