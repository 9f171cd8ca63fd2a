"""
Persistence of story sessions with TTL expiry and optimistic concurrency.
"""

from __future__ import annotations

import json
import logging
from typing import Callable

from pydantic import ValidationError as PydanticValidationError

from taleweaver.common.errors import SessionConflictError, SessionNotFoundError, StorageError

from .backends import KeyValueBackend
from .models import Session

logger = logging.getLogger(__name__)

KEY_PREFIX = "session:"


class SessionStore:
    """
    Loads and saves :class:`Session` records.

    Every read and write revalidates the full schema. ``save`` is a compare-and-set
    on ``Session.version``: the stored record must still carry the version the
    caller loaded, and its segments must be a prefix of the new ones.
    """

    def __init__(self, backend: KeyValueBackend, *, ttl_seconds: int = 12 * 3600) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive.")
        self._backend = backend
        self._ttl_seconds = ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def create(self, session: Session) -> Session:
        """Persist a brand-new session. Fails if the id is already taken."""
        stored = session.model_copy(update={"version": 1})
        payload = self._serialize(stored)

        def check(current: str | None) -> bool:
            return current is None

        if not self._backend.compare_and_set(
            _key(session.session_id), payload, ttl_seconds=self._ttl_seconds, check=check
        ):
            raise SessionConflictError(session.session_id, 0)
        session.version = 1
        logger.info("Created session %s", session.session_id)
        return session

    def load(self, session_id: str) -> Session:
        raw = self._backend.get(_key(session_id))
        if raw is None:
            raise SessionNotFoundError(session_id)
        return self._deserialize(session_id, raw)

    def exists(self, session_id: str) -> bool:
        return self._backend.get(_key(session_id)) is not None

    def save(self, session: Session) -> Session:
        """
        Write ``session`` back and refresh its TTL.

        Raises
        ------
        SessionNotFoundError
            If the stored record expired in the meantime.
        SessionConflictError
            If another writer saved a newer version first.
        """
        expected_version = session.version
        updated = session.model_copy(update={"version": expected_version + 1})
        payload = self._serialize(updated)
        segment_ids = [segment.id for segment in session.segments]

        def check(current: str | None) -> bool:
            if current is None:
                raise SessionNotFoundError(session.session_id)
            stored = _peek(session.session_id, current)
            if stored.get("version") != expected_version:
                return False
            stored_ids = [segment.get("id") for segment in stored.get("segments", [])]
            if segment_ids[: len(stored_ids)] != stored_ids:
                raise StorageError(
                    f"Refusing to drop or reorder segments of session {session.session_id}"
                )
            return True

        if not self._backend.compare_and_set(
            _key(session.session_id), payload, ttl_seconds=self._ttl_seconds, check=check
        ):
            raise SessionConflictError(session.session_id, expected_version)

        session.version = expected_version + 1
        logger.debug("Saved session %s at version %d", session.session_id, session.version)
        return session

    def mutate(
        self,
        session_id: str,
        mutator: Callable[[Session], None],
        *,
        max_attempts: int = 3,
    ) -> Session:
        """
        Load, apply ``mutator`` and save, retrying on version conflicts.

        ``mutator`` may raise to abort without writing.
        """
        for attempt in range(1, max_attempts + 1):
            session = self.load(session_id)
            mutator(session)
            try:
                return self.save(session)
            except SessionConflictError:
                if attempt == max_attempts:
                    raise
                logger.debug("Conflict saving session %s, retrying (%d)", session_id, attempt)
        raise AssertionError("unreachable")

    @staticmethod
    def _serialize(session: Session) -> str:
        payload = session.model_dump_json()
        try:
            Session.model_validate_json(payload)
        except PydanticValidationError as exc:
            raise StorageError(f"Invalid session {session.session_id}: {exc}") from exc
        return payload

    @staticmethod
    def _deserialize(session_id: str, raw: str) -> Session:
        try:
            return Session.model_validate_json(raw)
        except PydanticValidationError as exc:
            raise StorageError(f"Stored session {session_id} is invalid: {exc}") from exc


def _key(session_id: str) -> str:
    return KEY_PREFIX + session_id


def _peek(session_id: str, raw: str) -> dict:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StorageError(f"Stored session {session_id} is not valid JSON") from exc
    if not isinstance(data, dict):
        raise StorageError(f"Stored session {session_id} is not an object")
    return data
