"""
Error taxonomy shared by the story services and the HTTP layer.

Every failure the service reports to a client is one of a closed set of kinds.
Each kind carries an explicit discriminant (:class:`ErrorKind`) and the HTTP
status used when it crosses the API boundary.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    SESSION_EXPIRED = "session_expired"
    SESSION_CONFLICT = "session_conflict"
    GENERATION = "generation_error"
    STORAGE = "storage_error"


class GenerationService(str, Enum):
    TEXT = "text"
    SPEECH = "speech"
    IMAGE = "image"


_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.SESSION_EXPIRED: 410,
    ErrorKind.SESSION_CONFLICT: 409,
    ErrorKind.GENERATION: 502,
    ErrorKind.STORAGE: 500,
}


class TaleWeaverError(Exception):
    """Base class for all errors surfaced by the story services."""

    kind: ErrorKind = ErrorKind.STORAGE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self.kind]

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind.value, "message": self.message}


class ValidationError(TaleWeaverError):
    """Malformed input or an out-of-sequence request."""

    kind = ErrorKind.VALIDATION


class SessionNotFoundError(TaleWeaverError):
    """The session does not exist or its TTL has elapsed."""

    kind = ErrorKind.SESSION_EXPIRED

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} not found or expired")
        self.session_id = session_id


class SessionConflictError(TaleWeaverError):
    """A concurrent writer saved the session first."""

    kind = ErrorKind.SESSION_CONFLICT

    def __init__(self, session_id: str, expected_version: int) -> None:
        super().__init__(
            f"Session {session_id} was modified concurrently (expected version {expected_version})"
        )
        self.session_id = session_id
        self.expected_version = expected_version


class GenerationError(TaleWeaverError):
    """An external generation service failed after exhausting its retries."""

    kind = ErrorKind.GENERATION

    def __init__(self, service: GenerationService | str, message: str) -> None:
        self.service = GenerationService(service)
        super().__init__(f"{self.service.value} generation failed: {message}")

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["service"] = self.service.value
        return payload


class StorageError(TaleWeaverError):
    """The session store or artifact store could not complete an operation."""

    kind = ErrorKind.STORAGE

    def __init__(self, message: str, *, backend: str = "kv") -> None:
        super().__init__(message)
        self.backend = backend
