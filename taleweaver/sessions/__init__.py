"""
Session persistence: schemas, key-value backends and artifact storage.
"""

from .artifacts import ArtifactKind, ArtifactStore
from .backends import KeyValueBackend, MemoryBackend, RedisBackend, backend_from_url
from .models import Branch, BranchGeneration, BranchStatus, Segment, Session, new_session_id
from .store import SessionStore

__all__ = [
    "ArtifactKind",
    "ArtifactStore",
    "Branch",
    "BranchGeneration",
    "BranchStatus",
    "KeyValueBackend",
    "MemoryBackend",
    "RedisBackend",
    "Segment",
    "Session",
    "SessionStore",
    "backend_from_url",
    "new_session_id",
]
