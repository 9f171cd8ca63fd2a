"""
Filesystem storage for generated narration and illustrations.
"""

from __future__ import annotations

import logging
import os
import re
from enum import Enum

from taleweaver.common.errors import StorageError, ValidationError

logger = logging.getLogger(__name__)

_SAFE_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


class ArtifactKind(str, Enum):
    AUDIO = "audio"
    IMAGE = "image"

    @property
    def extension(self) -> str:
        return ".mp3" if self is ArtifactKind.AUDIO else ".png"

    @property
    def media_type(self) -> str:
        return "audio/mpeg" if self is ArtifactKind.AUDIO else "image/png"

    @property
    def cache_seconds(self) -> int:
        return 3600 if self is ArtifactKind.AUDIO else 86400


def _check_name(value: str, label: str) -> str:
    if not value or not _SAFE_NAME.match(value):
        raise ValidationError(f"Invalid {label}: {value!r}")
    return value


class ArtifactStore:
    """
    Stores artifacts under ``<root>/<session_id>/<segment_id>.<ext>``.

    Keys have the form ``<session_id>/<segment_id>.<ext>``.
    """

    def __init__(self, root: str, *, public_url: str | None = None) -> None:
        self._root = root
        self._public_url = public_url.rstrip("/") if public_url else None

    @property
    def root(self) -> str:
        return self._root

    def put(self, kind: ArtifactKind, session_id: str, segment_id: str, data: bytes) -> str:
        _check_name(session_id, "session id")
        _check_name(segment_id, "segment id")
        key = f"{session_id}/{segment_id}{kind.extension}"
        directory = os.path.join(self._root, session_id)
        path = os.path.join(directory, segment_id + kind.extension)
        try:
            os.makedirs(directory, exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
        except OSError as exc:
            raise StorageError(f"Failed to store {key}: {exc}", backend="artifacts") from exc
        logger.debug("Stored %s artifact %s (%d bytes)", kind.value, key, len(data))
        return key

    def get(self, kind: ArtifactKind, session_id: str, filename: str) -> bytes | None:
        """Return the artifact bytes, or ``None`` when it does not exist."""
        _check_name(session_id, "session id")
        stem, ext = os.path.splitext(filename)
        if ext != kind.extension:
            return None
        _check_name(stem, "file name")
        path = os.path.join(self._root, session_id, filename)
        try:
            with open(path, "rb") as f:
                return f.read()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(
                f"Failed to read {session_id}/{filename}: {exc}", backend="artifacts"
            ) from exc

    def url_for(self, kind: ArtifactKind, key: str, *, base_url: str | None = None) -> str:
        if self._public_url:
            return f"{self._public_url}/{key}"
        if base_url:
            return f"{base_url.rstrip('/')}/{kind.value}/{key}"
        return f"/{kind.value}/{key}"
