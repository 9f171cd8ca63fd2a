"""
Key-value backends holding serialized sessions with a time-to-live.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from typing import Callable

from redis import Redis
from redis.exceptions import RedisError, WatchError

from taleweaver.common.errors import StorageError

WriteCheck = Callable[[str | None], bool]


class KeyValueBackend(ABC):
    """Minimal string store with expiry and an atomic conditional write."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    def compare_and_set(
        self,
        key: str,
        value: str,
        *,
        ttl_seconds: int,
        check: WriteCheck,
    ) -> bool:
        """
        Write ``value`` only if ``check(current_value)`` holds, atomically.

        Returns ``False`` when the check fails or a concurrent writer interferes.
        Exceptions raised by ``check`` propagate.
        """


class RedisBackend(KeyValueBackend):
    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisBackend":
        return cls(Redis.from_url(url, decode_responses=True))

    def get(self, key: str) -> str | None:
        try:
            return _decode(self._client.get(key))
        except RedisError as exc:
            raise StorageError(f"Failed to read {key}: {exc}") from exc

    def compare_and_set(
        self,
        key: str,
        value: str,
        *,
        ttl_seconds: int,
        check: WriteCheck,
    ) -> bool:
        try:
            with self._client.pipeline() as pipe:
                try:
                    pipe.watch(key)
                    if not check(_decode(pipe.get(key))):
                        pipe.unwatch()
                        return False
                    pipe.multi()
                    pipe.setex(key, ttl_seconds, value)
                    pipe.execute()
                    return True
                except WatchError:
                    return False
        except RedisError as exc:
            raise StorageError(f"Failed to write {key}: {exc}") from exc


class MemoryBackend(KeyValueBackend):
    """In-process backend for tests and single-process deployments."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[str, float]] = {}

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._live_value(key)

    def compare_and_set(
        self,
        key: str,
        value: str,
        *,
        ttl_seconds: int,
        check: WriteCheck,
    ) -> bool:
        with self._lock:
            if not check(self._live_value(key)):
                return False
            self._entries[key] = (value, self._clock() + ttl_seconds)
            return True

    def _live_value(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value


def _decode(value: str | bytes | None) -> str | None:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


def backend_from_url(url: str) -> KeyValueBackend:
    """Build a backend from ``memory://`` or a ``redis://`` / ``rediss://`` URL."""
    scheme = url.split("://", 1)[0].lower() if "://" in url else ""
    if scheme == "memory":
        return MemoryBackend()
    if scheme in {"redis", "rediss", "unix"}:
        return RedisBackend.from_url(url)
    raise ValueError(f"Unsupported session store URL: {url!r}")
