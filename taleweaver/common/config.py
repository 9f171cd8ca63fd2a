"""
Runtime settings resolved from environment variables.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class Settings(BaseSettings):
    """
    Service configuration.

    Values come from keyword arguments, then the process environment, then a
    ``.env`` file in the working directory.

    Attributes
    ----------
    session_ttl_hours:
        Lifetime of a story session in the key-value store.
    session_store_url:
        ``redis://`` / ``rediss://`` URL, or ``memory://`` for the in-process backend.
        Read from ``SESSION_STORE_URL`` and then ``REDIS_URL``.
    media_root:
        Directory holding generated audio and illustrations.
    artifact_public_url:
        Public base URL for artifacts. When unset, URLs point at the service's own
        ``/audio`` and ``/image`` routes.
    disable_text / disable_speech / disable_images:
        Replace the corresponding generation client with deterministic stubs.
        ``TALEWEAVER_DISABLE_GENERATION`` turns all three on.
    branch_workers:
        Size of the background branch generation pool.
    branch_job_timeout_seconds:
        Deadline for a single branch generation attempt. ``0`` disables it.
    branch_job_max_attempts:
        Attempts per background job before it is marked failed.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    session_ttl_hours: float = Field(default=12, gt=0)
    session_store_url: str = Field(
        default="memory://",
        validation_alias=AliasChoices("session_store_url", "SESSION_STORE_URL", "REDIS_URL"),
    )
    media_root: str = Field(default="media")
    artifact_public_url: Optional[str] = Field(default=None)
    image_aspect_ratio: str = Field(default="4:3")
    disable_generation: bool = Field(
        default=False,
        validation_alias=AliasChoices("disable_generation", "TALEWEAVER_DISABLE_GENERATION"),
    )
    disable_text: bool = Field(
        default=False,
        validation_alias=AliasChoices("disable_text", "DISABLE_TEXT_GENERATION"),
    )
    disable_speech: bool = Field(
        default=False,
        validation_alias=AliasChoices("disable_speech", "DISABLE_TTS"),
    )
    disable_images: bool = Field(default=False)
    branch_workers: int = Field(default=4, ge=1)
    branch_job_timeout_seconds: float = Field(default=600.0, ge=0)
    branch_job_max_attempts: int = Field(default=1, ge=1)
    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    @model_validator(mode="after")
    def _apply_global_switch(self) -> "Settings":
        if self.disable_generation:
            self.disable_text = True
            self.disable_speech = True
            self.disable_images = True
        return self

    @property
    def session_ttl_seconds(self) -> int:
        return int(self.session_ttl_hours * 3600)


@lru_cache()
def get_settings() -> Settings:
    """Return the process-wide settings, read once."""
    return Settings()


def configure_logging(level: str | int = "INFO") -> None:
    """Install a single stream handler on the root logger."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
