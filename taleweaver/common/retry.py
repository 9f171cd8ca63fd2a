"""
Bounded retry helper for calls to external generation services.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from .errors import GenerationError, GenerationService

logger = logging.getLogger(__name__)

T = TypeVar("T")


def call_with_retries(
    operation: Callable[[int], T],
    *,
    service: GenerationService,
    max_retries: int = 1,
    delay_seconds: float = 0.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``operation`` up to ``max_retries + 1`` times.

    ``operation`` receives the zero-based attempt number so callers can amend the
    request on a retry. The last failure is re-raised as :class:`GenerationError`.
    """
    if max_retries < 0:
        raise ValueError("max_retries must be non-negative.")

    last_error: Exception | None = None
    for attempt in range(max_retries + 1):
        if attempt and delay_seconds > 0:
            sleep(delay_seconds)
        try:
            return operation(attempt)
        except Exception as exc:
            last_error = exc
            if attempt < max_retries:
                logger.warning(
                    "%s generation attempt %d failed, retrying: %s",
                    service.value,
                    attempt + 1,
                    exc,
                )

    assert last_error is not None
    logger.error("%s generation failed after %d attempts", service.value, max_retries + 1)
    if isinstance(last_error, GenerationError):
        raise last_error
    raise GenerationError(service, str(last_error) or type(last_error).__name__) from last_error
