"""
Common utilities shared across TaleWeaver modules.
"""

from .config import Settings, configure_logging, get_settings
from .errors import (
    ErrorKind,
    GenerationError,
    GenerationService,
    SessionConflictError,
    SessionNotFoundError,
    StorageError,
    TaleWeaverError,
    ValidationError,
)
from .json_payload import parse_json_payload
from .llm import ChatResult, CompletionCallable, build_messages, call_chat_completion
from .retry import call_with_retries

__all__ = [
    "ChatResult",
    "CompletionCallable",
    "ErrorKind",
    "GenerationError",
    "GenerationService",
    "SessionConflictError",
    "SessionNotFoundError",
    "Settings",
    "StorageError",
    "TaleWeaverError",
    "ValidationError",
    "build_messages",
    "call_chat_completion",
    "call_with_retries",
    "configure_logging",
    "get_settings",
    "parse_json_payload",
]
