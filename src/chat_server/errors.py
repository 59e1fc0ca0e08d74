"""Exception taxonomy shared by the store, the responder and the HTTP layer."""
from __future__ import annotations


class ChatError(Exception):
    """Base class for chat server errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ChatError):
    """Bad input shape or length. Never persisted."""

    status_code = 400


class UpstreamError(ChatError):
    """The language-model provider failed (other than quota exhaustion)."""

    status_code = 500


class StorageError(ChatError):
    """The message database is unavailable or rejected a write."""

    status_code = 500


class ConfigError(ChatError):
    """Invalid configuration detected at startup."""
