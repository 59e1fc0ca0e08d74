"""Abstract message store: append-only with read-all."""
from __future__ import annotations

import abc
from typing import List

from .models import MAX_CONTENT_CHARS, Message


class MessageStore(abc.ABC):
    """Durable ordered list of chat messages.

    Implementations assign the identifier and the timestamp; callers only
    provide ``content`` and ``sender``. There is no update or delete.
    """

    backend: str = "abstract"

    def __init__(self, *, max_content_chars: int = MAX_CONTENT_CHARS) -> None:
        self.max_content_chars = max_content_chars

    @abc.abstractmethod
    def append(self, content: str, sender: str) -> Message:
        """Validate, persist and return a new message."""

    @abc.abstractmethod
    def list_all(self) -> List[Message]:
        """Return every message, ascending by timestamp (ties by insertion order)."""

    def close(self) -> None:
        """Release any underlying resources."""
