"""Message persistence: one store abstraction, in-memory and MongoDB variants."""
from __future__ import annotations

from .base import MessageStore
from .factory import create_store
from .memory import InMemoryMessageStore
from .models import MAX_CONTENT_CHARS, MAX_MESSAGE_CHARS, Message, validate_content

__all__ = [
    "MessageStore",
    "InMemoryMessageStore",
    "Message",
    "MAX_CONTENT_CHARS",
    "MAX_MESSAGE_CHARS",
    "create_store",
    "validate_content",
]
