"""Message record shared by the server and the client."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, TypedDict

from chat_server.errors import ValidationError

SENDERS = ("user", "ai")

MAX_CONTENT_CHARS = 10000  # store-level bound
MAX_MESSAGE_CHARS = 1000   # inbound chat bound


class MessageDict(TypedDict):
    """Wire shape of a message."""

    _id: str
    id: str
    content: str
    sender: str
    timestamp: str  # ISO-8601 UTC, millisecond precision, "Z" suffix


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    ts = ts.astimezone(timezone.utc)
    return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def validate_content(content: Any, limit: int = MAX_CONTENT_CHARS) -> str:
    """Return ``content`` unchanged if it is non-empty text within ``limit`` chars."""
    if not isinstance(content, str):
        raise ValidationError("Message content must be a string.")
    if not content.strip():
        raise ValidationError("Message content cannot be empty.")
    if len(content) > limit:
        raise ValidationError(f"Message content exceeds {limit} characters.")
    return content


def validate_sender(sender: Any) -> str:
    if sender not in SENDERS:
        raise ValidationError(f"Invalid sender {sender!r}; expected one of {SENDERS}.")
    return sender


@dataclass(frozen=True)
class Message:
    id: str
    content: str
    sender: str
    timestamp: datetime

    def to_dict(self) -> MessageDict:
        return {
            "_id": self.id,
            "id": self.id,
            "content": self.content,
            "sender": self.sender,
            "timestamp": format_timestamp(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        ident = data.get("id") or data.get("_id")
        if not ident:
            raise ValueError("message payload has no id")
        ts = data.get("timestamp")
        return cls(
            id=str(ident),
            content=str(data.get("content", "")),
            sender=str(data.get("sender", "")),
            timestamp=parse_timestamp(ts) if isinstance(ts, str) else ts,
        )
