"""Process-lifetime message store (lost on restart, thread-safe)."""
from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, List, Optional

from .base import MessageStore
from .models import MAX_CONTENT_CHARS, Message, utc_now, validate_content, validate_sender


class InMemoryMessageStore(MessageStore):
    """Dict-backed store keyed by a monotonically increasing integer id.

    Appends are serialized by a lock around the counter and the map, so the
    store is safe under FastAPI's threadpool. Timestamps never go backwards in
    insertion order even if the wall clock does.
    """

    backend = "memory"

    def __init__(self, *, max_content_chars: int = MAX_CONTENT_CHARS) -> None:
        super().__init__(max_content_chars=max_content_chars)
        self._messages: Dict[int, Message] = {}
        self._next_id = 1
        self._last_ts: Optional[datetime] = None
        self._lock = threading.Lock()

    def append(self, content: str, sender: str) -> Message:
        validate_content(content, self.max_content_chars)
        validate_sender(sender)

        with self._lock:
            ident = self._next_id
            self._next_id += 1

            ts = utc_now()
            if self._last_ts is not None and ts < self._last_ts:
                ts = self._last_ts
            self._last_ts = ts

            message = Message(id=str(ident), content=content, sender=sender, timestamp=ts)
            self._messages[ident] = message
            return message

    def list_all(self) -> List[Message]:
        with self._lock:
            items = sorted(self._messages.items())
        # sorted() is stable, so equal timestamps keep id (insertion) order
        return [m for _, m in sorted(items, key=lambda kv: kv[1].timestamp)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)
