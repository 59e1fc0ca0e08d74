"""MongoDB-backed message store with a lazily opened connection handle."""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from chat_server.errors import StorageError

from .base import MessageStore
from .models import MAX_CONTENT_CHARS, Message, utc_now, validate_content, validate_sender

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "ai-chatbot"


class MongoConnection:
    """Connection handle owned by the application context.

    Nothing is opened until :meth:`database` is first called. A failed connect
    leaves the handle empty so the next call tries again.
    """

    def __init__(
        self,
        uri: str,
        *,
        database: Optional[str] = None,
        client_kwargs: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.uri = uri
        self.database_name = database
        self.client_kwargs = dict(client_kwargs or {})
        self._client: Optional[MongoClient] = None
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self._client is not None

    def client(self) -> MongoClient:
        if self._client is not None:
            return self._client
        with self._lock:
            if self._client is None:
                logger.info("Connecting to MongoDB")
                try:
                    client: MongoClient = MongoClient(self.uri, tz_aware=True, **self.client_kwargs)
                except PyMongoError as e:
                    raise StorageError(f"Failed to connect to database: {e}") from e
                self._client = client
            return self._client

    def database(self) -> Database:
        client = self.client()
        if self.database_name:
            return client[self.database_name]
        return client.get_default_database(default=DEFAULT_DATABASE)

    def close(self) -> None:
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None


def _as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _truncate_ms(ts: datetime) -> datetime:
    # BSON dates carry millisecond precision
    return ts.replace(microsecond=(ts.microsecond // 1000) * 1000)


class MongoMessageStore(MessageStore):
    """Messages as documents ``{content, sender, timestamp}``; ids are ObjectIds.

    Concurrent appends rely on MongoDB's per-document write atomicity.
    """

    backend = "mongo"

    def __init__(
        self,
        connection: MongoConnection,
        *,
        collection: str = "messages",
        max_content_chars: int = MAX_CONTENT_CHARS,
    ) -> None:
        super().__init__(max_content_chars=max_content_chars)
        self.connection = connection
        self.collection_name = collection
        self._last_ts: Optional[datetime] = None
        self._ts_lock = threading.Lock()

    def _collection(self):
        return self.connection.database()[self.collection_name]

    def _next_timestamp(self) -> datetime:
        with self._ts_lock:
            ts = _truncate_ms(utc_now())
            if self._last_ts is not None and ts < self._last_ts:
                ts = self._last_ts
            self._last_ts = ts
            return ts

    def append(self, content: str, sender: str) -> Message:
        validate_content(content, self.max_content_chars)
        validate_sender(sender)

        doc = {"content": content, "sender": sender, "timestamp": self._next_timestamp()}
        try:
            result = self._collection().insert_one(doc)
        except PyMongoError as e:
            logger.error("Failed to insert message: %s", e)
            raise StorageError("Failed to save message") from e
        return Message(
            id=str(result.inserted_id),
            content=content,
            sender=sender,
            timestamp=doc["timestamp"],
        )

    def list_all(self) -> List[Message]:
        try:
            cursor = self._collection().find({}, sort=[("timestamp", ASCENDING), ("_id", ASCENDING)])
            docs = list(cursor)
        except PyMongoError as e:
            logger.error("Failed to fetch messages: %s", e)
            raise StorageError("Failed to fetch messages") from e
        return [self._from_doc(d) for d in docs]

    @staticmethod
    def _from_doc(doc: Dict[str, Any]) -> Message:
        return Message(
            id=str(doc["_id"]),
            content=doc["content"],
            sender=doc["sender"],
            timestamp=_as_utc(doc["timestamp"]),
        )

    def close(self) -> None:
        self.connection.close()
