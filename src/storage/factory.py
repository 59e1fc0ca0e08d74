"""Pick the message store variant from configuration at startup."""
from __future__ import annotations

import logging
import os
from typing import Any, Dict, Mapping, Optional

from chat_server.config import resolve_database_uri
from chat_server.errors import ConfigError

from .base import MessageStore
from .memory import InMemoryMessageStore
from .models import MAX_CONTENT_CHARS
from .mongo import MongoConnection, MongoMessageStore

logger = logging.getLogger(__name__)

BACKENDS = ("memory", "mongo")


def create_store(cfg: Dict[str, Any], env: Optional[Mapping[str, str]] = None) -> MessageStore:
    """Build the store named by ``cfg["storage"]["backend"]`` (default ``memory``).

    The MongoDB connection string comes from ``storage.uri`` when set, else
    from the environment fallback chain (see
    :func:`chat_server.config.resolve_database_uri`).
    """
    st_cfg = cfg.get("storage", {}) or {}
    backend = str(st_cfg.get("backend", "memory")).strip().lower()
    max_chars = int(st_cfg.get("max_content_chars", MAX_CONTENT_CHARS))

    if backend == "memory":
        logger.info("Using in-memory message store (messages are lost on restart)")
        return InMemoryMessageStore(max_content_chars=max_chars)

    if backend == "mongo":
        uri = st_cfg.get("uri") or resolve_database_uri(os.environ if env is None else env)
        client_kwargs: Dict[str, Any] = {}
        if st_cfg.get("server_selection_timeout_ms") is not None:
            client_kwargs["serverSelectionTimeoutMS"] = int(st_cfg["server_selection_timeout_ms"])
        connection = MongoConnection(uri, database=st_cfg.get("database"), client_kwargs=client_kwargs)
        logger.info("Using MongoDB message store (collection=%s)", st_cfg.get("collection", "messages"))
        return MongoMessageStore(
            connection,
            collection=st_cfg.get("collection", "messages"),
            max_content_chars=max_chars,
        )

    raise ConfigError(f"Unknown storage backend {backend!r}; expected one of {BACKENDS}.")
