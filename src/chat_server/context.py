"""Process-lifetime application context: config plus the services built from it."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from storage import MessageStore, create_store
from storage.models import MAX_MESSAGE_CHARS

from . import responder as responder_mod
from . import voice as voice_mod
from .config import load_config, resolve_api_key
from .orchestrator import ChatOrchestrator
from .responder import AIResponder
from .voice import VoiceBridge

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    cfg: Dict[str, Any]
    store: MessageStore
    responder: AIResponder
    voice: VoiceBridge
    orchestrator: ChatOrchestrator

    @classmethod
    def build(
        cls,
        config_path: Optional[str] = None,
        *,
        store: Optional[MessageStore] = None,
        responder: Optional[AIResponder] = None,
        voice: Optional[VoiceBridge] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> "AppContext":
        """Load config and construct any service not passed in explicitly."""
        env = os.environ if env is None else env
        cfg = load_config(config_path, env)

        if store is None:
            store = create_store(cfg, env)
        if responder is None:
            responder = responder_mod.create_from_config(cfg, api_key=resolve_api_key(env) or "")
        if voice is None:
            voice = voice_mod.create_from_config(cfg, responder)

        max_chars = int(cfg.get("chat", {}).get("max_message_chars", MAX_MESSAGE_CHARS))
        orchestrator = ChatOrchestrator(store, responder, max_message_chars=max_chars)
        return cls(cfg=cfg, store=store, responder=responder, voice=voice, orchestrator=orchestrator)

    def close(self) -> None:
        logger.info("Closing message store (%s)", self.store.backend)
        self.store.close()
