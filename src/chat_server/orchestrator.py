"""One chat turn: persist the user message, ask the responder, persist the reply."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

from storage import MessageStore
from storage.models import MAX_MESSAGE_CHARS, Message, validate_content

from .errors import UpstreamError
from .responder import AIResponder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Turn:
    user_message: Message
    ai_message: Message

    def to_dict(self) -> Dict[str, Any]:
        return {"userMessage": self.user_message.to_dict(), "aiMessage": self.ai_message.to_dict()}


class ChatOrchestrator:
    """Sequences store writes around the responder call. Holds no state between turns.

    If the responder raises :class:`UpstreamError` the user message stays
    persisted without a reply and the error propagates to the caller.
    """

    def __init__(
        self,
        store: MessageStore,
        responder: AIResponder,
        *,
        max_message_chars: int = MAX_MESSAGE_CHARS,
    ) -> None:
        self.store = store
        self.responder = responder
        self.max_message_chars = max_message_chars

    def handle_turn(self, text: str) -> Turn:
        validate_content(text, self.max_message_chars)

        user_message = self.store.append(text, "user")
        try:
            reply = self.responder.respond(text)
        except UpstreamError:
            logger.warning("AI call failed; user message %s left without a reply", user_message.id)
            raise
        limit = self.store.max_content_chars
        if len(reply) > limit:
            logger.warning("AI reply of %d chars truncated to %d", len(reply), limit)
            reply = reply[:limit]
        ai_message = self.store.append(reply, "ai")
        return Turn(user_message=user_message, ai_message=ai_message)
