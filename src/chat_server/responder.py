"""Wrapper around the OpenAI chat API that turns a user utterance into reply text."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import openai

from .config import resolve_api_key
from .errors import UpstreamError

logger = logging.getLogger(__name__)


# -----------------------------
# Types & defaults
# -----------------------------

SYSTEM_PROMPT = (
    "You are a helpful AI assistant. Provide clear, concise, and helpful responses "
    "to user questions. Be friendly and conversational while remaining informative."
)

QUOTA_ADVISORY = "⚠️ OpenAI API quota exceeded. Please add credits to your OpenAI account."

EMPTY_REPLY = "I apologize, but I couldn't generate a response at this time. Please try again."


@dataclass
class GenerationConfig:
    model: str = "gpt-4o"
    max_tokens: int = 1000
    temperature: float = 0.7


def is_quota_error(exc: BaseException) -> bool:
    """True for rate-limit / insufficient-quota failures reported by the provider."""
    if isinstance(exc, openai.RateLimitError):
        return True
    code = getattr(exc, "code", None)
    if code == "insufficient_quota":
        return True
    return getattr(exc, "status_code", None) == 429


# -----------------------------
# Responder
# -----------------------------

class AIResponder:
    """Single-turn chat completion with a fixed system instruction.

    Quota exhaustion is not an error: :meth:`respond` returns
    :data:`QUOTA_ADVISORY` so the turn still completes. Every other provider
    failure raises :class:`UpstreamError`. No retry or timeout is applied.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        client: Any = None,
        generation: Optional[GenerationConfig] = None,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self._api_key = api_key
        self._client = client
        self.generation = generation or GenerationConfig()
        self.system_prompt = system_prompt

    @property
    def client(self) -> Any:
        """Provider client, created on first use so the app can start without a key."""
        if self._client is None:
            if not self._api_key:
                raise UpstreamError("OpenAI API key is not configured. Set OPENAI_API_KEY.")
            self._client = openai.OpenAI(api_key=self._api_key)
        return self._client

    def _build_messages(self, user_text: str) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": user_text},
        ]

    def respond(self, user_text: str) -> str:
        client = self.client
        try:
            response = client.chat.completions.create(
                model=self.generation.model,
                messages=self._build_messages(user_text),
                max_tokens=self.generation.max_tokens,
                temperature=self.generation.temperature,
            )
        except openai.OpenAIError as e:
            if is_quota_error(e):
                logger.warning("Provider quota exhausted, returning advisory reply: %s", e)
                return QUOTA_ADVISORY
            logger.error("OpenAI API error: %s", e)
            raise UpstreamError(
                "Failed to generate AI response. Please check your API configuration and try again."
            ) from e

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content or not content.strip():
            logger.warning("Provider returned an empty completion")
            return EMPTY_REPLY
        return content


# -----------------------------
# Convenience factory
# -----------------------------

def create_from_config(cfg: Dict[str, Any], *, api_key: Optional[str] = None) -> AIResponder:
    """Create an AIResponder from a config dict (e.g., loaded YAML)."""
    p = (cfg or {}).get("provider", {}) if isinstance(cfg, dict) else {}
    generation = GenerationConfig(
        model=str(p.get("chat_model", GenerationConfig.model)),
        max_tokens=int(p.get("max_tokens", GenerationConfig.max_tokens)),
        temperature=float(p.get("temperature", GenerationConfig.temperature)),
    )
    if api_key is None:
        api_key = resolve_api_key()
    if not api_key:
        logger.warning("No OpenAI API key found; chat and voice requests will fail until one is set.")
    return AIResponder(
        api_key=api_key,
        generation=generation,
        system_prompt=str(p.get("system_prompt") or SYSTEM_PROMPT).strip(),
    )
