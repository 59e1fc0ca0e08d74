"""HTTP client for the chat server endpoints."""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

import httpx

from storage.models import Message

logger = logging.getLogger(__name__)


class ChatClientError(Exception):
    """Non-2xx response or transport failure talking to the chat server."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return resp.reason_phrase


class ChatAPI:
    """Thin wrapper over ``httpx.Client``.

    Pass ``client`` to reuse an existing client (a ``TestClient`` works too),
    otherwise one is created for ``base_url`` and closed by :meth:`close`.
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8000",
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = 60.0,
    ) -> None:
        self._owns_client = client is None
        self.client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> "ChatAPI":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise ChatClientError(f"Request to {url} failed: {e}") from e
        if resp.status_code >= 400:
            raise ChatClientError(_error_message(resp), status=resp.status_code)
        return resp

    def list_messages(self) -> List[Message]:
        resp = self._request("GET", "/api/messages")
        return [Message.from_dict(item) for item in resp.json()]

    def send_message(self, text: str) -> Tuple[Message, Message]:
        """Run one chat turn; returns ``(user_message, ai_message)``."""
        resp = self._request("POST", "/api/chat", json={"message": text})
        data = resp.json()
        return Message.from_dict(data["userMessage"]), Message.from_dict(data["aiMessage"])

    def voice_query(self, audio: bytes, filename: str = "query.wav", content_type: str = "audio/wav") -> bytes:
        """Send recorded audio, get the spoken reply (``audio/mpeg``) back."""
        resp = self._request("POST", "/api/ai-call", files={"audio": (filename, audio, content_type)})
        return resp.content
