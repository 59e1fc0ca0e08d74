"""Client-side chat view state: history, input, toggles and the submit flow."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from storage.models import Message

from .api import ChatAPI, ChatClientError
from .qr import build_qr_prompt

logger = logging.getLogger(__name__)

Speaker = Callable[[str], None]

MAX_STAGED_IMAGES = 5


def image_note(count: int) -> str:
    noun = "image" if count == 1 else "images"
    return f"[{count} {noun} attached]"


@dataclass
class StagedImage:
    name: str
    data: bytes
    content_type: str = "image/*"


@dataclass
class ChatViewState:
    messages: List[Message] = field(default_factory=list)
    input_buffer: str = ""
    voice_input_active: bool = False
    auto_speak: bool = False
    qr_scanner_visible: bool = False
    staged_images: List[StagedImage] = field(default_factory=list)
    in_flight: bool = False


class TurnInFlight(RuntimeError):
    """A turn is already being processed; resubmission is refused."""


class ChatSession:
    """Mirror of the server's message list plus the local input state.

    The history is refreshed from the server after every write; nothing is
    applied optimistically.
    """

    def __init__(
        self,
        api: ChatAPI,
        *,
        speaker: Optional[Speaker] = None,
        max_images: int = MAX_STAGED_IMAGES,
    ) -> None:
        self.api = api
        self.speaker = speaker
        self.max_images = max_images
        self.state = ChatViewState()
        self._lock = threading.Lock()

    @property
    def messages(self) -> List[Message]:
        return list(self.state.messages)

    def refresh(self) -> List[Message]:
        self.state.messages = self.api.list_messages()
        return self.messages

    # -------------------------
    # Toggles and staging
    # -------------------------
    def set_input(self, text: str) -> None:
        self.state.input_buffer = text

    def toggle_auto_speak(self) -> bool:
        self.state.auto_speak = not self.state.auto_speak
        return self.state.auto_speak

    def toggle_voice_input(self) -> bool:
        self.state.voice_input_active = not self.state.voice_input_active
        return self.state.voice_input_active

    def show_scanner(self, visible: bool = True) -> None:
        self.state.qr_scanner_visible = visible

    def stage_image(self, name: str, data: bytes, content_type: str = "image/*") -> None:
        if not content_type.startswith("image/"):
            raise ValueError(f"{name} is not an image")
        if len(self.state.staged_images) >= self.max_images:
            raise ValueError(f"Maximum {self.max_images} images allowed")
        self.state.staged_images.append(StagedImage(name, data, content_type))

    def stage_image_file(self, path: Path) -> None:
        path = Path(path)
        self.stage_image(path.name, path.read_bytes(), f"image/{path.suffix.lstrip('.').lower() or '*'}")

    def clear_images(self) -> None:
        self.state.staged_images.clear()

    def apply_qr_result(self, payload: str) -> str:
        """Fold a scanned QR payload into the input buffer and close the scanner."""
        prompt = build_qr_prompt(payload)
        self.state.input_buffer = prompt
        self.state.qr_scanner_visible = False
        return prompt

    # -------------------------
    # Submit
    # -------------------------
    def compose(self) -> str:
        text = self.state.input_buffer.strip()
        count = len(self.state.staged_images)
        if count:
            note = image_note(count)
            text = f"{text}\n\n{note}" if text else note
        return text

    def submit(self) -> Optional[Tuple[Message, Message]]:
        """Send the input buffer as one turn.

        Returns ``None`` when there is nothing to send. Raises
        :class:`TurnInFlight` if a turn is already running, and lets
        :class:`ChatClientError` from the send propagate with the input left
        intact. A failed history refresh after a saved turn is only logged.
        """
        with self._lock:
            if self.state.in_flight:
                raise TurnInFlight("A message is already being sent.")
            text = self.compose()
            if not text:
                return None
            self.state.in_flight = True

        try:
            user_message, ai_message = self.api.send_message(text)
            self.state.input_buffer = ""
            self.state.staged_images.clear()
            # the turn is saved; a failed refetch only leaves the view stale
            try:
                self.refresh()
            except ChatClientError as exc:
                logger.warning("Message saved but history refresh failed: %s", exc.message)
        finally:
            self.state.in_flight = False

        if self.state.auto_speak and self.speaker is not None:
            self.speaker(ai_message.content)
        return user_message, ai_message
