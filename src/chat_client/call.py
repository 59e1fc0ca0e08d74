"""Push-to-talk voice call against ``/api/ai-call``."""
from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from .api import ChatAPI

logger = logging.getLogger(__name__)


class Recorder(Protocol):
    """Microphone capture. ``stop`` returns the recorded clip."""

    def start(self) -> None: ...

    def stop(self) -> bytes: ...

    def close(self) -> None: ...


class VoiceCall:
    """One call session: record, send, get audio back, repeat until :meth:`end`.

    The microphone is closed whenever recording stops, on error, and when
    the call ends.
    """

    def __init__(self, api: ChatAPI, recorder: Recorder, *, filename: str = "query.wav") -> None:
        self.api = api
        self.recorder = recorder
        self.filename = filename
        self.active = False
        self.recording = False
        self.last_reply: Optional[bytes] = None

    def start(self) -> None:
        self.active = True

    def start_recording(self) -> None:
        if not self.active:
            raise RuntimeError("Call is not active")
        if self.recording:
            return
        try:
            self.recorder.start()
        except Exception:
            self.recorder.close()
            raise
        self.recording = True

    def stop_recording(self) -> Optional[bytes]:
        """Stop capturing and send the clip; returns the spoken reply."""
        if not self.recording:
            return None
        self.recording = False
        try:
            clip = self.recorder.stop()
        finally:
            self.recorder.close()
        if not clip:
            logger.info("Empty recording, nothing sent")
            return None
        self.last_reply = self.api.voice_query(clip, filename=self.filename)
        return self.last_reply

    def end(self) -> None:
        if self.recording:
            self.recording = False
            try:
                self.recorder.stop()
            finally:
                self.recorder.close()
        self.active = False

    def __enter__(self) -> "VoiceCall":
        self.start()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.end()
