"""Server-side voice turn: transcribe, respond, synthesize."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import openai

from .errors import UpstreamError, ValidationError
from .responder import AIResponder

logger = logging.getLogger(__name__)

AUDIO_MEDIA_TYPE = "audio/mpeg"


@dataclass
class VoiceConfig:
    transcription_model: str = "whisper-1"
    speech_model: str = "tts-1"
    voice: str = "alloy"
    response_format: str = "mp3"


class VoiceBridge:
    """Audio in, audio out. Voice turns are not written to the message store."""

    media_type = AUDIO_MEDIA_TYPE

    def __init__(
        self,
        responder: AIResponder,
        *,
        config: Optional[VoiceConfig] = None,
        client: Any = None,
    ) -> None:
        self.responder = responder
        self.config = config or VoiceConfig()
        self._client = client

    @property
    def client(self) -> Any:
        # Share the responder's provider client unless one was injected.
        return self._client if self._client is not None else self.responder.client

    def transcribe(self, audio: bytes, filename: str, content_type: Optional[str]) -> str:
        upload = (filename, audio, content_type) if content_type else (filename, audio)
        try:
            result = self.client.audio.transcriptions.create(
                model=self.config.transcription_model,
                file=upload,
            )
        except openai.OpenAIError as e:
            logger.error("Transcription failed: %s", e)
            raise UpstreamError("Failed to transcribe audio.") from e
        text = result if isinstance(result, str) else getattr(result, "text", "")
        return (text or "").strip()

    def synthesize(self, text: str) -> bytes:
        try:
            speech = self.client.audio.speech.create(
                model=self.config.speech_model,
                voice=self.config.voice,
                input=text,
                response_format=self.config.response_format,
            )
        except openai.OpenAIError as e:
            logger.error("Speech synthesis failed: %s", e)
            raise UpstreamError("Failed to synthesize speech.") from e
        data = getattr(speech, "content", speech)
        if not isinstance(data, (bytes, bytearray)) or not data:
            raise UpstreamError("Speech synthesis returned no audio.")
        return bytes(data)

    def handle_voice_query(
        self,
        audio: Optional[bytes],
        *,
        filename: str = "query.wav",
        content_type: Optional[str] = None,
    ) -> bytes:
        """Answer a spoken question with spoken audio (``audio/mpeg``)."""
        if not audio:
            raise ValidationError("No audio file provided.")

        transcript = self.transcribe(audio, filename, content_type)
        if not transcript:
            raise ValidationError("No speech detected in audio.")

        reply = self.responder.respond(transcript)
        logger.info("Voice turn answered (%d chars); voice turns are not persisted", len(reply))
        return self.synthesize(reply)


def create_from_config(cfg: Dict[str, Any], responder: AIResponder) -> VoiceBridge:
    p = (cfg or {}).get("provider", {}) if isinstance(cfg, dict) else {}
    config = VoiceConfig(
        transcription_model=str(p.get("transcription_model", VoiceConfig.transcription_model)),
        speech_model=str(p.get("speech_model", VoiceConfig.speech_model)),
        voice=str(p.get("voice", VoiceConfig.voice)),
    )
    return VoiceBridge(responder, config=config)
