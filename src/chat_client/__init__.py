"""Client side of the chatbot: HTTP client, chat view state, QR and voice helpers."""
from __future__ import annotations

from .api import ChatAPI, ChatClientError
from .call import VoiceCall
from .qr import QRScanLoop, ScanResult, build_qr_prompt, extract_product_id
from .session import ChatSession, TurnInFlight

__all__ = [
    "ChatAPI",
    "ChatClientError",
    "ChatSession",
    "TurnInFlight",
    "VoiceCall",
    "QRScanLoop",
    "ScanResult",
    "build_qr_prompt",
    "extract_product_id",
]
