"""QR payload parsing and a cooperative camera scan loop."""
from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol
from urllib.parse import unquote

logger = logging.getLogger(__name__)

_ID_PARAM = re.compile(r"id=([^&#]+)")
_PRODUCT_PATH = re.compile(r"/product/([^/?#]+)")


def extract_product_id(payload: str) -> str:
    """Best-effort product id from a scanned payload.

    Tries an ``id=`` query parameter, then a ``/product/<id>`` path segment.
    Falls back to the raw payload (stripped) when neither matches.
    """
    text = payload.strip()
    m = _ID_PARAM.search(text) or _PRODUCT_PATH.search(text)
    if m:
        return unquote(m.group(1))
    return text


def build_qr_prompt(payload: str) -> str:
    product_id = extract_product_id(payload)
    return (
        f"I scanned a product QR code with ID: {product_id}. "
        "Can you tell me about this product and help me with any questions?"
    )


# -----------------------------
# Scan loop
# -----------------------------
class FrameSource(Protocol):
    """Camera stream. ``read`` returns ``None`` when no frame is ready."""

    def read(self) -> Any: ...

    def release(self) -> None: ...


Decoder = Callable[[Any], Optional[str]]


@dataclass
class ScanResult:
    status: str  # "found" | "error" | "cancelled" | "exhausted"
    payload: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def found(self) -> bool:
        return self.status == "found"


class QRScanLoop:
    """Poll frames until a code decodes, an error occurs, or the loop is cancelled.

    The camera is released on every exit path. :meth:`cancel` is safe to call
    from another thread (e.g. a UI close handler).
    """

    def __init__(
        self,
        camera: FrameSource,
        decoder: Decoder,
        *,
        interval: float = 1 / 30,
        max_frames: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.camera = camera
        self.decoder = decoder
        self.interval = interval
        self.max_frames = max_frames
        self._sleep = sleep
        self._cancelled = threading.Event()
        self._released = False

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def release(self) -> None:
        if not self._released:
            self._released = True
            self.camera.release()

    def run(self) -> ScanResult:
        frames = 0
        try:
            while not self._cancelled.is_set():
                if self.max_frames is not None and frames >= self.max_frames:
                    return ScanResult("exhausted")
                frame = self.camera.read()
                frames += 1
                if frame is not None:
                    payload = self.decoder(frame)
                    if payload:
                        return ScanResult("found", payload=payload)
                self._sleep(self.interval)
            return ScanResult("cancelled")
        except Exception as e:
            logger.warning("QR scanning stopped after %d frame(s): %s", frames, e)
            return ScanResult("error", error=e)
        finally:
            self.release()

    def __enter__(self) -> "QRScanLoop":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.cancel()
        self.release()
