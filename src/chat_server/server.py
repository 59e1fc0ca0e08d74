"""FastAPI application: message history, text chat turns and voice turns."""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Mapping, Optional, Type

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field, create_model

from storage import MessageStore
from storage.models import MAX_MESSAGE_CHARS

from . import __version__
from .context import AppContext
from .errors import ChatError, StorageError
from .responder import AIResponder
from .voice import VoiceBridge

logger = logging.getLogger(__name__)


# -----------------------------
# Pydantic request
# -----------------------------
class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_CHARS)


def chat_request_model(max_chars: int) -> Type[ChatRequest]:
    """Return a request model whose ``message`` bound is ``max_chars``."""
    if max_chars == MAX_MESSAGE_CHARS:
        return ChatRequest
    return create_model(
        "ChatRequest",
        __base__=ChatRequest,
        message=(str, Field(..., min_length=1, max_length=max_chars)),
    )


# -----------------------------
# App factory
# -----------------------------
def create_app(
    config_path: Optional[str] = None,
    *,
    store: Optional[MessageStore] = None,
    responder: Optional[AIResponder] = None,
    voice: Optional[VoiceBridge] = None,
    env: Optional[Mapping[str, str]] = None,
) -> FastAPI:
    ctx = AppContext.build(config_path, store=store, responder=responder, voice=voice, env=env)
    cfg = ctx.cfg
    request_model = chat_request_model(ctx.orchestrator.max_message_chars)

    # CORS
    cors_origins = cfg.get("server", {}).get("cors_origins", ["*"])

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        ctx.close()

    app = FastAPI(title="AI Chatbot Server", version=__version__, lifespan=lifespan)
    app.state.context = ctx
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------
    # Error mapping
    # -----------------------------
    @app.exception_handler(ChatError)
    async def chat_error_handler(_request: Request, exc: ChatError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"message": "Invalid request format", "errors": jsonable_encoder(exc.errors())},
        )

    # -----------------------------
    # Routes
    # -----------------------------
    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"ok": True, "storage_backend": ctx.store.backend}

    @app.get("/api/messages")
    def get_messages() -> List[Dict[str, Any]]:
        try:
            messages = ctx.store.list_all()
        except StorageError:
            logger.exception("Error fetching messages")
            raise
        return [m.to_dict() for m in messages]

    @app.post("/api/chat")
    def chat(req: request_model) -> JSONResponse:
        turn = ctx.orchestrator.handle_turn(req.message)
        return JSONResponse(turn.to_dict())

    @app.post("/api/ai-call")
    def ai_call(audio: Optional[UploadFile] = File(default=None)) -> Response:
        payload = audio.file.read() if audio is not None else None
        reply_audio = ctx.voice.handle_voice_query(
            payload,
            filename=(audio.filename if audio is not None and audio.filename else "query.wav"),
            content_type=audio.content_type if audio is not None else None,
        )
        return Response(content=reply_audio, media_type=ctx.voice.media_type)

    return app
