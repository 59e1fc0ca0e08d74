"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import httpx
import pytest

# Ensure src/ is on the import path (for local imports without installing as package)
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from bson import ObjectId  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from chat_server.responder import AIResponder  # noqa: E402
from chat_server.server import create_app  # noqa: E402
from storage import InMemoryMessageStore  # noqa: E402


# -----------------------------------------------------------------------------
# Fake OpenAI client
# -----------------------------------------------------------------------------
class _Completions:
    def __init__(self, owner: "FakeOpenAI") -> None:
        self.owner = owner

    def create(self, **kwargs: Any) -> Any:
        self.owner.chat_calls.append(kwargs)
        if self.owner.chat_error is not None:
            raise self.owner.chat_error
        message = SimpleNamespace(content=self.owner.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class _Transcriptions:
    def __init__(self, owner: "FakeOpenAI") -> None:
        self.owner = owner

    def create(self, **kwargs: Any) -> Any:
        self.owner.transcription_calls.append(kwargs)
        if self.owner.transcription_error is not None:
            raise self.owner.transcription_error
        return SimpleNamespace(text=self.owner.transcript)


class _Speech:
    def __init__(self, owner: "FakeOpenAI") -> None:
        self.owner = owner

    def create(self, **kwargs: Any) -> Any:
        self.owner.speech_calls.append(kwargs)
        if self.owner.speech_error is not None:
            raise self.owner.speech_error
        return SimpleNamespace(content=self.owner.speech_bytes)


class FakeOpenAI:
    """Records calls and returns canned replies; set ``*_error`` to fail a call."""

    def __init__(self, reply: Optional[str] = "Hello from the assistant") -> None:
        self.reply = reply
        self.transcript = "what is the weather"
        self.speech_bytes = b"ID3\x03\x00fake-mp3-bytes"
        self.chat_error: Optional[BaseException] = None
        self.transcription_error: Optional[BaseException] = None
        self.speech_error: Optional[BaseException] = None
        self.chat_calls: List[Dict[str, Any]] = []
        self.transcription_calls: List[Dict[str, Any]] = []
        self.speech_calls: List[Dict[str, Any]] = []
        self.chat = SimpleNamespace(completions=_Completions(self))
        self.audio = SimpleNamespace(transcriptions=_Transcriptions(self), speech=_Speech(self))


def _request() -> httpx.Request:
    return httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def make_status_error(cls: type, status: int, code: Optional[str] = None) -> Exception:
    """Build an ``openai.APIStatusError`` subclass the way the SDK does."""
    response = httpx.Response(status, request=_request())
    body = {"code": code, "message": "provider said no"} if code else None
    return cls(f"Error code: {status}", response=response, body=body)


def make_connection_error() -> Exception:
    import openai

    return openai.APIConnectionError(request=_request())


# -----------------------------------------------------------------------------
# Fake MongoDB collection / connection
# -----------------------------------------------------------------------------
class FakeCollection:
    """Just enough of ``pymongo.collection.Collection`` for the message store."""

    def __init__(self) -> None:
        self.docs: List[Dict[str, Any]] = []
        self.error: Optional[BaseException] = None

    def insert_one(self, doc: Dict[str, Any]) -> Any:
        if self.error is not None:
            raise self.error
        stored = dict(doc)
        stored.setdefault("_id", ObjectId())
        self.docs.append(stored)
        return SimpleNamespace(inserted_id=stored["_id"])

    def find(self, flt: Dict[str, Any], sort: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        if self.error is not None:
            raise self.error
        out = [dict(d) for d in self.docs]
        for key, _direction in reversed(sort or []):
            out.sort(key=lambda d: d[key])
        return out


class FakeConnection:
    def __init__(self, collection: FakeCollection) -> None:
        self.collection = collection
        self.closed = False

    def database(self) -> Dict[str, FakeCollection]:
        return {"messages": self.collection}

    def close(self) -> None:
        self.closed = True


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the root directory of the project."""
    return Path(__file__).resolve().parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    return project_root / "config" / "default.yaml"


@pytest.fixture(scope="function")
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Ensure tests run with a clean environment (no leftover vars)."""
    for var in ["CHAT_SERVER_CONFIG", "OPENAI_API_KEY", "OPENAI_API_KEY_ENV_VAR", "MONGODB_URI", "DATABASE_URL"]:
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture
def fake_openai() -> FakeOpenAI:
    return FakeOpenAI()


@pytest.fixture
def store() -> InMemoryMessageStore:
    return InMemoryMessageStore()


@pytest.fixture
def responder(fake_openai: FakeOpenAI) -> AIResponder:
    return AIResponder(client=fake_openai)


@pytest.fixture
def app(config_path: Path, store: InMemoryMessageStore, responder: AIResponder):
    return create_app(str(config_path), store=store, responder=responder, env={})


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def fake_collection() -> FakeCollection:
    return FakeCollection()
