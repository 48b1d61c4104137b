import asyncio

import pytest

from chatdeck.completion import TransportError
from chatdeck.config import ChatConfig
from chatdeck.models import CompletionRequest
from chatdeck.persistence import InMemoryPersistence
from chatdeck.store import SessionStore


class FakeCompletionClient:
    def __init__(self, reply: str = "hello"):
        self.reply = reply
        self.requests: list[CompletionRequest] = []

    async def complete(self, request: CompletionRequest) -> str:
        self.requests.append(request)
        return self.reply or f"echo: {request.text}"


class FailingCompletionClient:
    def __init__(self, error: Exception | None = None):
        self.error = error or TransportError("connection refused")
        self.requests: list[CompletionRequest] = []

    async def complete(self, request: CompletionRequest) -> str:
        self.requests.append(request)
        raise self.error


class GatedCompletionClient:
    """Holds each request until the test releases it by text."""

    def __init__(self):
        self.gates: dict[str, asyncio.Event] = {}
        self.requests: list[CompletionRequest] = []

    async def complete(self, request: CompletionRequest) -> str:
        self.requests.append(request)
        gate = self.gates.setdefault(request.text, asyncio.Event())
        await gate.wait()
        return f"reply to {request.text}"

    def release(self, text: str) -> None:
        self.gates.setdefault(text, asyncio.Event()).set()


class BrokenPersistence:
    def load(self):
        raise ValueError("corrupt")

    def save(self, state):
        raise OSError("disk full")


@pytest.fixture
def config(tmp_path) -> ChatConfig:
    return ChatConfig(
        default_model="gpt-4o-mini",
        data_path=str(tmp_path / "sessions.json"),
        api_key=None,
        request_timeout_s=5.0,
    )


@pytest.fixture
def persistence() -> InMemoryPersistence:
    return InMemoryPersistence()


@pytest.fixture
def client() -> FakeCompletionClient:
    return FakeCompletionClient()


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def store(config, client, persistence, events) -> SessionStore:
    s = SessionStore(config, client, persistence, on_event=events.append)
    s.initialize()
    return s
