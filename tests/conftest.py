import asyncio
import os

import pytest

# Config is read when nim_proxy.main is imported; give it a credential
os.environ.setdefault("NIM_API_KEY", "test-nim-key")

from nim_proxy.providers.base import UpstreamTransport  # noqa: E402


def nim_body(message=None, **choice_fields):
    """Minimal NIM chat-completion body with one choice."""
    choice = {"index": 0}
    if message is not None:
        choice["message"] = message
    choice.update(choice_fields)
    return {"id": "nim-1", "object": "chat.completion", "choices": [choice]}


class FakeTransport(UpstreamTransport):
    def __init__(self, data=None, error: Exception | None = None, delay: float = 0.0):
        self.data = data if data is not None else nim_body(
            {"role": "assistant", "content": "hello from nim"}
        )
        self.error = error
        self.delay = delay
        self.payloads = []
        self.finished = False

    async def send(self, payload):
        self.payloads.append(payload)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        self.finished = True
        return self.data


@pytest.fixture
def fake_transport():
    """Factory for fake upstream transports."""
    return FakeTransport


@pytest.fixture
def make_body():
    return nim_body


@pytest.fixture
def chat_client():
    """TestClient whose chat route uses the given transport."""
    from fastapi.testclient import TestClient
    from nim_proxy.main import app
    from nim_proxy.routers import chat as chat_router

    def _build(transport):
        app.dependency_overrides[chat_router.get_transport_override] = lambda: transport
        return TestClient(app, raise_server_exceptions=False)

    yield _build
    app.dependency_overrides.pop(chat_router.get_transport_override, None)
