import httpx
import pytest

from nim_proxy.config import TranslatorConfig
from nim_proxy.errors import (
    MalformedUpstreamError,
    RateLimitedError,
    ServerMisconfiguredError,
    TransportFailureError,
    UnauthorizedError,
    UpstreamApiError,
    UpstreamTimeoutError,
)
from nim_proxy.providers.nim import NimTransport


class _FakeResponse:
    def __init__(self, data=None, status_code: int = 200, text: str = "", headers=None):
        self._data = data
        self.status_code = status_code
        self.text = text
        self.headers = headers or {}

    def json(self):
        if self._data is None:
            raise ValueError("not json")
        return self._data


class _FakeAsyncClient:
    def __init__(self, base_url=None, timeout=None, **kwargs):
        self.base_url = base_url
        self.timeout = timeout
        self._next_response: _FakeResponse | None = None
        self._error: Exception | None = None
        self.calls = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def post(self, path, headers=None, json=None):
        self.calls.append({"path": path, "headers": headers or {}, "json": json})
        if self._error:
            raise self._error
        return self._next_response or _FakeResponse({})


def _install(monkeypatch, response=None, error=None):
    fake_client = _FakeAsyncClient()
    fake_client._next_response = response
    fake_client._error = error

    def _client_factory(base_url=None, timeout=None, **kwargs):
        fake_client.base_url = base_url
        fake_client.timeout = timeout
        return fake_client

    monkeypatch.setattr("nim_proxy.providers.nim.httpx.AsyncClient", _client_factory)
    return fake_client


def _transport(**overrides):
    params = {"api_key": "nim-secret", "base_url": "http://nim.local/v1/", "timeout_seconds": 42.0}
    params.update(overrides)
    return NimTransport(TranslatorConfig(**params))


PAYLOAD = {"model": "z-ai/glm4.7", "messages": [{"role": "user", "content": "hi"}], "stream": False}


@pytest.mark.asyncio
async def test_send_posts_payload_with_bearer(monkeypatch):
    body = {"choices": [{"message": {"content": "hi"}}]}
    fake_client = _install(monkeypatch, _FakeResponse(body))

    data = await _transport().send(PAYLOAD)

    assert data == body
    assert fake_client.base_url == "http://nim.local/v1"
    assert fake_client.timeout == 42.0
    call = fake_client.calls[0]
    assert call["path"] == "/chat/completions"
    assert call["json"] == PAYLOAD
    assert call["headers"]["Authorization"] == "Bearer nim-secret"
    assert call["headers"]["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_missing_key_fails_before_network(monkeypatch):
    fake_client = _install(monkeypatch, _FakeResponse({}))
    with pytest.raises(ServerMisconfiguredError):
        await _transport(api_key=None).send(PAYLOAD)
    assert fake_client.calls == []


@pytest.mark.asyncio
async def test_429_maps_to_rate_limited(monkeypatch):
    _install(monkeypatch, _FakeResponse(status_code=429, text="slow", headers={"Retry-After": "30"}))
    with pytest.raises(RateLimitedError) as excinfo:
        await _transport().send(PAYLOAD)
    assert excinfo.value.retry_after_seconds == 30
    assert excinfo.value.to_payload()["error"]["type"] == "rate_limit_error"


@pytest.mark.asyncio
async def test_401_maps_to_unauthorized(monkeypatch):
    _install(monkeypatch, _FakeResponse(status_code=401, text="bad key"))
    with pytest.raises(UnauthorizedError) as excinfo:
        await _transport().send(PAYLOAD)
    assert excinfo.value.to_payload() == {
        "error": {"message": "Invalid API key", "type": "authentication_error"}
    }


@pytest.mark.asyncio
async def test_other_status_maps_to_api_error(monkeypatch):
    _install(monkeypatch, _FakeResponse(status_code=503, text="x" * 500))
    with pytest.raises(UpstreamApiError) as excinfo:
        await _transport().send(PAYLOAD)
    error = excinfo.value.to_payload()["error"]
    assert error["type"] == "api_error"
    assert error["message"] == "NVIDIA API error: 503"
    assert error["code"] == 503
    assert len(error["details"]) == 200


@pytest.mark.asyncio
async def test_httpx_timeout_maps_to_timeout(monkeypatch):
    _install(monkeypatch, error=httpx.ReadTimeout("read timed out"))
    with pytest.raises(UpstreamTimeoutError) as excinfo:
        await _transport().send(PAYLOAD)
    assert excinfo.value.to_payload()["error"]["model"] == "z-ai/glm4.7"


@pytest.mark.asyncio
async def test_connect_error_maps_to_transport_failure(monkeypatch):
    _install(monkeypatch, error=httpx.ConnectError("connection refused"))
    with pytest.raises(TransportFailureError) as excinfo:
        await _transport().send(PAYLOAD)
    assert excinfo.value.to_payload()["error"]["type"] == "server_error"


@pytest.mark.asyncio
@pytest.mark.parametrize("data", [None, ["not", "an", "object"]])
async def test_non_object_body_is_malformed(monkeypatch, data):
    _install(monkeypatch, _FakeResponse(data))
    with pytest.raises(MalformedUpstreamError):
        await _transport().send(PAYLOAD)
