from fastapi.testclient import TestClient
from nim_proxy.main import app
from nim_proxy.errors import ServerMisconfiguredError


def _raise_runtime():
    raise RuntimeError("boom")


def _raise_proxy_error():
    raise ServerMisconfiguredError()


def test_unhandled_exception_returns_200_envelope_with_request_id():
    # a failing dependency escapes the route and reaches the global handler
    from nim_proxy.routers import chat as chat_router

    app.dependency_overrides[chat_router.get_config] = _raise_runtime
    client = TestClient(app, raise_server_exceptions=False)
    payload = {"model": "m", "messages": [{"role": "user", "content": "hi"}]}
    try:
        r = client.post("/v1/chat/completions", json=payload)
        assert r.status_code == 200
        rid = r.headers["x-request-id"]
        assert rid
        body = r.json()
        assert body["error"]["type"] == "server_error"
        assert body["error"]["message"] == "boom"
        assert body["error"]["request_id"] == rid
    finally:
        app.dependency_overrides.pop(chat_router.get_config, None)


def test_proxy_error_outside_route_keeps_its_type():
    from nim_proxy.routers import chat as chat_router

    app.dependency_overrides[chat_router.get_config] = _raise_proxy_error
    client = TestClient(app, raise_server_exceptions=False)
    try:
        r = client.get("/v1/models")
        assert r.status_code == 200
        assert r.json()["error"]["message"] == "API key not configured"
    finally:
        app.dependency_overrides.pop(chat_router.get_config, None)
