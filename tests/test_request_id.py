from fastapi.testclient import TestClient
from nim_proxy.main import app

client = TestClient(app)


def test_request_id_generated_when_missing():
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.headers["x-request-id"]


def test_request_id_propagated_when_present():
    headers = {"x-request-id": "abc-123"}
    r = client.get("/healthz", headers=headers)
    assert r.status_code == 200
    assert r.headers["x-request-id"] == "abc-123"


def test_request_id_on_error_envelope(chat_client, fake_transport):
    client = chat_client(fake_transport())
    r = client.post("/api/chat", json={}, headers={"x-request-id": "rid-9"})
    assert r.json()["error"]["type"] == "invalid_request_error"
    assert r.headers["x-request-id"] == "rid-9"
