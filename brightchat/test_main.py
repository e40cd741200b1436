"""
Tests for the chat API: validation, forwarding, error mapping, static fallback.
Run with: pytest brightchat/test_main.py -v
"""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from brightchat.forwarder import WebhookForwarder
from brightchat.main import create_app, to_violation
from brightchat.middleware import format_request_line

WEBHOOK_URL = "https://hooks.example.test/webhook/abc"


class Upstream:
    """Records webhook calls and answers with a canned response."""

    def __init__(self):
        self.calls = []
        self.status_code = 200
        self.body = {"reply": "Hello!"}
        self.raw = None
        self.error = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        if self.raw is not None:
            return httpx.Response(self.status_code, content=self.raw)
        return httpx.Response(self.status_code, json=self.body)

    def last_payload(self) -> dict:
        return json.loads(self.calls[-1].content)


@pytest.fixture
def upstream():
    return Upstream()


@pytest.fixture
def client(upstream):
    forwarder = WebhookForwarder(WEBHOOK_URL, timeout=5.0, transport=httpx.MockTransport(upstream))
    app = create_app(static_dir=None, forwarder=forwarder)
    with TestClient(app) as c:
        yield c


def _message(**overrides) -> dict:
    body = {"message": "Hi", "sender": "user", "chatId": "abc"}
    body.update(overrides)
    return body


# --------------- Forwarding ---------------

def test_forward_passthrough(client, upstream):
    resp = client.post("/api/chat", json=_message())
    assert resp.status_code == 200
    assert resp.json() == {"reply": "Hello!"}
    assert len(upstream.calls) == 1


def test_forward_payload_fields(client, upstream):
    client.post("/api/chat", json=_message())
    request = upstream.calls[0]
    assert request.method == "POST"
    assert str(request.url) == WEBHOOK_URL
    assert request.headers["content-type"] == "application/json"
    assert "authorization" not in request.headers

    payload = upstream.last_payload()
    assert set(payload) == {"message", "sender", "timestamp", "chatId"}
    assert payload["message"] == "Hi"
    assert payload["sender"] == "user"
    assert payload["chatId"] == "abc"


def test_missing_timestamp_defaults_to_now(client, upstream):
    before = datetime.now(timezone.utc)
    client.post("/api/chat", json=_message())
    after = datetime.now(timezone.utc)

    stamp = upstream.last_payload()["timestamp"]
    assert stamp.endswith("Z")
    parsed = datetime.fromisoformat(stamp.replace("Z", "+00:00"))
    assert before - timedelta(seconds=1) <= parsed <= after + timedelta(seconds=1)


def test_empty_timestamp_defaults_to_now(client, upstream):
    client.post("/api/chat", json=_message(timestamp=""))
    assert upstream.last_payload()["timestamp"] != ""


def test_given_timestamp_is_forwarded(client, upstream):
    client.post("/api/chat", json=_message(timestamp="2024-05-01T10:00:00.000Z"))
    assert upstream.last_payload()["timestamp"] == "2024-05-01T10:00:00.000Z"


def test_agent_sender_accepted(client, upstream):
    resp = client.post("/api/chat", json=_message(sender="agent"))
    assert resp.status_code == 200
    assert upstream.last_payload()["sender"] == "agent"


def test_unknown_fields_not_forwarded(client, upstream):
    client.post("/api/chat", json=_message(extra="nope"))
    assert "extra" not in upstream.last_payload()


@pytest.mark.parametrize("body", [[1, 2], "text", {"nested": {"a": 1}}, {}])
def test_passthrough_any_json(client, upstream, body):
    upstream.body = body
    resp = client.post("/api/chat", json=_message())
    assert resp.status_code == 200
    assert resp.json() == body


# --------------- Validation ---------------

@pytest.mark.parametrize("missing", ["message", "sender", "chatId"])
def test_missing_field_rejected(client, upstream, missing):
    body = _message()
    del body[missing]
    resp = client.post("/api/chat", json=body)
    assert resp.status_code == 400
    data = resp.json()
    assert data["message"] == "Invalid request data"
    assert data["errors"]
    assert [missing] in [e["path"] for e in data["errors"]]
    assert upstream.calls == []


def test_bad_sender_rejected(client, upstream):
    resp = client.post("/api/chat", json=_message(sender="bot"))
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["path"] == ["sender"]
    assert upstream.calls == []


@pytest.mark.parametrize("field", ["message", "chatId"])
def test_empty_string_rejected(client, upstream, field):
    resp = client.post("/api/chat", json=_message(**{field: ""}))
    assert resp.status_code == 400
    assert upstream.calls == []


def test_null_timestamp_rejected(client, upstream):
    resp = client.post("/api/chat", json=_message(timestamp=None))
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["path"] == ["timestamp"]
    assert upstream.calls == []


def test_wrong_type_rejected(client, upstream):
    resp = client.post("/api/chat", json=_message(message=42))
    assert resp.status_code == 400
    assert upstream.calls == []


def test_malformed_json_rejected(client, upstream):
    resp = client.post(
        "/api/chat",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json()["errors"]
    assert upstream.calls == []


def test_non_object_body_rejected(client, upstream):
    resp = client.post("/api/chat", json=["Hi", "user", "abc"])
    assert resp.status_code == 400
    assert upstream.calls == []


def test_violation_shape():
    violation = to_violation({"loc": ("body", "chatId"), "msg": "Field required", "type": "missing"})
    assert violation == {"path": ["chatId"], "message": "Field required", "code": "missing"}


# --------------- Method ---------------

@pytest.mark.parametrize("method", ["GET", "PUT", "PATCH", "DELETE"])
def test_non_post_rejected(client, upstream, method):
    resp = client.request(method, "/api/chat", json=_message())
    assert resp.status_code == 405
    assert resp.json() == {"message": "Method not allowed"}
    assert upstream.calls == []


# --------------- Upstream failures ---------------

@pytest.mark.parametrize("status", [400, 404, 500, 502, 503])
def test_upstream_error_status(client, upstream, status):
    upstream.status_code = status
    upstream.body = {"secret": "upstream internals"}
    resp = client.post("/api/chat", json=_message())
    assert resp.status_code == 500
    assert resp.json() == {"message": "Failed to process chat message"}


def test_upstream_connect_error(client, upstream):
    upstream.error = httpx.ConnectError("connection refused")
    resp = client.post("/api/chat", json=_message())
    assert resp.status_code == 500
    assert resp.json() == {"message": "Failed to process chat message"}


def test_upstream_timeout(client, upstream):
    upstream.error = httpx.ReadTimeout("too slow")
    resp = client.post("/api/chat", json=_message())
    assert resp.status_code == 500
    assert len(upstream.calls) == 1


def test_upstream_non_json_body(client, upstream):
    upstream.raw = b"<html>ok</html>"
    resp = client.post("/api/chat", json=_message())
    assert resp.status_code == 500
    assert resp.json() == {"message": "Failed to process chat message"}


# --------------- Health and routing ---------------

def test_health(client, upstream):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "service": "chat-proxy"}
    assert upstream.calls == []


def test_unknown_api_path(client):
    resp = client.get("/api/unknown")
    assert resp.status_code == 404
    assert resp.json() == {"message": "Not Found"}


def test_unknown_path_without_bundle(client):
    resp = client.get("/pricing")
    assert resp.status_code == 404


# --------------- Static bundle ---------------

@pytest.fixture
def bundle_client(tmp_path, upstream):
    (tmp_path / "index.html").write_text("<html>widget</html>")
    (tmp_path / "assets").mkdir()
    (tmp_path / "assets" / "app.js").write_text("console.log('widget')")
    (tmp_path.parent / "secret.txt").write_text("do not serve")

    forwarder = WebhookForwarder(WEBHOOK_URL, transport=httpx.MockTransport(upstream))
    app = create_app(static_dir=str(tmp_path), forwarder=forwarder)
    with TestClient(app) as c:
        yield c


def test_static_asset_served(bundle_client):
    resp = bundle_client.get("/assets/app.js")
    assert resp.status_code == 200
    assert "widget" in resp.text


def test_unknown_route_falls_back_to_entry_page(bundle_client):
    resp = bundle_client.get("/some/client/route")
    assert resp.status_code == 200
    assert resp.text == "<html>widget</html>"


def test_root_serves_entry_page(bundle_client):
    resp = bundle_client.get("/")
    assert resp.status_code == 200
    assert resp.text == "<html>widget</html>"


def test_traversal_not_served(bundle_client):
    resp = bundle_client.get("/..%2Fsecret.txt")
    assert "do not serve" not in resp.text


def test_api_paths_never_fall_back(bundle_client):
    resp = bundle_client.get("/api/unknown")
    assert resp.status_code == 404
    assert resp.json() == {"message": "Not Found"}


def test_chat_get_still_405_with_bundle(bundle_client):
    resp = bundle_client.get("/api/chat")
    assert resp.status_code == 405


# --------------- Request log ---------------

def test_request_line_format():
    line = format_request_line("POST", "/api/chat", 200, 12, b'{"ok":true}')
    assert line == 'POST /api/chat 200 in 12ms :: {"ok": true}'


def test_request_line_truncated():
    line = format_request_line("POST", "/api/chat", 200, 12, json.dumps({"reply": "x" * 200}).encode())
    assert len(line) == 80
    assert line.endswith("…")


def test_api_request_logged(client, caplog):
    with caplog.at_level("INFO", logger="brightchat.middleware"):
        client.post("/api/chat", json=_message())
    assert any(r.getMessage().startswith("POST /api/chat 200 in") for r in caplog.records)


def test_logging_keeps_response_body(client):
    resp = client.post("/api/chat", json=_message(chatId=""))
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid request data"


def test_logging_keeps_repeated_headers(upstream):
    forwarder = WebhookForwarder(WEBHOOK_URL, transport=httpx.MockTransport(upstream))
    app = create_app(static_dir=None, forwarder=forwarder)

    @app.get("/api/session-cookies")
    async def session_cookies():
        response = JSONResponse(content={"ok": True})
        response.set_cookie("first", "1")
        response.set_cookie("second", "2")
        return response

    with TestClient(app) as c:
        resp = c.get("/api/session-cookies")
    assert resp.json() == {"ok": True}
    cookies = resp.headers.get_list("set-cookie")
    assert len(cookies) == 2
    assert any(c.startswith("first=1") for c in cookies)
    assert any(c.startswith("second=2") for c in cookies)
