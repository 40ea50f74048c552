import base64

import pytest
from fastapi.testclient import TestClient

from browserhost.config import DaemonConfig
from browserhost.server import create_app
from tests.conftest import PNG_BYTES


class ExitRecorder:
    def __init__(self):
        self.codes = []

    def __call__(self, code):
        self.codes.append(code)


@pytest.fixture
def app(registry):
    return create_app(DaemonConfig.from_env({}), registry=registry, exit_func=ExitRecorder())


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


def _open(client, **body):
    resp = client.post("/sessions", json=body)
    assert resp.status_code == 201
    return resp.json()["id"]


class TestSessionRoutes:
    def test_create(self, client, registry):
        resp = client.post("/sessions", json={})
        assert resp.status_code == 201
        assert set(resp.json()) == {"id"}
        assert resp.json()["id"] in registry

    def test_create_without_body(self, client):
        resp = client.post("/sessions")
        assert resp.status_code == 201

    def test_create_engine_unavailable(self, client, engine_factory):
        engine_factory.fail_start = True
        resp = client.post("/sessions", json={})
        assert resp.status_code == 503
        assert resp.json()["success"] is False
        assert "no display available" in resp.json()["message"]

    def test_create_with_failing_initial_url(self, client, registry, engine_factory):
        _open(client)
        engine_factory.engine.page_goto_error = RuntimeError("net::ERR_NAME_NOT_RESOLVED")
        resp = client.post("/sessions", json={"initialUrl": "https://nowhere.invalid"})
        assert resp.status_code == 500
        body = resp.json()
        assert body["success"] is False
        assert body["id"] in registry

    def test_list_and_get(self, client):
        session_id = _open(client, initialUrl="https://example.com")
        listed = client.get("/sessions").json()
        assert listed["count"] == 1
        assert listed["sessions"][0]["id"] == session_id

        resp = client.get(f"/sessions/{session_id}")
        assert resp.status_code == 200
        assert resp.json()["session"]["currentUrl"] == "https://example.com"
        assert client.get("/sessions/missing").status_code == 404

    def test_delete(self, client):
        session_id = _open(client)
        resp = client.delete(f"/sessions/{session_id}")
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Browser session closed successfully"}

        again = client.delete(f"/sessions/{session_id}")
        assert again.status_code == 404
        assert again.json() == {"success": False, "message": "Session not found"}


class TestNavigateRoute:
    def test_navigate(self, client):
        session_id = _open(client, initialUrl="https://example.com")
        resp = client.post(f"/sessions/{session_id}/navigate", json={"url": "https://example.com/?q=1"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert "?q=1" in body["currentUrl"]

    def test_missing_url(self, client):
        session_id = _open(client)
        resp = client.post(f"/sessions/{session_id}/navigate", json={})
        assert resp.status_code == 400

    def test_unknown_session_wins_over_missing_url(self, client):
        resp = client.post("/sessions/missing/navigate", json={})
        assert resp.status_code == 404

    def test_navigation_failure_is_200_with_failure(self, client, registry):
        session_id = _open(client)
        registry.get_session(session_id).page.goto_error = RuntimeError("net::ERR_ABORTED")
        resp = client.post(f"/sessions/{session_id}/navigate", json={"url": "https://example.com"})
        assert resp.status_code == 200
        assert resp.json()["success"] is False
        assert "ERR_ABORTED" in resp.json()["message"]


class TestScreenshotRoute:
    def test_png(self, client):
        session_id = _open(client)
        resp = client.get(f"/sessions/{session_id}/screenshot")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/png"
        assert resp.headers["content-length"] == str(len(PNG_BYTES))
        assert resp.content == PNG_BYTES

    def test_after_close(self, client):
        session_id = _open(client)
        client.delete(f"/sessions/{session_id}")
        resp = client.get(f"/sessions/{session_id}/screenshot")
        assert resp.status_code == 404

    def test_capture_failure(self, client, registry):
        session_id = _open(client)
        registry.get_session(session_id).page.screenshot_error = RuntimeError("target closed")
        resp = client.get(f"/sessions/{session_id}/screenshot")
        assert resp.status_code == 500
        assert resp.json()["success"] is False


class TestFetchRoute:
    def test_fetch(self, client, registry):
        session_id = _open(client)
        registry.get_session(session_id).page.evaluate_result = {
            "ok": True,
            "status": 200,
            "statusText": "OK",
            "url": "https://example.com/",
            "redirected": False,
            "type": "basic",
            "headerPairs": [["content-type", "text/html"]],
            "bodyBase64": base64.b64encode(b"<title>Example Domain</title>").decode("ascii"),
        }
        resp = client.post(f"/sessions/{session_id}/fetch", json={"url": "https://example.com/"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["ok"] is True
        assert body["status"] == 200
        assert body["headers"] == {"content-type": "text/html"}
        assert b"Example Domain" in base64.b64decode(body["bodyBase64"])

    def test_missing_url(self, client, registry):
        session_id = _open(client)
        resp = client.post(f"/sessions/{session_id}/fetch", json={"method": "GET"})
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "message": "Request body must include url"}
        assert registry.get_session(session_id).page.evaluate_calls == []

    def test_unknown_session(self, client):
        resp = client.post("/sessions/missing/fetch", json={"url": "https://example.com"})
        assert resp.status_code == 404

    def test_bridge_failure(self, client, registry):
        session_id = _open(client)
        registry.get_session(session_id).page.evaluate_error = RuntimeError("TypeError: Failed to fetch")
        resp = client.post(f"/sessions/{session_id}/fetch", json={"url": "https://blocked.example"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["ok"] is False
        assert body["status"] == 500
        assert body["headers"] == {}
        assert body["bodyBase64"] == ""


class TestDaemonRoutes:
    def test_status(self, client):
        _open(client)
        second = _open(client)
        client.delete(f"/sessions/{second}")

        resp = client.get("/status")
        assert resp.status_code == 200
        data = resp.json()
        assert isinstance(data["uptime"], int)
        assert data["uptime"] >= 0
        assert set(data["memoryUsage"]) == {"rss", "heapTotal", "heapUsed", "external"}
        assert data["browser"] == {"isOpen": True}
        assert data["sessions"] == {"active": 1}
        assert isinstance(data["timestamp"], str)

    def test_page_content_not_implemented(self, client):
        resp = client.get("/sessions/anything/content")
        assert resp.status_code == 501
        assert resp.json() == {"success": False, "message": "Not implemented"}

    def test_quit(self, client, registry):
        resp = client.post("/quit")
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Shutting down daemon"}
        assert registry.is_closing

        refused = client.post("/sessions", json={})
        assert refused.status_code == 503


class TestEchoRoute:
    def test_preflight(self, client):
        resp = client.options("/echo")
        assert resp.status_code == 204
        assert resp.headers["access-control-allow-origin"] == "*"

    def test_json_body(self, client):
        resp = client.post("/echo", json={"hello": "world"}, headers={"X-Trace-Id": "1"})
        data = resp.json()
        assert resp.headers["access-control-allow-origin"] == "*"
        assert data["body"] == {"hello": "world"}
        assert data["headers"]["x-trace-id"] == "1"

    def test_binary_body(self, client):
        raw = bytes(range(256))
        resp = client.post("/echo", content=raw, headers={"Content-Type": "application/octet-stream"})
        assert base64.b64decode(resp.json()["bodyBase64"]) == raw
