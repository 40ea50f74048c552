import base64

import pytest

from browserhost.operations import NOT_IMPLEMENTED_MESSAGE, BrowserOperations
from tests.conftest import PNG_BYTES


@pytest.fixture
def operations(registry):
    return BrowserOperations(registry)


class TestBrowserOperations:
    @pytest.mark.asyncio
    async def test_open_close_flow(self, operations):
        opened = await operations.open()
        assert opened.success is True
        assert opened.status_code == 201
        assert opened.message == "Browser session opened successfully"

        closed = await operations.close(opened.id)
        assert closed.to_dict() == {"success": True, "message": "Browser session closed successfully"}

        again = await operations.close(opened.id)
        assert again.to_dict() == {"success": False, "message": "Session not found"}
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_open_failure_reports_id(self, operations, registry, engine_factory):
        await operations.open()
        engine_factory.engine.page_goto_error = RuntimeError("net::ERR_CONNECTION_REFUSED")

        result = await operations.open("http://127.0.0.1:1")
        assert result.success is False
        assert result.message.startswith("Failed to navigate: ")
        assert "ERR_CONNECTION_REFUSED" in result.message
        assert result.id in registry
        assert result.to_dict()["id"] == result.id
        assert registry.active_count == 2

        assert (await operations.close(result.id)).success

    @pytest.mark.asyncio
    async def test_engine_failure_message_has_one_prefix(self, operations, engine_factory):
        engine_factory.fail_start = True
        result = await operations.open()
        assert result.success is False
        assert result.status_code == 503
        assert result.message == "Failed to initialize browser: no display available"

    @pytest.mark.asyncio
    async def test_scenario(self, operations):
        opened = await operations.open("https://example.com")
        assert opened.success

        navigated = await operations.navigate(opened.id, "https://example.com/?q=1")
        assert navigated.success
        assert "?q=1" in navigated.current_url
        assert navigated.to_dict()["currentUrl"] == navigated.current_url

        shot = await operations.screenshot(opened.id)
        assert shot.success
        assert shot.mime_type == "image/png"
        assert len(shot.data) > 0

        assert (await operations.close(opened.id)).success
        missing = await operations.screenshot(opened.id)
        assert missing.success is False
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_navigate_unknown_keeps_count(self, operations):
        await operations.open()
        before = operations.status()["sessions"]["active"]
        result = await operations.navigate("missing", "https://example.com")
        assert result.to_dict() == {"success": False, "message": "Session not found"}
        assert operations.status()["sessions"]["active"] == before

    @pytest.mark.asyncio
    async def test_navigate_failure_message(self, operations, registry):
        opened = await operations.open()
        registry.get_session(opened.id).page.goto_error = RuntimeError("net::ERR_NAME_NOT_RESOLVED")
        result = await operations.navigate(opened.id, "https://nowhere.invalid")
        assert result.success is False
        assert result.message.startswith("Failed to navigate: ")
        assert result.status_code == 500

    @pytest.mark.asyncio
    async def test_fetch_failures_are_results(self, operations):
        missing = await operations.fetch("missing", {"url": "https://example.com"})
        assert (missing.ok, missing.status, missing.status_text) == (False, 404, "Session not found")

        opened = await operations.open()
        bad = await operations.fetch(opened.id, {})
        assert (bad.ok, bad.status) == (False, 400)
        assert bad.status_text == "Request url is required"

    @pytest.mark.asyncio
    async def test_status_counts(self, operations):
        ids = [(await operations.open()).id for _ in range(4)]
        for session_id in ids[:3]:
            await operations.close(session_id)

        status = operations.status()
        assert status["sessions"]["active"] == 1
        assert status["browser"]["isOpen"] is True
        assert status["uptime"] >= 0
        assert set(status["memoryUsage"]) == {"rss", "heapTotal", "heapUsed", "external"}
        assert status["timestamp"].endswith("Z")

    def test_status_without_sessions(self, operations):
        status = operations.status()
        assert status["sessions"]["active"] == 0
        assert status["browser"]["isOpen"] is False

    def test_page_content_not_implemented(self, operations):
        result = operations.fetch_page_content()
        assert result.to_dict() == {"success": False, "message": NOT_IMPLEMENTED_MESSAGE}
        assert result.status_code == 501

    @pytest.mark.asyncio
    async def test_encode_screenshot(self, operations):
        opened = await operations.open()
        payload = BrowserOperations.encode_screenshot(await operations.screenshot(opened.id))
        assert payload["mimeType"] == "image/png"
        assert base64.b64decode(payload["dataBase64"]) == PNG_BYTES
