import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from browserhost.browser.manager import SessionRegistry
from browserhost.browser.models import EngineConfig

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def pytest_configure(config):
    config.addinivalue_line("markers", "browser: needs a launchable headless Chromium")


class FakePage:
    """Stands in for a Playwright Page."""

    def __init__(self, log: List[tuple]):
        self.url = "about:blank"
        self.log = log
        self.redirects: Dict[str, str] = {}
        self.goto_error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.screenshot_error: Optional[Exception] = None
        self.evaluate_result: Any = None
        self.evaluate_error: Optional[Exception] = None
        self.evaluate_calls: List[tuple] = []
        self.default_timeout = None
        self._closed = False

    def set_default_timeout(self, timeout):
        self.default_timeout = timeout

    def is_closed(self) -> bool:
        return self._closed

    async def goto(self, url, wait_until="load"):
        self.log.append(("goto-start", url))
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)
        if self.goto_error is not None:
            raise self.goto_error
        self.url = self.redirects.get(url, url)
        self.log.append(("goto-end", url))

    async def screenshot(self, type="png"):
        if self.screenshot_error is not None:
            raise self.screenshot_error
        return PNG_BYTES

    async def evaluate(self, script, arg=None):
        self.evaluate_calls.append((script, arg))
        if self.evaluate_error is not None:
            raise self.evaluate_error
        return self.evaluate_result


class FakeSurface:
    """Stands in for a Playwright BrowserContext."""

    def __init__(self, page: FakePage, log: List[tuple]):
        self.page = page
        self.log = log
        self.close_calls = 0
        self.close_error: Optional[Exception] = None
        self.close_gate: Optional[asyncio.Event] = None

    async def close(self):
        self.close_calls += 1
        self.log.append(("surface-close", id(self)))
        if self.close_gate is not None:
            await self.close_gate.wait()
        if self.close_error is not None:
            raise self.close_error
        self.page._closed = True


class FakeEngine:
    """Stands in for PlaywrightEngine; records what happened to it."""

    def __init__(self, fail_start: bool = False):
        self.fail_start = fail_start
        self.log: List[tuple] = []
        self.started = 0
        self.closed = 0
        self.close_error: Optional[Exception] = None
        self.close_gate: Optional[asyncio.Event] = None
        self.created: List[FakeSurface] = []
        self.page_goto_error: Optional[Exception] = None

    async def start(self):
        self.started += 1
        await asyncio.sleep(0)
        if self.fail_start:
            raise RuntimeError("no display available")

    async def new_surface(self):
        page = FakePage(self.log)
        page.goto_error = self.page_goto_error
        surface = FakeSurface(page, self.log)
        self.created.append(surface)
        return surface, page

    def surfaces(self):
        return [s for s in self.created if not s.page.is_closed()]

    async def close(self):
        self.closed += 1
        if self.close_gate is not None:
            await self.close_gate.wait()
        if self.close_error is not None:
            raise self.close_error


class EngineFactory:
    def __init__(self, fail_start: bool = False):
        self.fail_start = fail_start
        self.engines: List[FakeEngine] = []

    def __call__(self) -> FakeEngine:
        engine = FakeEngine(fail_start=self.fail_start)
        self.engines.append(engine)
        return engine

    @property
    def engine(self) -> FakeEngine:
        return self.engines[-1]


@pytest.fixture
def engine_factory():
    return EngineFactory()


@pytest.fixture
def registry(engine_factory):
    return SessionRegistry(EngineConfig(), engine_factory=engine_factory)
