"""
Shared engine connection.

One Playwright driver and one launched browser serve every session in the
process. The connection is established on the first open and released
once, at shutdown.
"""
import asyncio
from typing import Any, Callable, List, Optional, Tuple

from ..errors import EngineUnavailable, ShutdownInProgress
from ..logging_config import get_logger
from .models import EngineConfig

logger = get_logger("browserhost.engine")


class PlaywrightEngine:
    """Playwright driver plus one launched browser."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self._playwright = None
        self.browser = None

    async def start(self):
        from playwright.async_api import async_playwright

        self._playwright = await async_playwright().start()
        launcher = getattr(self._playwright, self.config.browser_type.value)
        try:
            self.browser = await launcher.launch(headless=self.config.headless)
        except Exception:
            await self._playwright.stop()
            self._playwright = None
            raise
        logger.info(f"Launched {self.config.browser_type.value} (headless={self.config.headless})")

    async def new_surface(self) -> Tuple[Any, Any]:
        """Create an isolated browser context and the page bound to it."""
        context = await self.browser.new_context(**self.config.context_options())
        try:
            page = await context.new_page()
        except Exception:
            await context.close()
            raise
        page.set_default_timeout(self.config.timeout_ms)
        return context, page

    def surfaces(self) -> List[Any]:
        if self.browser is None:
            return []
        return list(self.browser.contexts)

    async def close(self):
        try:
            if self.browser is not None:
                await self.browser.close()
        finally:
            self.browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None


class SharedEngine:
    """At-most-once, lazily established engine connection.

    Concurrent first callers of ``acquire`` wait on the same lock, so only
    one engine is ever started. After ``release`` the connection is gone
    for good.
    """

    def __init__(self, factory: Callable[[], Any]):
        self._factory = factory
        self._engine = None
        self._lock = asyncio.Lock()
        self._released = False

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    async def acquire(self):
        if self._engine is not None:
            return self._engine

        async with self._lock:
            if self._released:
                raise ShutdownInProgress("Browser engine has been released")
            if self._engine is None:
                engine = self._factory()
                try:
                    await engine.start()
                except Exception as e:
                    logger.error(f"Failed to start browser engine: {e}")
                    raise EngineUnavailable(f"Failed to initialize browser: {e}") from e
                self._engine = engine
                logger.info("Browser engine connected")
        return self._engine

    def surfaces(self) -> List[Any]:
        if self._engine is None:
            return []
        return self._engine.surfaces()

    async def release(self, timeout: Optional[float] = None):
        """Close the engine if present, waiting at most ``timeout`` seconds.

        Errors and timeouts are logged, never raised.
        """
        async with self._lock:
            self._released = True
            engine, self._engine = self._engine, None
        if engine is None:
            return
        try:
            await asyncio.wait_for(engine.close(), timeout)
            logger.info("Browser engine released")
        except asyncio.TimeoutError:
            logger.warning(f"Browser engine did not close within {timeout}s, abandoning it")
        except Exception as e:
            logger.warning(f"Error releasing browser engine: {e}")
