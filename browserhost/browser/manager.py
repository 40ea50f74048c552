"""
SessionRegistry - owns every live browser session.

Provides the single source of truth for which sessions exist, serializes
operations per session id, and holds the shared engine connection that
new sessions are created from.
"""
import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Set

from ..errors import OperationFailed, SessionNotFound, ShutdownInProgress
from ..logging_config import get_logger
from .bridge import FetchBridge
from .engine import PlaywrightEngine, SharedEngine
from .models import EngineConfig, FetchDescriptor, FetchResult, Session

logger = get_logger("browserhost.registry")

# Seconds a graceful surface or engine close may take before it is abandoned.
DEFAULT_CLOSE_TIMEOUT = 5.0


class SessionRegistry:
    """Manages multiple isolated browser sessions behind opaque ids."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        engine_factory: Optional[Callable[[], Any]] = None,
        bridge: Optional[FetchBridge] = None,
        id_factory: Optional[Callable[[], str]] = None,
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
    ):
        self.config = config or EngineConfig()
        self.engine = SharedEngine(engine_factory or (lambda: PlaywrightEngine(self.config)))
        self.bridge = bridge or FetchBridge()
        self._sessions: Dict[str, Session] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._issued: Set[str] = set()
        self._new_id = id_factory or (lambda: str(uuid.uuid4()))
        self.close_timeout = close_timeout
        self._closing = False

    @property
    def active_count(self) -> int:
        return len(self._sessions)

    @property
    def is_closing(self) -> bool:
        return self._closing

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    # ==================== Session Lifecycle ====================

    async def open(self, initial_url: Optional[str] = None) -> Session:
        """Create a session, register it, then load ``initial_url`` if given.

        A failing initial navigation leaves the session registered; the
        raised OperationFailed carries its id so the caller can close it.
        """
        self._admit()
        engine = await self.engine.acquire()

        try:
            surface, page = await engine.new_surface()
        except Exception as e:
            logger.error(f"Failed to create browser surface: {e}")
            raise OperationFailed(f"Failed to open browser: {e}") from e

        if self._closing:
            await self._close_surface(surface, "unregistered")
            raise ShutdownInProgress()

        session_id = self._generate_id()
        session = Session(id=session_id, surface=surface, page=page)
        self._sessions[session_id] = session
        self._locks[session_id] = asyncio.Lock()
        logger.session_event(logging.INFO, "Opened browser session", session_id, sessions=len(self._sessions))

        if initial_url:
            try:
                async with self._locked(session_id) as locked:
                    await self._navigate(locked, initial_url)
            except OperationFailed as e:
                e.session_id = session_id
                raise

        return session

    async def close(self, session_id: str):
        """Drop a session from the registry, then close its surface.

        The id is gone before the graceful close starts, so a slow or hung
        close never keeps the session counted. The close itself is bounded
        by ``close_timeout``.
        """
        async with self._locked(session_id) as session:
            self._sessions.pop(session_id, None)
            self._locks.pop(session_id, None)
            logger.session_event(logging.INFO, "Closed browser session", session_id, sessions=len(self._sessions))
            if not self._is_destroyed(session):
                await self._close_surface(session.surface, session_id)

    def get_session(self, session_id: str) -> Session:
        self._admit()
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound()
        return session

    def list_sessions(self) -> List[Session]:
        return list(self._sessions.values())

    # ==================== Session Actions ====================

    async def navigate(self, session_id: str, url: str) -> str:
        """Navigate and return the URL the page actually ended up on."""
        async with self._locked(session_id) as session:
            return await self._navigate(session, url)

    async def screenshot(self, session_id: str) -> bytes:
        async with self._locked(session_id) as session:
            try:
                return await session.page.screenshot(type="png")
            except Exception as e:
                logger.session_event(logging.WARNING, f"Screenshot failed: {e}", session_id)
                raise OperationFailed(f"Failed to capture screenshot: {e}") from e

    async def fetch(self, session_id: str, request: Any) -> FetchResult:
        """Run ``request`` through the session page's own fetch().

        Unknown ids raise SessionNotFound and malformed descriptors raise
        BadRequest before the session is touched. Anything that goes wrong
        inside the page comes back as a failed FetchResult.
        """
        self._admit()
        if session_id not in self._sessions:
            raise SessionNotFound()
        descriptor = FetchDescriptor.from_dict(request)

        async with self._locked(session_id) as session:
            return await self.bridge.execute(session.page, descriptor)

    # ==================== Shutdown ====================

    def begin_shutdown(self):
        """Refuse every further operation."""
        self._closing = True

    async def close_all_surfaces(self):
        """Close every surface still open, registered or not."""
        surfaces = []
        for session in list(self._sessions.values()):
            if self._is_destroyed(session):
                continue
            surfaces.append((session.id, session.surface))

        known = {id(surface) for _, surface in surfaces}
        for surface in self.engine.surfaces():
            if id(surface) not in known:
                surfaces.append(("unregistered", surface))

        # Concurrent, so one hung surface does not hold up the rest.
        await asyncio.gather(*(self._close_surface(surface, label) for label, surface in surfaces))

    def clear(self):
        self._sessions.clear()
        self._locks.clear()

    async def release_engine(self):
        await self.engine.release(timeout=self.close_timeout)

    # ==================== Internal Helpers ====================

    def _admit(self):
        if self._closing:
            raise ShutdownInProgress()

    def _generate_id(self) -> str:
        while True:
            session_id = self._new_id()
            if session_id not in self._issued:
                self._issued.add(session_id)
                return session_id

    @asynccontextmanager
    async def _locked(self, session_id: str) -> AsyncIterator[Session]:
        """Hold the per-session lock; the session must still exist once acquired."""
        self._admit()
        lock = self._locks.get(session_id)
        if lock is None:
            raise SessionNotFound()
        async with lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound()
            yield session

    async def _navigate(self, session: Session, url: str) -> str:
        try:
            await session.page.goto(url, wait_until="load")
        except Exception as e:
            logger.session_event(logging.WARNING, f"Navigation failed: {e}", session.id, url=url)
            raise OperationFailed(f"Failed to navigate: {e}") from e
        session.current_url = session.page.url
        return session.current_url

    def _is_destroyed(self, session: Session) -> bool:
        try:
            return session.is_destroyed()
        except Exception as e:
            logger.session_event(logging.WARNING, f"Could not inspect browser session: {e}", session.id)
            return False

    async def _close_surface(self, surface, label: str):
        try:
            await asyncio.wait_for(surface.close(), self.close_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Browser surface ({label}) did not close within {self.close_timeout}s, abandoning it")
        except Exception as e:
            logger.warning(f"Error closing browser surface ({label}): {e}")
