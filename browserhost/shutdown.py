"""
Ordered, best-effort shutdown of the daemon.

Phase one acknowledges the request right away. Phase two runs as a
background task: close every surface, clear the registry, release the
engine, close the listener, then exit. A timer armed when phase two starts
forces the exit if any release hangs, and is tightened to the grace period
once the listener is asked to close.
"""
import asyncio
import logging
import os
import threading
import time
from typing import Any, Callable, Dict, Optional, Set

from .browser.manager import SessionRegistry
from .logging_config import get_logger

logger = get_logger("browserhost.shutdown")

SHUTDOWN_MESSAGE = "Shutting down daemon"


def hard_exit(code: int = 0):
    logging.shutdown()
    os._exit(code)


class ShutdownOrchestrator:
    """Coordinates teardown of sessions, engine and listener."""

    def __init__(
        self,
        registry: SessionRegistry,
        grace_seconds: float = 1.0,
        exit_func: Optional[Callable[[int], Any]] = None,
    ):
        self.registry = registry
        self.grace_seconds = grace_seconds
        self._exit = exit_func or hard_exit
        self._listener = None
        self._requested = False
        self._terminated = False
        self._fallback: Optional[threading.Timer] = None
        self._deadline = 0.0
        self._tasks: Set[asyncio.Task] = set()

    @property
    def teardown_deadline(self) -> float:
        """Seconds phase two may take before the process is forced to exit.

        Surfaces close concurrently and the engine after them, each bounded
        by the registry close timeout.
        """
        return 2 * self.registry.close_timeout + self.grace_seconds

    @property
    def requested(self) -> bool:
        return self._requested

    def attach_listener(self, listener):
        """Register the server whose ``should_exit`` flag closes the listener."""
        self._listener = listener

    def request_shutdown(self) -> Dict[str, Any]:
        """Acknowledge immediately and hand the teardown to a background task."""
        if self._requested:
            logger.info("Shutdown already in progress")
        else:
            logger.info("Shutdown requested")
        self._requested = True
        self.registry.begin_shutdown()

        task = asyncio.get_running_loop().create_task(self._run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return {"success": True, "message": SHUTDOWN_MESSAGE}

    async def wait(self):
        """Wait for scheduled teardown tasks to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def release_resources(self):
        """Close surfaces, clear the registry and release the engine. Never raises."""
        self.registry.begin_shutdown()

        try:
            await self.registry.close_all_surfaces()
        except Exception as e:
            logger.error(f"Error closing browser surfaces: {e}")

        try:
            self.registry.clear()
        except Exception as e:
            logger.error(f"Error clearing session registry: {e}")

        try:
            await self.registry.release_engine()
        except Exception as e:
            logger.error(f"Error releasing browser engine: {e}")

        logger.info("Browser sessions closed")

    def listener_closed(self):
        """Called once the server has stopped listening."""
        if self._requested:
            self.terminate()

    def terminate(self):
        if self._terminated:
            return
        self._terminated = True
        if self._fallback is not None:
            self._fallback.cancel()
        logger.info("Exiting")
        self._exit(0)

    async def _run(self):
        self._arm_fallback(self.teardown_deadline)
        try:
            await self.release_resources()
            self._close_listener()
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")
            self.terminate()

    def _close_listener(self):
        self._arm_fallback(self.grace_seconds)
        if self._listener is None:
            self.terminate()
            return
        self._listener.should_exit = True
        logger.info("Closing HTTP listener")

    def _arm_fallback(self, delay: float):
        """Force an exit ``delay`` seconds from now unless one is already due sooner."""
        if self._terminated:
            return
        deadline = time.monotonic() + delay
        if self._fallback is not None:
            if deadline >= self._deadline:
                return
            self._fallback.cancel()
        self._deadline = deadline
        self._fallback = threading.Timer(delay, self._force_exit)
        self._fallback.daemon = True
        self._fallback.start()

    def _force_exit(self):
        if self._terminated:
            return
        logger.warning("Shutdown did not finish in time, forcing exit")
        self._terminated = True
        self._exit(0)
