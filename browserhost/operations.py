"""
The operation set both transports call into.

Every method returns a structured result; registry errors become failed
results carrying the error's status code.
"""
import base64
import time
from typing import Any, Dict, Optional

import psutil

from .browser.manager import SessionRegistry
from .browser.models import PNG_MIME_TYPE, FetchResult, OperationResult, utc_timestamp
from .errors import BrowserHostError
from .logging_config import get_logger

logger = get_logger("browserhost.operations")

NOT_IMPLEMENTED_MESSAGE = "Not implemented"


def _failure(error: BrowserHostError) -> OperationResult:
    return OperationResult(
        success=False,
        message=error.message,
        id=error.session_id,
        status_code=error.status_code,
    )


def memory_usage() -> Dict[str, int]:
    """Process memory figures in bytes."""
    process = psutil.Process()
    info = process.memory_info()
    try:
        used = process.memory_full_info().uss
    except (psutil.AccessDenied, AttributeError):
        used = info.rss
    return {
        "rss": info.rss,
        "heapTotal": info.vms,
        "heapUsed": used,
        "external": getattr(info, "shared", 0),
    }


class BrowserOperations:
    """Open/close/navigate/screenshot/fetch/status over one SessionRegistry."""

    def __init__(self, registry: SessionRegistry):
        self.registry = registry

    async def open(self, initial_url: Optional[str] = None) -> OperationResult:
        try:
            session = await self.registry.open(initial_url)
        except BrowserHostError as e:
            return _failure(e)
        return OperationResult(
            success=True,
            message="Browser session opened successfully",
            id=session.id,
            current_url=session.current_url or None,
            status_code=201,
        )

    async def close(self, session_id: str) -> OperationResult:
        try:
            await self.registry.close(session_id)
        except BrowserHostError as e:
            return _failure(e)
        return OperationResult(success=True, message="Browser session closed successfully")

    async def navigate(self, session_id: str, url: str) -> OperationResult:
        try:
            current_url = await self.registry.navigate(session_id, url)
        except BrowserHostError as e:
            return _failure(e)
        return OperationResult(success=True, message=f"Navigated to {url}", current_url=current_url)

    async def screenshot(self, session_id: str) -> OperationResult:
        try:
            data = await self.registry.screenshot(session_id)
        except BrowserHostError as e:
            return _failure(e)
        return OperationResult(
            success=True,
            message="Screenshot captured successfully",
            data=bytes(data),
            mime_type=PNG_MIME_TYPE,
        )

    async def fetch(self, session_id: str, request: Any) -> FetchResult:
        try:
            return await self.registry.fetch(session_id, request)
        except BrowserHostError as e:
            return FetchResult.failure(e.status_code, e.message)

    def fetch_page_content(self) -> OperationResult:
        return OperationResult(success=False, message=NOT_IMPLEMENTED_MESSAGE, status_code=501)

    def status(self) -> Dict[str, Any]:
        active = self.registry.active_count
        process = psutil.Process()
        return {
            "uptime": int(max(0.0, time.time() - process.create_time())),
            "memoryUsage": memory_usage(),
            "browser": {
                "isOpen": active > 0,
            },
            "sessions": {
                "active": active,
            },
            "timestamp": utc_timestamp(),
        }

    @staticmethod
    def encode_screenshot(result: OperationResult) -> Dict[str, Any]:
        """Screenshot result with the PNG bytes as base64, for JSON envelopes."""
        payload = result.to_dict()
        if result.success and result.data is not None:
            payload["mimeType"] = result.mime_type
            payload["dataBase64"] = base64.b64encode(result.data).decode("ascii")
        return payload
