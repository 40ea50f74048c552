"""
Browser session HTTP endpoints.
"""
import base64
import json
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from ..errors import BadRequest
from ..operations import BrowserOperations
from ..shutdown import ShutdownOrchestrator
from .models import FetchDescriptor

SESSION_NOT_FOUND = {"success": False, "message": "Session not found"}
SHUTTING_DOWN = {"success": False, "message": "Daemon is shutting down"}

ECHO_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "*",
}


# ==================== Request Models ====================

class SessionCreate(BaseModel):
    initialUrl: Optional[str] = Field(None, max_length=2000)


def build_router(operations: BrowserOperations, orchestrator: ShutdownOrchestrator) -> APIRouter:
    """HTTP routes over the shared operation set."""
    router = APIRouter(tags=["browser"])
    registry = operations.registry

    def _missing(session_id: str) -> Optional[JSONResponse]:
        if registry.is_closing:
            return JSONResponse(status_code=503, content=SHUTTING_DOWN)
        if session_id not in registry:
            return JSONResponse(status_code=404, content=SESSION_NOT_FOUND)
        return None

    # ==================== Session Endpoints ====================

    @router.post("/sessions")
    async def create_session(request: Optional[SessionCreate] = None):
        """Open a new browser session."""
        initial_url = request.initialUrl if request else None
        result = await operations.open(initial_url)
        if result.success:
            return JSONResponse(status_code=201, content={"id": result.id})
        status_code = result.status_code if result.status_code >= 500 else 500
        return JSONResponse(status_code=status_code, content=result.to_dict())

    @router.get("/sessions")
    async def list_sessions():
        """List live browser sessions."""
        sessions = [s.to_dict() for s in registry.list_sessions()]
        return {"sessions": sessions, "count": len(sessions)}

    @router.get("/sessions/{session_id}")
    async def get_session(session_id: str):
        missing = _missing(session_id)
        if missing:
            return missing
        return {"session": registry.get_session(session_id).to_dict()}

    @router.delete("/sessions/{session_id}")
    async def close_session(session_id: str):
        """Close a browser session."""
        missing = _missing(session_id)
        if missing:
            return missing
        result = await operations.close(session_id)
        status_code = 200 if result.success else result.status_code
        return JSONResponse(status_code=status_code, content=result.to_dict())

    # ==================== Action Endpoints ====================

    @router.post("/sessions/{session_id}/navigate")
    async def navigate(session_id: str, payload: Optional[Dict[str, Any]] = Body(None)):
        """Navigate a session to a URL."""
        missing = _missing(session_id)
        if missing:
            return missing
        url = (payload or {}).get("url")
        if not url or not isinstance(url, str):
            return JSONResponse(status_code=400, content={"success": False, "message": "URL required in request body"})

        result = await operations.navigate(session_id, url)
        status_code = result.status_code if result.status_code in (404, 503) else 200
        return JSONResponse(status_code=status_code, content=result.to_dict())

    @router.post("/sessions/{session_id}/fetch")
    async def fetch(session_id: str, payload: Optional[Any] = Body(None)):
        """Run a fetch() inside the session's page and return the response as JSON."""
        missing = _missing(session_id)
        if missing:
            return missing
        try:
            FetchDescriptor.from_dict(payload)
        except BadRequest as e:
            message = "Request body must include url" if e.message == "Request url is required" else e.message
            return JSONResponse(status_code=400, content={"success": False, "message": message})

        result = await operations.fetch(session_id, payload)
        return JSONResponse(status_code=200, content=result.to_dict())

    @router.get("/sessions/{session_id}/screenshot")
    async def screenshot(session_id: str):
        """PNG screenshot of the session's current page."""
        missing = _missing(session_id)
        if missing:
            return missing
        result = await operations.screenshot(session_id)
        if result.success and result.data is not None:
            return Response(content=result.data, media_type=result.mime_type)
        status_code = result.status_code if result.status_code in (404, 503) else 500
        return JSONResponse(status_code=status_code, content={"success": False, "message": result.message})

    @router.get("/sessions/{session_id}/content")
    async def page_content(session_id: str):
        """Page content extraction is not implemented."""
        result = operations.fetch_page_content()
        return JSONResponse(status_code=result.status_code, content=result.to_dict())

    # ==================== Daemon Endpoints ====================

    @router.get("/status")
    async def status():
        """Uptime, memory and session counts."""
        return operations.status()

    @router.post("/quit")
    async def quit_daemon():
        """Acknowledge, then shut the daemon down in the background."""
        return orchestrator.request_shutdown()

    # ==================== Echo Endpoint ====================

    @router.options("/echo")
    async def echo_preflight():
        return Response(status_code=204, headers=ECHO_CORS_HEADERS)

    @router.post("/echo")
    async def echo(request: Request):
        """Echo request headers and body back, for exercising renderer fetches."""
        raw = await request.body()
        body: Any = None
        if "application/json" in request.headers.get("content-type", ""):
            try:
                body = json.loads(raw) if raw else None
            except ValueError:
                body = None
        else:
            body = raw.decode("utf-8", "replace")
        content = {
            "headers": dict(request.headers),
            "body": body,
            "bodyBase64": base64.b64encode(raw).decode("ascii"),
        }
        return JSONResponse(content=content, headers=ECHO_CORS_HEADERS)

    return router
