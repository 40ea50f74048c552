"""
MCP tool server over the shared operation set.

Each tool returns a pydantic model, so FastMCP answers with both a JSON
text block and structuredContent.
"""
from typing import Annotated, Dict, Literal, Optional

from mcp.server.fastmcp import FastMCP
from pydantic import BaseModel, Field

from .logging_config import get_logger
from .operations import BrowserOperations
from .shutdown import ShutdownOrchestrator

logger = get_logger("browserhost.mcp")

SERVER_NAME = "browserhost"


# ==================== Output Models ====================

class OperationOutput(BaseModel):
    success: bool
    message: str


class OpenOutput(OperationOutput):
    id: Optional[str] = None


class NavigateOutput(OperationOutput):
    currentUrl: Optional[str] = None


class ScreenshotOutput(OperationOutput):
    mimeType: Optional[str] = None
    dataBase64: Optional[str] = None


class PageContentOutput(OperationOutput):
    content: Optional[str] = None
    title: Optional[str] = None


class FetchOutput(BaseModel):
    ok: bool
    status: int
    statusText: str
    url: str
    redirected: bool
    type: str
    headers: Dict[str, str]
    bodyBase64: str


class MemoryUsage(BaseModel):
    rss: int
    heapTotal: int
    heapUsed: int
    external: int


class StatusOutput(BaseModel):
    uptime: int
    memoryUsage: MemoryUsage
    browser: Dict[str, bool]
    sessions: Dict[str, int]
    timestamp: str


# ==================== Input Models ====================

class FetchRequestInput(BaseModel):
    """A fetch() request descriptor."""
    url: str = Field(..., description="Absolute URL to request")
    method: Optional[str] = Field(None, description="HTTP method, GET when omitted")
    headers: Optional[Dict[str, str]] = None
    body: Optional[str] = Field(None, description="Request body, encoded per bodyEncoding")
    bodyEncoding: Optional[Literal["base64", "utf8"]] = Field(None, description="How body is encoded, utf8 when omitted")
    redirect: Optional[str] = None
    credentials: Optional[str] = None
    cache: Optional[str] = None
    mode: Optional[str] = None
    referrer: Optional[str] = None
    referrerPolicy: Optional[str] = None
    integrity: Optional[str] = None
    keepalive: Optional[bool] = None


class BrowserTools:
    """Tool implementations; registered onto a FastMCP server by create_mcp_server."""

    def __init__(self, operations: BrowserOperations, orchestrator: ShutdownOrchestrator):
        self.operations = operations
        self.orchestrator = orchestrator

    async def open_browser(
        self,
        initialUrl: Annotated[Optional[str], Field(description="Optional URL to load initially")] = None,
    ) -> OpenOutput:
        result = await self.operations.open(initialUrl)
        return OpenOutput(**result.to_dict())

    async def close_browser(
        self,
        id: Annotated[str, Field(description="The session ID to close")],
    ) -> OperationOutput:
        result = await self.operations.close(id)
        return OperationOutput(**result.to_dict())

    async def navigate_to_url(
        self,
        id: Annotated[str, Field(description="The session ID")],
        url: Annotated[str, Field(description="The URL to navigate to")],
    ) -> NavigateOutput:
        result = await self.operations.navigate(id, url)
        return NavigateOutput(**result.to_dict())

    async def take_screenshot(
        self,
        id: Annotated[str, Field(description="The session ID")],
    ) -> ScreenshotOutput:
        result = await self.operations.screenshot(id)
        return ScreenshotOutput(**self.operations.encode_screenshot(result))

    async def fetch_request(
        self,
        id: Annotated[str, Field(description="The session ID")],
        request: FetchRequestInput,
    ) -> FetchOutput:
        result = await self.operations.fetch(id, request.model_dump(exclude_none=True))
        return FetchOutput(**result.to_dict())

    async def fetch_page_content(self) -> PageContentOutput:
        result = self.operations.fetch_page_content()
        return PageContentOutput(**result.to_dict())

    async def get_status(self) -> StatusOutput:
        return StatusOutput(**self.operations.status())

    async def quit_daemon(self) -> OperationOutput:
        return OperationOutput(**self.orchestrator.request_shutdown())


TOOLS = (
    ("open_browser", "Open Browser", "Open a new browser session for web scraping"),
    ("close_browser", "Close Browser", "Close a browser session"),
    ("navigate_to_url", "Navigate to URL", "Navigate a browser session to a specific URL"),
    ("take_screenshot", "Take Screenshot", "Capture a screenshot of the current page as PNG"),
    (
        "fetch_request",
        "Fetch Request",
        "Perform a network request with fetch() inside a browser session's page, "
        "using its cookies and origin. The response body is returned base64 encoded",
    ),
    ("fetch_page_content", "Fetch Page Content", "Extract text content and title from the current page"),
    ("get_status", "Daemon Status", "Report uptime, memory usage and the number of active sessions"),
    ("quit_daemon", "Quit Daemon", "Shut the daemon down, closing every browser session"),
)


def create_mcp_server(
    operations: BrowserOperations,
    orchestrator: ShutdownOrchestrator,
) -> FastMCP:
    mcp = FastMCP(SERVER_NAME, stateless_http=True)
    tools = BrowserTools(operations, orchestrator)
    for name, title, description in TOOLS:
        mcp.add_tool(getattr(tools, name), name=name, title=title, description=description)
    logger.debug(f"Registered {len(TOOLS)} MCP tools")
    return mcp
