"""
browserhost daemon: the FastAPI app carrying the HTTP routes and the MCP
endpoint, both bound to one SessionRegistry.
"""
from contextlib import asynccontextmanager
from typing import Any, Callable, Optional

from fastapi import FastAPI

from . import __version__
from .browser.api import build_router
from .browser.manager import SessionRegistry
from .config import DaemonConfig
from .logging_config import setup_logging, get_logger
from .mcp_tools import create_mcp_server
from .operations import BrowserOperations
from .shutdown import ShutdownOrchestrator

logger = get_logger("browserhost.server")


def create_app(
    config: Optional[DaemonConfig] = None,
    registry: Optional[SessionRegistry] = None,
    exit_func: Optional[Callable[[int], Any]] = None,
) -> FastAPI:
    config = config or DaemonConfig.from_env()
    registry = registry or SessionRegistry(config.engine, close_timeout=config.close_timeout)
    operations = BrowserOperations(registry)
    orchestrator = ShutdownOrchestrator(
        registry,
        grace_seconds=config.shutdown_grace,
        exit_func=exit_func,
    )

    mcp = create_mcp_server(operations, orchestrator)
    mcp_app = mcp.streamable_http_app()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with mcp.session_manager.run():
            yield
        await orchestrator.release_resources()

    app = FastAPI(title="browserhost", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.registry = registry
    app.state.operations = operations
    app.state.orchestrator = orchestrator
    app.state.mcp = mcp

    app.include_router(build_router(operations, orchestrator))
    # MCP streamable HTTP lives at /mcp inside this sub-app.
    app.mount("/", mcp_app)
    return app


def run_server(config: Optional[DaemonConfig] = None):
    """Run the daemon until /quit, a signal, or the forced-exit timer."""
    import uvicorn

    setup_logging()
    config = config or DaemonConfig.from_env()
    app = create_app(config)
    orchestrator: ShutdownOrchestrator = app.state.orchestrator

    server = uvicorn.Server(uvicorn.Config(app, host=config.host, port=config.port, log_config=None))
    orchestrator.attach_listener(server)

    logger.info(f"HTTP API available at: http://{config.host}:{config.port}")
    logger.info(f"MCP endpoint available at: http://{config.host}:{config.port}/mcp")
    server.run()
    orchestrator.listener_closed()
