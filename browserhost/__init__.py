"""
browserhost - a daemon hosting isolated browser sessions.

Sessions are driven through Playwright and exposed over two transports
that share one session registry: a plain HTTP API and an MCP tool server.
"""

__version__ = "1.0.0"
