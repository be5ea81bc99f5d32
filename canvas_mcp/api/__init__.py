"""HTTP-слой MCP."""

from .routes import McpServerState, SESSION_HEADER, router

__all__ = ["McpServerState", "SESSION_HEADER", "router"]
