"""MCP tool handlers."""

from contextdex.mcp.tools import index

__all__ = ["index"]
