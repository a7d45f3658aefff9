"""MCP server module - FastMCP tool registration and wiring."""

from contextdex.mcp.context import AppContext
from contextdex.mcp.registry import ToolRegistry, ToolSpec
from contextdex.mcp.server import create_mcp_server

__all__ = ["AppContext", "ToolRegistry", "ToolSpec", "create_mcp_server"]
