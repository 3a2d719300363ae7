"""Stdio bridge to the zkputer MCP server."""

from .client import StdioMcpClient
from .tools import ZkputerTools, to_tool_error, to_tool_result

__all__ = ["StdioMcpClient", "ZkputerTools", "to_tool_error", "to_tool_result"]
