"""
zkputer_mcp - stdio MCP client for the zkputer verification server
"""

__version__ = "0.1.0"

from zkputer_mcp.bridge.client import StdioMcpClient  # noqa: E402
from zkputer_mcp.bridge.tools import ZkputerTools  # noqa: E402
from zkputer_mcp.config.schema import McpClientConfig  # noqa: E402
from zkputer_mcp.core.types import SessionState  # noqa: E402

__all__ = ["McpClientConfig", "SessionState", "StdioMcpClient", "ZkputerTools", "__version__"]
