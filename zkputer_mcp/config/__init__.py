"""Configuration module for zkputer_mcp."""

from zkputer_mcp.config.loader import config_from_mapping, get_config_path, load_config
from zkputer_mcp.config.schema import McpClientConfig

__all__ = ["McpClientConfig", "config_from_mapping", "get_config_path", "load_config"]
