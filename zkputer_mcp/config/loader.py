"""Configuration loading utilities."""

import json
from pathlib import Path
from typing import Any

from zkputer_mcp.config.schema import McpClientConfig

# Host plugin config key -> McpClientConfig key (camelCase, before convert_keys)
PLUGIN_KEY_ALIASES: dict[str, str] = {
    "mcpServerCommand": "mcpCommand",
    "mcpServerArgs": "mcpArgs",
    "mcpServerEnv": "mcpEnv",
}


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".zkputer" / "mcp_client.json"


def load_config(config_path: Path | None = None) -> McpClientConfig:
    """
    Load configuration from file, or defaults plus environment.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            with open(path) as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("config must be a JSON object")
            return config_from_mapping(data)
        except (json.JSONDecodeError, ValueError) as e:
            raise ValueError(
                f"Failed to load config from {path}: {e}. "
                "Fix the file or remove it to use defaults."
            ) from e

    return McpClientConfig()


def config_from_mapping(data: dict[str, Any]) -> McpClientConfig:
    """Build config from a host plugin config object (camelCase or snake_case keys)."""
    data = convert_keys(_migrate_config(dict(data)))
    allowed = set(McpClientConfig.model_fields)
    data = {k: v for k, v in data.items() if k in allowed}
    # Constructor (not model_validate) so ZKPUTER_* env vars still fill unset fields.
    return McpClientConfig(**data)


def _migrate_config(data: dict) -> dict:
    """Map host plugin keys to current names and drop values the host uses to mean unset."""
    for old, new in PLUGIN_KEY_ALIASES.items():
        if old in data and new not in data:
            data[new] = data.pop(old)
    for key in ("mcpCommand", "cargoManifestPath"):
        value = data.get(key)
        if value is not None and not (isinstance(value, str) and value.strip()):
            data.pop(key)
    args = data.get("mcpArgs")
    if args is not None:
        if isinstance(args, list) and args:
            data["mcpArgs"] = [str(x) for x in args]
        else:
            data.pop("mcpArgs")
    env = data.get("mcpEnv")
    if env is not None:
        if isinstance(env, dict):
            data["mcpEnv"] = {str(k): str(v) for k, v in env.items()}
        else:
            data.pop("mcpEnv")
    return data


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case for Pydantic.
    Keys under mcp_env are preserved (they are env var names, e.g. API_KEY)."""
    if isinstance(data, dict):
        result: dict[str, Any] = {}
        for k, v in data.items():
            new_k = camel_to_snake(k)
            if new_k == "mcp_env" and isinstance(v, dict):
                result[new_k] = dict(v)
            else:
                result[new_k] = convert_keys(v)
        return result
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.lower())
    return "".join(result)
