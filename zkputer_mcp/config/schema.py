"""Configuration schema using Pydantic.

Values come from, in order of precedence: explicit constructor/file values,
``ZKPUTER_*`` environment variables, then the defaults below.
"""

import math
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MCP_COMMAND = "cargo"
DEFAULT_REQUEST_TIMEOUT_MS = 15000.0


class McpClientConfig(BaseSettings):
    """How to launch and talk to the zkputer MCP server."""
    mcp_command: str = DEFAULT_MCP_COMMAND  # env ZKPUTER_MCP_COMMAND
    cargo_manifest_path: str = ""  # env ZKPUTER_CARGO_MANIFEST_PATH; default ./Cargo.toml
    mcp_args: list[str] = Field(default_factory=list)  # Overrides the cargo run invocation when non-empty
    mcp_env: dict[str, str] = Field(default_factory=dict)  # Merged over the inherited environment
    request_timeout_ms: float = DEFAULT_REQUEST_TIMEOUT_MS
    log_stderr: bool = False  # Server stderr is discarded unless enabled

    model_config = SettingsConfigDict(
        env_prefix="ZKPUTER_",
        extra="ignore",
    )

    @field_validator("mcp_command", mode="before")
    @classmethod
    def _command_or_default(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_MCP_COMMAND
        return value

    @field_validator("request_timeout_ms", mode="before")
    @classmethod
    def _positive_timeout(cls, value: Any) -> float:
        if isinstance(value, bool):
            return DEFAULT_REQUEST_TIMEOUT_MS
        try:
            timeout = float(value)
        except (TypeError, ValueError):
            return DEFAULT_REQUEST_TIMEOUT_MS
        if not math.isfinite(timeout) or timeout <= 0:
            return DEFAULT_REQUEST_TIMEOUT_MS
        return timeout

    @property
    def manifest_path(self) -> Path:
        """Cargo manifest used by the default launch command."""
        raw = self.cargo_manifest_path.strip()
        return Path(raw).expanduser().resolve() if raw else (Path.cwd() / "Cargo.toml").resolve()

    def resolved_args(self) -> list[str]:
        """Argument list for the server process."""
        if self.mcp_args:
            return list(self.mcp_args)
        return ["run", "--manifest-path", str(self.manifest_path), "--bin", "mcp_server"]
