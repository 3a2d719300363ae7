"""JSON-RPC 2.0 envelope models for the zkputer MCP stdio bridge."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

JSONRPC_VERSION = "2.0"
MCP_PROTOCOL_VERSION = "2024-11-05"

METHOD_INITIALIZE = "initialize"
METHOD_INITIALIZED = "notifications/initialized"
METHOD_TOOLS_CALL = "tools/call"
METHOD_TOOLS_LIST = "tools/list"
METHOD_PING = "ping"


@dataclass(slots=True)
class RpcError:
    """Normalized JSON-RPC error payload."""

    code: int | str | None
    message: str
    data: Any = None


@dataclass(slots=True)
class RpcRequest:
    """Request frame; carries an id and expects a response."""

    id: int
    method: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class RpcNotification:
    """Notification frame; no id, never answered."""

    method: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class RpcResponse:
    """Response frame correlated to a request by id."""

    id: int
    ok: bool
    result: Any = None
    error: RpcError | None = None
