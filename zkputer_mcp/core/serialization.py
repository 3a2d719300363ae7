"""Serialization helpers for JSON-RPC envelopes."""

from __future__ import annotations

from typing import Any

from zkputer_mcp.utils.exceptions import RemoteError

from .protocol import JSONRPC_VERSION, RpcError, RpcNotification, RpcRequest, RpcResponse


def safe_dict(value: Any) -> dict[str, Any]:
    """Return the value when dict-like, otherwise an empty dict."""
    return value if isinstance(value, dict) else {}


def request_payload(request: RpcRequest) -> dict[str, Any]:
    """Build the wire object for a request."""
    return {"jsonrpc": JSONRPC_VERSION, "id": request.id, "method": request.method, "params": request.params}


def notification_payload(notification: RpcNotification) -> dict[str, Any]:
    """Build the wire object for a notification (no id)."""
    return {"jsonrpc": JSONRPC_VERSION, "method": notification.method, "params": notification.params}


def response_id(payload: Any) -> int | None:
    """Return the integer id of a response payload, or None for notifications and junk."""
    row = safe_dict(payload)
    req_id = row.get("id")
    # bool is an int subclass; True must not match request 1
    if isinstance(req_id, bool) or not isinstance(req_id, int):
        return None
    return req_id


def normalize_rpc_error(error: Any) -> RpcError:
    """Normalize unknown error payloads into RpcError."""
    row = safe_dict(error)
    code = row.get("code")
    message = row.get("message")
    return RpcError(
        code=code if isinstance(code, (int, str)) and not isinstance(code, bool) else None,
        message=str(message) if message else "MCP error",
        data=row.get("data"),
    )


def decode_response_payload(payload: Any) -> RpcResponse | None:
    """Decode a raw response object; None when it carries no usable id."""
    req_id = response_id(payload)
    if req_id is None:
        return None
    row = safe_dict(payload)
    error = row.get("error")
    if error not in (None, False, ""):
        return RpcResponse(id=req_id, ok=False, error=normalize_rpc_error(error))
    return RpcResponse(id=req_id, ok=True, result=row.get("result"))


def to_remote_error(response: RpcResponse) -> RemoteError:
    """Convert an error response to RemoteError."""
    err = response.error or RpcError(code=None, message="MCP error")
    return RemoteError(err.message, rpc_code=err.code, data=err.data)
