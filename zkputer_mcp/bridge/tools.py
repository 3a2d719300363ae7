"""zkputer tools exposed through the MCP client, with host-facing result shaping."""

from __future__ import annotations

import json
from typing import Any

from loguru import logger

from zkputer_mcp.bridge.client import StdioMcpClient
from zkputer_mcp.utils.exceptions import classify_exception, error_message, sanitize_error_message

VERIFY_CLAIM_TOOL = "zkputer_verify_claim"
GET_RECEIPT_TOOL = "zkputer_get_receipt"

VENUES = ("hyperliquid", "base", "solana", "polymarket")
CLAIM_TYPES = ("ORDER_PLACED", "TRADE_EXECUTED")


def to_tool_result(result: Any) -> dict[str, Any]:
    """Pass through results that already carry a content list; wrap anything else."""
    if isinstance(result, dict) and isinstance(result.get("content"), list):
        return result
    return {
        "content": [{"type": "text", "text": json.dumps(result, indent=2, ensure_ascii=False)}],
        "structuredContent": result,
    }


def to_tool_error(exc: BaseException) -> dict[str, Any]:
    """Error-flagged tool result for a failed call."""
    return {
        "isError": True,
        "content": [{"type": "text", "text": f"zkputer MCP error: {error_message(exc)}"}],
    }


class ZkputerTools:
    """Host-facing tool calls. ``invoke`` never raises for ordinary failures."""

    def __init__(self, client: StdioMcpClient):
        self.client = client

    async def invoke(self, name: str, args: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            result = await self.client.call_tool(name, args or {})
        except Exception as e:
            code, _, _ = classify_exception(e)
            logger.warning(f"zkputer tool '{name}' failed [{code}]: {sanitize_error_message(error_message(e))}")
            return to_tool_error(e)
        return to_tool_result(result)

    async def verify_claim(
        self,
        venue: str,
        claim_type: str,
        account_ref: str,
        order_ref: str,
        execution_ref: str | None = None,
        wait_for_result: bool | None = None,
        wait_timeout_ms: int | None = None,
    ) -> dict[str, Any]:
        """Submit a verification request; unset optional fields use the server defaults."""
        args: dict[str, Any] = {
            "venue": venue,
            "claim_type": claim_type,
            "account_ref": account_ref,
            "order_ref": order_ref,
        }
        if execution_ref is not None:
            args["execution_ref"] = execution_ref
        if wait_for_result is not None:
            args["wait_for_result"] = wait_for_result
        if wait_timeout_ms is not None:
            args["wait_timeout_ms"] = wait_timeout_ms
        return await self.invoke(VERIFY_CLAIM_TOOL, args)

    async def get_receipt(self, receipt_id: str) -> dict[str, Any]:
        return await self.invoke(GET_RECEIPT_TOOL, {"receipt_id": receipt_id})
