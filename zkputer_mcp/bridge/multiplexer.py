"""Request/response correlation over one framed stdio channel."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, Protocol

from loguru import logger

from zkputer_mcp.core.framing import encode_frame
from zkputer_mcp.core.protocol import RpcNotification, RpcRequest
from zkputer_mcp.core.serialization import (
    decode_response_payload,
    notification_payload,
    request_payload,
    safe_dict,
    to_remote_error,
)
from zkputer_mcp.core.types import PendingRequest
from zkputer_mcp.utils.exceptions import RequestTimeoutError, TransportUnavailableError


class FrameTransport(Protocol):
    @property
    def is_writable(self) -> bool: ...
    def write(self, data: bytes) -> None: ...
    async def drain(self) -> None: ...


class RequestMultiplexer:
    """Assigns ids, tracks pending requests and resolves them as responses arrive.

    Ids start at 1 and are never reused, even across process restarts.
    Every pending entry is settled exactly once: by its response, its timeout,
    a write failure, or ``fail_all``.
    """

    def __init__(self, transport: FrameTransport):
        self._transport = transport
        self._next_id = 1
        self._pending: dict[int, PendingRequest] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def pending_ids(self) -> list[int]:
        return list(self._pending)

    def send_request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        timeout_ms: float,
    ) -> tuple[int, asyncio.Future[Any]]:
        """Write a request frame and return its id with the future for its result."""
        if not self._transport.is_writable:
            raise TransportUnavailableError()
        loop = asyncio.get_running_loop()
        req_id = self._next_id
        self._next_id += 1
        frame = encode_frame(request_payload(RpcRequest(id=req_id, method=method, params=params or {})))
        entry = PendingRequest(id=req_id, method=method, future=loop.create_future())
        entry.timer = loop.call_later(timeout_ms / 1000.0, self._expire, req_id, timeout_ms)
        self._pending[req_id] = entry
        try:
            self._transport.write(frame)
        except (OSError, TransportUnavailableError) as exc:
            self._reject(req_id, TransportUnavailableError(f"failed to write to zkputer MCP process: {exc}"))
        return req_id, entry.future

    async def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        timeout_ms: float,
    ) -> Any:
        """Send a request and wait for its result."""
        req_id, future = self.send_request(method, params, timeout_ms=timeout_ms)
        try:
            try:
                await self._transport.drain()
            except OSError as exc:
                self._reject(req_id, TransportUnavailableError(f"failed to write to zkputer MCP process: {exc}"))
            return await future
        except asyncio.CancelledError:
            self._discard(req_id)
            raise

    def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Fire-and-forget notification; write failures are not reported."""
        if not self._transport.is_writable:
            logger.debug("Dropping MCP notification {}: process not running", method)
            return
        frame = encode_frame(notification_payload(RpcNotification(method=method, params=params or {})))
        try:
            self._transport.write(frame)
        except (OSError, TransportUnavailableError) as exc:
            logger.debug("Dropping MCP notification {}: {}", method, exc)

    def dispatch(self, message: Any) -> None:
        """Route one decoded frame to its pending request, if any."""
        response = decode_response_payload(message)
        if response is None:
            method = safe_dict(message).get("method")
            if method:
                logger.debug("Ignoring MCP server notification {}", method)
            return
        entry = self._pending.pop(response.id, None)
        if entry is None:
            logger.debug("Ignoring MCP response for unknown request id {}", response.id)
            return
        if entry.timer is not None:
            entry.timer.cancel()
        if entry.future.done():
            return
        if response.ok:
            entry.future.set_result(response.result)
        else:
            entry.future.set_exception(to_remote_error(response))

    def fail_all(self, error_factory: Callable[[], Exception]) -> None:
        """Reject every pending request with a fresh ``error_factory()`` and clear the table."""
        entries = list(self._pending.values())
        self._pending.clear()
        for entry in entries:
            if entry.timer is not None:
                entry.timer.cancel()
            if not entry.future.done():
                entry.future.set_exception(error_factory())

    def _expire(self, req_id: int, timeout_ms: float) -> None:
        entry = self._pending.get(req_id)
        if entry is None:
            return
        self._reject(req_id, RequestTimeoutError(entry.method, timeout_ms))

    def _reject(self, req_id: int, exc: Exception) -> None:
        entry = self._pending.pop(req_id, None)
        if entry is None:
            return
        if entry.timer is not None:
            entry.timer.cancel()
        if not entry.future.done():
            entry.future.set_exception(exc)

    def _discard(self, req_id: int) -> None:
        entry = self._pending.pop(req_id, None)
        if entry is not None and entry.timer is not None:
            entry.timer.cancel()
