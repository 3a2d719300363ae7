"""MCP client for the zkputer server over stdio (Content-Length framed JSON-RPC)."""

from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from zkputer_mcp import __version__
from zkputer_mcp.bridge.multiplexer import RequestMultiplexer
from zkputer_mcp.bridge.process import ProcessSupervisor
from zkputer_mcp.config.schema import McpClientConfig
from zkputer_mcp.core.protocol import (
    MCP_PROTOCOL_VERSION,
    METHOD_INITIALIZE,
    METHOD_INITIALIZED,
    METHOD_PING,
    METHOD_TOOLS_CALL,
    METHOD_TOOLS_LIST,
)
from zkputer_mcp.core.serialization import safe_dict
from zkputer_mcp.core.types import SessionState
from zkputer_mcp.utils.exceptions import ClientClosedError, ProcessExitedError

DEFAULT_CLIENT_NAME = "zkputer-mcp-client"


class StdioMcpClient:
    """Lazily started, self-healing MCP session with one server process.

    The first call spawns the process and runs the initialize handshake;
    concurrent callers share that one attempt. If the process exits, pending
    requests fail and the next call starts a new process and handshake.
    """

    def __init__(
        self,
        config: McpClientConfig | None = None,
        *,
        client_name: str = DEFAULT_CLIENT_NAME,
        client_version: str = __version__,
    ):
        self.config = config or McpClientConfig()
        self.client_info = {"name": client_name, "version": client_version}
        self.supervisor = ProcessSupervisor(
            self.config.mcp_command,
            self.config.resolved_args(),
            self.config.mcp_env,
            on_message=self._on_message,
            on_exit=self._on_process_exit,
            log_stderr=self.config.log_stderr,
        )
        self.rpc = RequestMultiplexer(self.supervisor)
        self._state = SessionState.UNINITIALIZED
        self._starting: asyncio.Task[None] | None = None
        self._server_info: dict[str, Any] | None = None
        self._exit_count = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def server_info(self) -> dict[str, Any] | None:
        """``serverInfo`` reported by the last successful handshake."""
        return self._server_info

    @property
    def request_timeout_ms(self) -> float:
        return self.config.request_timeout_ms

    async def __aenter__(self) -> StdioMcpClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def ensure_ready(self) -> None:
        """Start the process and complete the handshake, at most once concurrently."""
        if self._state is SessionState.READY and self.supervisor.is_running:
            return
        if self._starting is None:
            # An exit the watcher has not reported yet belongs to the old session;
            # settle it now so it cannot land inside the new handshake.
            self.supervisor.reap_exited()
            self._state = SessionState.INITIALIZING
            self._starting = asyncio.ensure_future(self._initialize_once())
            self._starting.add_done_callback(self._on_initialize_done)
        # Shielded: a cancelled caller must not cancel the attempt other callers share.
        await asyncio.shield(self._starting)

    async def initialize(self) -> None:
        await self.ensure_ready()

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> Any:
        """Invoke a server tool; raises on transport, timeout or remote errors."""
        return await self._request(METHOD_TOOLS_CALL, {"name": name, "arguments": arguments or {}})

    async def list_tools(self) -> list[dict[str, Any]]:
        result = await self._request(METHOD_TOOLS_LIST, {})
        tools = safe_dict(result).get("tools")
        return [safe_dict(tool) for tool in tools] if isinstance(tools, list) else []

    async def ping(self) -> bool:
        await self._request(METHOD_PING, {})
        return True

    def close(self) -> None:
        """Stop the process and fail everything outstanding before returning."""
        self._state = SessionState.CLOSED
        self._starting = None
        self._server_info = None
        self.supervisor.close()
        self.rpc.fail_all(ClientClosedError)

    async def aclose(self, timeout: float = 2.0) -> None:
        self.close()
        await self.supervisor.wait_closed(timeout=timeout)

    async def _request(self, method: str, params: dict[str, Any]) -> Any:
        await self.ensure_ready()
        return await self.rpc.request(method, params, timeout_ms=self.request_timeout_ms)

    async def _initialize_once(self) -> None:
        attempt = asyncio.current_task()
        try:
            await self.supervisor.ensure_started()
            exits_before = self._exit_count
            result = await self.rpc.request(
                METHOD_INITIALIZE,
                {
                    "protocolVersion": MCP_PROTOCOL_VERSION,
                    "capabilities": {"tools": {}},
                    "clientInfo": dict(self.client_info),
                },
                timeout_ms=self.request_timeout_ms,
            )
            # close() or a process exit won the race against the response.
            if self._starting is not attempt or self._state is SessionState.CLOSED:
                raise ClientClosedError()
            if self._exit_count != exits_before:
                raise ProcessExitedError()
            self.rpc.notify(METHOD_INITIALIZED, {})
            server_info = safe_dict(result).get("serverInfo")
            self._server_info = server_info if isinstance(server_info, dict) else None
            self._state = SessionState.READY
            logger.debug("zkputer MCP session ready (server={})", self._server_info)
        except BaseException:
            if self._starting is attempt and self._state is not SessionState.CLOSED:
                self._state = SessionState.UNINITIALIZED
            raise
        finally:
            if self._starting is attempt:
                self._starting = None

    @staticmethod
    def _on_initialize_done(task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug("zkputer MCP handshake failed: {}", exc)

    def _on_message(self, message: Any) -> None:
        self.rpc.dispatch(message)

    def _on_process_exit(self, returncode: int | None) -> None:
        self._exit_count += 1
        self.rpc.fail_all(lambda: ProcessExitedError(returncode))
        self._server_info = None
        # An attempt in flight settles the state itself when it fails.
        if self._state is SessionState.READY:
            self._state = SessionState.UNINITIALIZED
