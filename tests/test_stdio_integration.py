"""End-to-end tests against a real child process speaking Content-Length framed JSON-RPC."""

import asyncio
import sys
from pathlib import Path

import pytest

from zkputer_mcp.bridge.client import StdioMcpClient
from zkputer_mcp.bridge.tools import ZkputerTools
from zkputer_mcp.config.schema import McpClientConfig
from zkputer_mcp.core.types import SessionState
from zkputer_mcp.utils.exceptions import ProcessExitedError, ProcessSpawnError, RemoteError

FAKE_SERVER = Path(__file__).parent / "fixtures" / "fake_mcp_server.py"

pytestmark = pytest.mark.stdio_process


def _config(**overrides) -> McpClientConfig:
    values = {
        "mcp_command": sys.executable,
        "mcp_args": [str(FAKE_SERVER)],
        "request_timeout_ms": 5000,
    }
    values.update(overrides)
    return McpClientConfig(**values)


@pytest.mark.asyncio
async def test_tool_call_round_trip_over_stdio():
    async with StdioMcpClient(_config()) as client:
        result = await client.call_tool("echo", {"receipt_id": "abc"})
        assert result == {"echo": {"receipt_id": "abc"}}
        assert client.state is SessionState.READY
        assert client.server_info == {"name": "zkputer-mcp", "version": "0.1.0"}
        assert await client.call_tool("handshake_state") == {"initialized": True}
    assert client.state is SessionState.CLOSED


@pytest.mark.asyncio
async def test_list_tools_and_ping_over_stdio():
    async with StdioMcpClient(_config(log_stderr=True)) as client:
        assert await client.ping() is True
        names = [tool["name"] for tool in await client.list_tools()]
        assert names == ["zkputer_verify_claim", "zkputer_get_receipt"]


@pytest.mark.asyncio
async def test_receipt_lookup_results_pass_through():
    async with StdioMcpClient(_config()) as client:
        tools = ZkputerTools(client)
        found = await tools.get_receipt("r-1")
        missing = await tools.get_receipt("nope")
    assert found["structuredContent"] == {"receipt_id": "r-1", "status": "VERIFIED"}
    assert missing["isError"] is True
    assert missing["content"][0]["text"] == "receipt not found: nope"


@pytest.mark.asyncio
async def test_out_of_order_responses_over_stdio():
    async with StdioMcpClient(_config()) as client:
        await client.ensure_ready()
        first = asyncio.create_task(client.call_tool("defer", {"n": 1}))
        second = asyncio.create_task(client.call_tool("defer", {"n": 2}))
        await asyncio.sleep(0.05)
        flushed = await client.call_tool("flush")
        assert flushed == {"flushed": 2}
        assert await second == {"deferred": {"n": 2}}
        assert await first == {"deferred": {"n": 1}}


@pytest.mark.asyncio
async def test_fragmented_response_is_reassembled():
    async with StdioMcpClient(_config()) as client:
        result = await client.call_tool("fragmented")
    assert result == {"fragmented": True, "text": "é" * 50}


@pytest.mark.asyncio
async def test_process_exit_fails_pending_then_respawns():
    async with StdioMcpClient(_config()) as client:
        await client.ensure_ready()
        first_pid = client.supervisor.pid
        deferred = asyncio.create_task(client.call_tool("defer"))
        await asyncio.sleep(0.05)

        with pytest.raises(ProcessExitedError):
            await client.call_tool("crash")
        with pytest.raises(ProcessExitedError):
            await deferred
        assert client.state is SessionState.UNINITIALIZED

        assert await client.call_tool("echo", {"again": True}) == {"echo": {"again": True}}
        assert client.supervisor.pid != first_pid
        assert await client.call_tool("handshake_state") == {"initialized": True}


@pytest.mark.asyncio
async def test_missing_command_reports_spawn_failure():
    client = StdioMcpClient(_config(mcp_command="/nonexistent/zkputer-mcp-server", mcp_args=[]))
    with pytest.raises(ProcessSpawnError):
        await client.call_tool("echo")
    assert client.state is SessionState.UNINITIALIZED
    out = await ZkputerTools(client).invoke("echo")
    assert out["isError"] is True
    await client.aclose()


@pytest.mark.asyncio
async def test_exit_with_stdout_held_open_respawns_on_next_call():
    async with StdioMcpClient(_config()) as client:
        await client.ensure_ready()
        first_pid = client.supervisor.pid
        crashed = asyncio.create_task(client.call_tool("crash_orphan", {"hold_s": 3}))
        await asyncio.sleep(0.3)

        # The server is gone but a descendant still holds its stdout.
        assert client.supervisor.is_running is False
        assert await client.call_tool("echo", {"again": True}) == {"echo": {"again": True}}
        assert client.supervisor.pid != first_pid
        with pytest.raises(ProcessExitedError):
            await crashed


@pytest.mark.asyncio
async def test_exit_with_stdout_held_open_fails_pending_without_new_calls():
    async with StdioMcpClient(_config()) as client:
        await client.ensure_ready()
        loop = asyncio.get_running_loop()
        started = loop.time()
        with pytest.raises(ProcessExitedError):
            await client.call_tool("crash_orphan", {"hold_s": 3})
        assert loop.time() - started < 2.5
        assert client.state is SessionState.UNINITIALIZED


@pytest.mark.asyncio
async def test_retry_after_failed_handshake_and_exit_succeeds(tmp_path):
    marker = tmp_path / "failed-once"
    config = _config(mcp_args=[str(FAKE_SERVER), "--fail-initialize-once", str(marker)])
    async with StdioMcpClient(config) as client:
        with pytest.raises(RemoteError):
            await client.ensure_ready()
        await asyncio.sleep(0.4)

        await client.ensure_ready()
        assert client.state is SessionState.READY
        assert await client.call_tool("handshake_state") == {"initialized": True}
