"""Tests for zkputer_mcp.utils.exceptions module."""

from __future__ import annotations

import asyncio
import json

from zkputer_mcp.utils.exceptions import (
    ClientClosedError,
    ErrorCategory,
    FrameProtocolError,
    ProcessExitedError,
    ProcessSpawnError,
    RemoteError,
    RequestTimeoutError,
    TransportUnavailableError,
    ZkputerMcpError,
    classify_exception,
    error_message,
    sanitize_error_message,
)


class TestExceptionClasses:
    """Test custom exception classes."""

    def test_base_error_to_dict(self) -> None:
        exc = ZkputerMcpError("test message", code="TEST_CODE")
        assert exc.to_dict() == {
            "error": "TEST_CODE",
            "message": "test message",
            "category": ErrorCategory.FATAL.value,
            "details": {},
        }
        assert str(exc) == "[TEST_CODE] test message"

    def test_transport_unavailable(self) -> None:
        exc = TransportUnavailableError()
        assert exc.code == "NOT_RUNNING"
        assert exc.message == "zkputer MCP process is not running"
        assert exc.category == ErrorCategory.RETRYABLE

    def test_timeout_names_method(self) -> None:
        exc = RequestTimeoutError("tools/call", 15000)
        assert exc.message == "MCP request timed out for method tools/call"
        assert exc.details == {"method": "tools/call", "timeout_ms": 15000}

    def test_remote_error_keeps_rpc_code(self) -> None:
        exc = RemoteError("Method not found: x", rpc_code=-32601)
        assert exc.rpc_code == -32601
        assert exc.details["rpc_code"] == -32601

    def test_process_exited_and_closed_messages(self) -> None:
        assert ProcessExitedError(3).returncode == 3
        assert ProcessExitedError().message == "zkputer MCP process exited"
        assert ClientClosedError().message == "MCP process closed"

    def test_spawn_and_protocol_errors(self) -> None:
        exc = ProcessSpawnError("cargo", "No such file or directory")
        assert exc.code == "SPAWN_FAILED"
        assert "cargo" in exc.message
        assert FrameProtocolError("bad header", discarded_bytes=12).details == {"discarded_bytes": 12}


class TestClassification:
    def test_library_errors_use_their_code(self) -> None:
        assert classify_exception(RequestTimeoutError("ping", 1)) == ("TIMEOUT", ErrorCategory.TIMEOUT, True)
        assert classify_exception(ClientClosedError()) == ("CLIENT_CLOSED", ErrorCategory.FATAL, False)

    def test_builtin_errors(self) -> None:
        assert classify_exception(asyncio.TimeoutError())[0] == "TIMEOUT"
        assert classify_exception(BrokenPipeError())[0] == "NOT_RUNNING"
        assert classify_exception(json.JSONDecodeError("x", "", 0))[0] == "JSON_PARSE_ERROR"
        assert classify_exception(RuntimeError("boom")) == ("INTERNAL_ERROR", ErrorCategory.FATAL, False)

    def test_error_message_strips_code_prefix(self) -> None:
        assert error_message(TransportUnavailableError()) == "zkputer MCP process is not running"
        assert error_message(RuntimeError("boom")) == "boom"
        assert error_message(KeyError()) == "KeyError"


def test_sanitize_redacts_credentials() -> None:
    text = sanitize_error_message("failed with api_key=abc123 and Bearer tok.en")
    assert "abc123" not in text
    assert "tok.en" not in text
    assert "[REDACTED]" in text
