"""
Exception hierarchy and error handling utilities for zkputer_mcp.

Provides:
- Error classes with codes for each failure mode of the stdio bridge
- Error categorization (recoverable, retryable, fatal)
- Safe error message formatting (no sensitive data leak)
"""

from __future__ import annotations

import asyncio
import json
import re
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Error categories for classification."""
    RECOVERABLE = "recoverable"
    RETRYABLE = "retryable"
    FATAL = "fatal"
    VALIDATION = "validation"
    TIMEOUT = "timeout"


class ZkputerMcpError(Exception):
    """Base exception for all zkputer_mcp errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class TransportUnavailableError(ZkputerMcpError):
    """The server process is not running or its stdin is not writable."""

    def __init__(self, message: str = "zkputer MCP process is not running"):
        super().__init__(message, code="NOT_RUNNING", category=ErrorCategory.RETRYABLE)


class ProcessSpawnError(ZkputerMcpError):
    """The server process could not be started."""

    def __init__(self, command: str, reason: str):
        super().__init__(
            f"failed to start zkputer MCP process '{command}': {reason}",
            code="SPAWN_FAILED",
            category=ErrorCategory.RETRYABLE,
            details={"command": command},
        )


class RequestTimeoutError(ZkputerMcpError):
    """No response arrived within the request timeout."""

    def __init__(self, method: str, timeout_ms: float):
        super().__init__(
            f"MCP request timed out for method {method}",
            code="TIMEOUT",
            category=ErrorCategory.TIMEOUT,
            details={"method": method, "timeout_ms": timeout_ms},
        )


class FrameProtocolError(ZkputerMcpError):
    """Malformed frame header or body on the server's stdout."""

    def __init__(self, message: str, discarded_bytes: int = 0):
        super().__init__(
            message,
            code="PROTOCOL_ERROR",
            category=ErrorCategory.RECOVERABLE,
            details={"discarded_bytes": discarded_bytes},
        )


class RemoteError(ZkputerMcpError):
    """The server answered with a JSON-RPC error object."""

    def __init__(self, message: str, rpc_code: int | str | None = None, data: Any = None):
        super().__init__(
            message,
            code="REMOTE_ERROR",
            category=ErrorCategory.FATAL,
            details={"rpc_code": rpc_code, "data": data},
        )
        self.rpc_code = rpc_code
        self.data = data


class ProcessExitedError(ZkputerMcpError):
    """The server process exited while requests were outstanding."""

    def __init__(self, returncode: int | None = None):
        super().__init__(
            "zkputer MCP process exited",
            code="PROCESS_EXITED",
            category=ErrorCategory.RETRYABLE,
            details={"returncode": returncode},
        )
        self.returncode = returncode


class ClientClosedError(ZkputerMcpError):
    """The client was closed while requests were outstanding."""

    def __init__(self) -> None:
        super().__init__("MCP process closed", code="CLIENT_CLOSED", category=ErrorCategory.FATAL)


_SENSITIVE_PATTERNS = [
    re.compile(r"(api[_-]?key|token|secret|password|auth)[=:]\s*['\"]?([^\s'\"]+)['\"]?", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"sk-[a-zA-Z0-9]{20,}"),
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Remove credentials from error messages before they reach a log sink."""
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized


def classify_exception(exc: BaseException) -> tuple[str, ErrorCategory, bool]:
    """
    Classify an exception and return (error_code, category, should_retry).

    Returns:
        Tuple of (error_code, category, should_retry)
    """
    if isinstance(exc, ZkputerMcpError):
        return exc.code, exc.category, exc.category in (ErrorCategory.RETRYABLE, ErrorCategory.TIMEOUT)

    if isinstance(exc, FileNotFoundError):
        return "FILE_NOT_FOUND", ErrorCategory.FATAL, False

    if isinstance(exc, asyncio.TimeoutError):
        return "TIMEOUT", ErrorCategory.TIMEOUT, True

    if isinstance(exc, (BrokenPipeError, ConnectionResetError)):
        return "NOT_RUNNING", ErrorCategory.RETRYABLE, True

    if isinstance(exc, ConnectionError):
        return "CONNECTION_ERROR", ErrorCategory.RETRYABLE, True

    if isinstance(exc, json.JSONDecodeError):
        return "JSON_PARSE_ERROR", ErrorCategory.VALIDATION, False

    if isinstance(exc, (ValueError, TypeError)):
        return "INVALID_VALUE", ErrorCategory.VALIDATION, False

    return "INTERNAL_ERROR", ErrorCategory.FATAL, False


def error_message(exc: BaseException) -> str:
    """Human-readable message for an exception, without the code prefix."""
    if isinstance(exc, ZkputerMcpError):
        return exc.message
    text = str(exc)
    return text or type(exc).__name__
