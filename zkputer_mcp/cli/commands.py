"""CLI commands for zkputer_mcp.

Each command starts the server on demand, runs one call through the stdio
client and shuts the server down again.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from zkputer_mcp import __version__
from zkputer_mcp.bridge.client import StdioMcpClient
from zkputer_mcp.bridge.tools import CLAIM_TYPES, VENUES, ZkputerTools
from zkputer_mcp.cli.logging_utils import ensure_rotating_log_file
from zkputer_mcp.config.loader import load_config
from zkputer_mcp.config.schema import McpClientConfig
from zkputer_mcp.utils.exceptions import ZkputerMcpError, error_message

T = TypeVar("T")

app = typer.Typer(
    name="zkputer-mcp",
    help="zkputer-mcp - call zkputer verification tools over MCP stdio",
    no_args_is_help=True,
)

console = Console()


class _Settings:
    config_path: Path | None = None
    timeout_ms: float | None = None
    log_stderr: bool = False


_settings = _Settings()


def _load_client_config() -> McpClientConfig:
    try:
        cfg = load_config(_settings.config_path)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(2)
    updates: dict[str, Any] = {}
    if _settings.timeout_ms is not None:
        updates["request_timeout_ms"] = _settings.timeout_ms
    if _settings.log_stderr:
        updates["log_stderr"] = True
    return cfg.model_copy(update=updates) if updates else cfg


def _run_with_client(fn: Callable[[StdioMcpClient], Awaitable[T]]) -> T:
    async def _main() -> T:
        async with StdioMcpClient(_load_client_config()) as client:
            return await fn(client)

    return asyncio.run(_main())


def _print_outcome(outcome: dict[str, Any]) -> None:
    console.print_json(json.dumps(outcome, ensure_ascii=False))
    if outcome.get("isError"):
        raise typer.Exit(1)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"zkputer-mcp v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Path = typer.Option(None, "--config", "-c", help="Client config JSON file"),
    timeout_ms: float = typer.Option(None, "--timeout-ms", help="Per-request timeout in milliseconds"),
    log_stderr: bool = typer.Option(False, "--log-stderr", help="Log server stderr lines at debug level"),
    log_file: bool = typer.Option(False, "--log-file", help="Write debug logs to ~/.zkputer/logs"),
    version: bool = typer.Option(None, "--version", callback=_version_callback, is_eager=True),
) -> None:
    """zkputer MCP client."""
    _settings.config_path = config
    _settings.timeout_ms = timeout_ms
    _settings.log_stderr = log_stderr
    if log_file:
        path = ensure_rotating_log_file("zkputer-mcp")
        logger.debug("CLI logging to {}", path)


@app.command("tools")
def tools_command() -> None:
    """List the tools the server exposes."""
    try:
        tools = _run_with_client(lambda client: client.list_tools())
    except ZkputerMcpError as e:
        console.print(f"[red]zkputer MCP error: {error_message(e)}[/red]")
        raise typer.Exit(1)
    table = Table(title=f"Tools ({len(tools)})")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    for tool in tools:
        table.add_row(str(tool.get("name") or ""), str(tool.get("description") or ""))
    console.print(table)


@app.command("ping")
def ping_command() -> None:
    """Start the server, run the handshake and ping it."""

    async def _ping(client: StdioMcpClient) -> dict[str, Any] | None:
        await client.ping()
        return client.server_info

    try:
        server_info = _run_with_client(_ping)
    except ZkputerMcpError as e:
        console.print(f"[red]zkputer MCP error: {error_message(e)}[/red]")
        raise typer.Exit(1)
    info = server_info or {}
    console.print(f"[green]ok[/green] {info.get('name', 'unknown')} {info.get('version', '')}".rstrip())


@app.command("call")
def call_command(
    name: str = typer.Argument(..., help="Tool name"),
    args: str = typer.Option("{}", "--args", "-a", help="Tool arguments as a JSON object"),
) -> None:
    """Invoke any tool and print the tool result."""
    try:
        arguments = json.loads(args)
    except json.JSONDecodeError as e:
        console.print(f"[red]--args is not valid JSON: {e}[/red]")
        raise typer.Exit(2)
    if not isinstance(arguments, dict):
        console.print("[red]--args must be a JSON object[/red]")
        raise typer.Exit(2)
    _print_outcome(_run_with_client(lambda client: ZkputerTools(client).invoke(name, arguments)))


@app.command("get-receipt")
def get_receipt_command(receipt_id: str = typer.Argument(..., help="Receipt id")) -> None:
    """Fetch a receipt by id."""
    _print_outcome(_run_with_client(lambda client: ZkputerTools(client).get_receipt(receipt_id)))


@app.command("verify-claim")
def verify_claim_command(
    venue: str = typer.Option(..., "--venue", help=f"One of: {', '.join(VENUES)}"),
    claim_type: str = typer.Option(..., "--claim-type", help=f"One of: {', '.join(CLAIM_TYPES)}"),
    account_ref: str = typer.Option(..., "--account-ref"),
    order_ref: str = typer.Option(..., "--order-ref"),
    execution_ref: str = typer.Option(None, "--execution-ref"),
    wait: bool = typer.Option(None, "--wait/--no-wait", help="Wait for the receipt to settle"),
    wait_timeout_ms: int = typer.Option(None, "--wait-timeout-ms"),
) -> None:
    """Submit a verification request and print the receipt."""
    _print_outcome(
        _run_with_client(
            lambda client: ZkputerTools(client).verify_claim(
                venue,
                claim_type,
                account_ref,
                order_ref,
                execution_ref=execution_ref,
                wait_for_result=wait,
                wait_timeout_ms=wait_timeout_ms,
            )
        )
    )


if __name__ == "__main__":
    app()
