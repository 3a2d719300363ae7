"""Lifecycle of the zkputer MCP server child process."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Coroutine
from typing import Any

from loguru import logger

from zkputer_mcp.core.framing import FrameDecoder
from zkputer_mcp.utils.exceptions import ProcessSpawnError, TransportUnavailableError

_READ_CHUNK_SIZE = 64 * 1024
_EXIT_POLL_INTERVAL = 0.05


async def _wait_reaped(proc: asyncio.subprocess.Process, timeout: float) -> bool:
    """Wait until the child itself has exited, ignoring pipes still held open by descendants."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while proc.returncode is None:
        if loop.time() >= deadline:
            return False
        await asyncio.sleep(_EXIT_POLL_INTERVAL)
    return True


class ProcessSupervisor:
    """Owns the server process and its pipes.

    Decoded stdout messages go to ``on_message``; process exit is reported once
    through ``on_exit`` for the process that is current at the time it exits.
    """

    def __init__(
        self,
        command: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
        *,
        on_message: Callable[[Any], None],
        on_exit: Callable[[int | None], None],
        log_stderr: bool = False,
        exit_drain_timeout: float = 1.0,
    ):
        self.command = command
        self.args = list(args or [])
        self.env = dict(env or {})
        self.log_stderr = log_stderr
        self.exit_drain_timeout = exit_drain_timeout
        self._on_message = on_message
        self._on_exit = on_exit
        self._proc: asyncio.subprocess.Process | None = None
        self._terminated: asyncio.subprocess.Process | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc else None

    @property
    def is_running(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    @property
    def is_writable(self) -> bool:
        proc = self._proc
        if proc is None or proc.returncode is not None or proc.stdin is None:
            return False
        return not proc.stdin.is_closing()

    async def ensure_started(self) -> None:
        """Spawn the server unless a live process already exists."""
        if self.is_running:
            return
        self.reap_exited()
        env = {**os.environ, **self.env}
        try:
            proc = await asyncio.create_subprocess_exec(
                self.command,
                *self.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as exc:
            raise ProcessSpawnError(self.command, str(exc)) from exc
        self._proc = proc
        logger.debug("Started zkputer MCP process pid={} command={} args={}", proc.pid, self.command, self.args)
        reader = self._spawn_task(self._read_stdout(proc))
        self._spawn_task(self._drain_stderr(proc))
        self._spawn_task(self._watch_exit(proc, reader))

    def reap_exited(self) -> bool:
        """Report an exit the watcher has not delivered yet. Returns True if one was settled."""
        proc = self._proc
        if proc is None or proc.returncode is None:
            return False
        self._handle_exit(proc, proc.returncode)
        return True

    def write(self, data: bytes) -> None:
        if not self.is_writable:
            raise TransportUnavailableError()
        assert self._proc is not None and self._proc.stdin is not None
        self._proc.stdin.write(data)

    async def drain(self) -> None:
        proc = self._proc
        if proc is not None and proc.stdin is not None:
            await proc.stdin.drain()

    def close(self) -> None:
        """Send SIGTERM to a live process and drop the handle. Safe when idle."""
        proc = self._proc
        self._proc = None
        if proc is None:
            return
        if proc.returncode is None:
            try:
                proc.terminate()
            except ProcessLookupError:
                pass
            self._terminated = proc
            logger.debug("Sent SIGTERM to zkputer MCP process pid={}", proc.pid)

    async def wait_closed(self, timeout: float = 2.0) -> None:
        """Wait for the last terminated process to exit, killing it after ``timeout``."""
        proc = self._terminated
        self._terminated = None
        if proc is not None and not await _wait_reaped(proc, timeout):
            logger.warning("zkputer MCP process pid={} ignored SIGTERM, killing", proc.pid)
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await _wait_reaped(proc, timeout)
        if self._tasks and not self.is_running:
            # Pipe readers finish at EOF once the process is gone.
            await asyncio.wait(set(self._tasks), timeout=timeout)

    def _spawn_task(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _read_stdout(self, proc: asyncio.subprocess.Process) -> None:
        if proc.stdout is None:
            return
        decoder = FrameDecoder()
        while True:
            chunk = await proc.stdout.read(_READ_CHUNK_SIZE)
            if not chunk:
                return
            if proc is not self._proc:
                # Closed or replaced; late frames have nobody waiting for them.
                continue
            for message in decoder.feed(chunk):
                self._on_message(message)

    async def _drain_stderr(self, proc: asyncio.subprocess.Process) -> None:
        if proc.stderr is None:
            return
        while True:
            chunk = await proc.stderr.read(_READ_CHUNK_SIZE)
            if not chunk:
                return
            if not self.log_stderr:
                continue
            for line in chunk.decode("utf-8", errors="replace").splitlines():
                text = line.strip()
                if text:
                    logger.debug("[zkputer-mcp] {}", text)

    async def _watch_exit(self, proc: asyncio.subprocess.Process, reader: asyncio.Task[None]) -> None:
        # proc.wait() also waits for the pipes to close, which a descendant
        # holding stdout can delay indefinitely; returncode is set on reap.
        while proc.returncode is None:
            await asyncio.sleep(_EXIT_POLL_INTERVAL)
        # Let responses written just before exit reach their callers first.
        await asyncio.wait({reader}, timeout=self.exit_drain_timeout)
        self._handle_exit(proc, proc.returncode)

    def _handle_exit(self, proc: asyncio.subprocess.Process, returncode: int | None) -> None:
        if proc is not self._proc:
            return
        self._proc = None
        logger.info("zkputer MCP process pid={} exited with code {}", proc.pid, returncode)
        self._on_exit(returncode)
