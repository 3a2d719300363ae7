"""Loguru helpers for consistent file logging in CLI commands."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

_SINK_IDS: dict[str, int] = {}


def default_log_path(name: str) -> Path:
    return Path.home() / ".zkputer" / "logs" / f"{name}.log"


def ensure_rotating_log_file(name: str, level: str = "DEBUG", log_path: Path | None = None) -> Path:
    """Ensure a rotating log sink for the given command name."""
    path = log_path or default_log_path(name)
    if name in _SINK_IDS:
        return path
    path.parent.mkdir(parents=True, exist_ok=True)
    sink_id = logger.add(
        str(path),
        level=level,
        rotation="10 MB",
        retention="14 days",
        encoding="utf-8",
        backtrace=False,
        diagnose=False,
    )
    _SINK_IDS[name] = sink_id
    return path
