"""Types shared by the stdio bridge runtime."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any


class SessionState(Enum):
    """Lifecycle of one client session."""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    CLOSED = "closed"


@dataclass(slots=True)
class PendingRequest:
    """In-flight request awaiting its response frame."""

    id: int
    method: str
    future: asyncio.Future[Any]
    timer: asyncio.TimerHandle | None = None
