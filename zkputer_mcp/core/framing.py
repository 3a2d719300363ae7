"""Content-Length framing for JSON-RPC over stdio.

Each frame is ``Content-Length: <n>\\r\\n\\r\\n`` followed by exactly ``n``
bytes of UTF-8 JSON. Decoding is incremental: partial frames stay buffered
until the rest of the body arrives.
"""

from __future__ import annotations

import json
import re
from typing import Any

from loguru import logger

from zkputer_mcp.utils.exceptions import FrameProtocolError

HEADER_DELIMITER = b"\r\n\r\n"
_CONTENT_LENGTH = "content-length:"
_DECIMAL = re.compile(r"[0-9]+")


def encode_frame(message: dict[str, Any]) -> bytes:
    """Serialize a message and prepend its Content-Length header."""
    body = json.dumps(message, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    header = f"Content-Length: {len(body)}\r\n\r\n".encode("ascii")
    return header + body


def _parse_content_length(header: bytes) -> int | None:
    length: int | None = None
    for line in header.decode("utf-8", errors="replace").split("\r\n"):
        if not line.lower().startswith(_CONTENT_LENGTH):
            continue
        value = line[len(_CONTENT_LENGTH):].strip()
        length = int(value) if _DECIMAL.fullmatch(value) else None
    return length


def decode_frames(buffer: bytes) -> tuple[list[Any], bytes]:
    """Extract every complete frame from ``buffer``.

    Returns the decoded messages and the unconsumed tail. A header without a
    valid length desynchronizes the stream, so the whole buffer is dropped.
    A body that is not valid JSON drops only that frame.
    """
    messages: list[Any] = []
    data = bytes(buffer)
    while True:
        header_end = data.find(HEADER_DELIMITER)
        if header_end == -1:
            return messages, data
        length = _parse_content_length(data[:header_end])
        if length is None:
            logger.warning("{}", FrameProtocolError("malformed Content-Length header from MCP server", discarded_bytes=len(data)))
            return messages, b""
        body_start = header_end + len(HEADER_DELIMITER)
        frame_end = body_start + length
        if len(data) < frame_end:
            return messages, data
        body = data[body_start:frame_end]
        data = data[frame_end:]
        try:
            messages.append(json.loads(body.decode("utf-8")))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("{} {!r}", FrameProtocolError("invalid JSON frame from MCP server", discarded_bytes=length), body[:200])


class FrameDecoder:
    """Stateful decoder owning the receive buffer for one stdout stream."""

    def __init__(self) -> None:
        self._buffer = b""

    @property
    def pending_bytes(self) -> int:
        return len(self._buffer)

    def feed(self, chunk: bytes) -> list[Any]:
        """Append a chunk and return every message completed by it."""
        if chunk:
            self._buffer += chunk
        messages, self._buffer = decode_frames(self._buffer)
        return messages
