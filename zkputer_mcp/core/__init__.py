"""Wire-level building blocks: envelopes, serialization and framing."""

from .framing import FrameDecoder, decode_frames, encode_frame
from .protocol import RpcError, RpcNotification, RpcRequest, RpcResponse

__all__ = [
    "FrameDecoder",
    "RpcError",
    "RpcNotification",
    "RpcRequest",
    "RpcResponse",
    "decode_frames",
    "encode_frame",
]
