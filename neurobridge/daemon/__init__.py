"""Host bridge for Neuro-Bridge.

A privileged host process exposes a small command surface to an
unprivileged client (chroot/container) over a Unix socket.

Architecture:
- protocol: Length-prefixed JSON codec for Command/Response variants
- BridgeServer: Async Unix socket acceptor, one Session task per connection
- CommandDispatcher: Maps commands to responses, calling the GPU probe
- BridgeClient: Blocking client used by the `neuro` CLI
"""

from neurobridge.daemon.client import BridgeClient
from neurobridge.daemon.dispatcher import CommandDispatcher
from neurobridge.daemon.errors import (
    BridgeError,
    BridgeUnavailable,
    ConnectionClosed,
    MalformedPayload,
    ProtocolError,
    TruncatedPayload,
)
from neurobridge.daemon.protocol import (
    decode,
    decode_command,
    decode_response,
    encode,
    frame,
    read_frame,
    read_frame_async,
)

__all__ = [
    "BridgeClient",
    "CommandDispatcher",
    "BridgeError",
    "BridgeUnavailable",
    "ConnectionClosed",
    "MalformedPayload",
    "ProtocolError",
    "TruncatedPayload",
    "encode",
    "decode",
    "decode_command",
    "decode_response",
    "frame",
    "read_frame",
    "read_frame_async",
]
