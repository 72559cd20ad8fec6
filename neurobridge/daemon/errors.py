"""Exception hierarchy for the bridge protocol and client."""

from typing import Optional


class BridgeError(Exception):
    """Base class for all Neuro-Bridge errors."""


class BridgeUnavailable(BridgeError):
    """The client could not reach the server socket."""

    def __init__(self, socket_path: str, reason: Optional[str] = None):
        self.socket_path = socket_path
        self.reason = reason
        message = (
            f"Failed to connect to Neuro-Bridge at {socket_path}. "
            "Is the server running on the host?"
        )
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class ProtocolError(BridgeError):
    """Base class for framing and codec failures."""


class ConnectionClosed(ProtocolError):
    """Stream ended before a complete length prefix was read."""

    def __init__(self, received: int = 0):
        self.received = received
        if received:
            super().__init__(f"Connection closed after {received} of 4 length-prefix bytes")
        else:
            super().__init__("Connection closed by peer")

    @property
    def clean(self) -> bool:
        """True when the peer closed between frames."""
        return self.received == 0


class TruncatedPayload(ProtocolError):
    """Stream ended inside a frame payload."""

    def __init__(self, expected: int, received: int):
        self.expected = expected
        self.received = received
        super().__init__(f"Payload truncated: expected {expected} bytes, got {received}")


class MalformedPayload(ProtocolError):
    """Payload bytes do not decode to a known command or response."""


__all__ = [
    "BridgeError",
    "BridgeUnavailable",
    "ProtocolError",
    "ConnectionClosed",
    "TruncatedPayload",
    "MalformedPayload",
]
