"""Command and response variants exchanged over the bridge socket.

Each variant is a frozen dataclass carrying a class-level ``TAG`` that names it
on the wire. Payload fields must be ``str``, ``int``, ``float``, ``bool`` or
``bytes`` so the codec in :mod:`neurobridge.daemon.protocol` can carry them.

Adding a command:
    1. Declare a dataclass subclassing ``Command`` with a unique ``TAG``
    2. Add it to ``COMMAND_TYPES``
    3. Register a handler in ``CommandDispatcher``
"""

from dataclasses import dataclass
from typing import ClassVar, Dict, Type


class Command:
    """Base class for client -> server messages."""

    TAG: ClassVar[str] = ""


class Response:
    """Base class for server -> client messages."""

    TAG: ClassVar[str] = ""


# Commands

@dataclass(frozen=True)
class Ping(Command):
    """Liveness check."""

    TAG: ClassVar[str] = "Ping"


@dataclass(frozen=True)
class GetGpuInfo(Command):
    """Ask the host for the GPU it can see."""

    TAG: ClassVar[str] = "GetGpuInfo"


# Responses

@dataclass(frozen=True)
class Pong(Response):
    TAG: ClassVar[str] = "Pong"


@dataclass(frozen=True)
class GpuInfo(Response):
    TAG: ClassVar[str] = "GpuInfo"

    device_name: str
    driver_version: str


@dataclass(frozen=True)
class Error(Response):
    """Handler-level failure reported back to the client."""

    TAG: ClassVar[str] = "Error"

    message: str


@dataclass(frozen=True)
class Ack(Response):
    """Acknowledgment for commands without a meaningful result (reserved)."""

    TAG: ClassVar[str] = "Ack"


COMMAND_TYPES: Dict[str, Type[Command]] = {
    cls.TAG: cls for cls in (Ping, GetGpuInfo)
}

RESPONSE_TYPES: Dict[str, Type[Response]] = {
    cls.TAG: cls for cls in (Pong, GpuInfo, Error, Ack)
}


__all__ = [
    "Command",
    "Response",
    "Ping",
    "GetGpuInfo",
    "Pong",
    "GpuInfo",
    "Error",
    "Ack",
    "COMMAND_TYPES",
    "RESPONSE_TYPES",
]
