"""Length-prefixed JSON protocol for bridge IPC.

Every message, in both directions, is one frame:

    [4-byte big-endian unsigned length][payload]

The payload is a UTF-8 JSON object naming its variant in ``"type"`` with one
member per dataclass field:

    {"type": "Ping"}
    {"device_name": "Adreno (TM) 740", "driver_version": "2149629952", "type": "GpuInfo"}
    {"message": "no GPU driver", "type": "Error"}

Keys are sorted and separators compact so encoding is deterministic.
``bytes`` fields travel as base64 text.
"""

import asyncio
import base64
import binascii
import dataclasses
import json
import socket
import struct
import typing
from typing import Any, Dict, Mapping, Type, Union

from neurobridge.daemon.errors import (
    ConnectionClosed,
    MalformedPayload,
    ProtocolError,
    TruncatedPayload,
)
from neurobridge.daemon.messages import (
    COMMAND_TYPES,
    RESPONSE_TYPES,
    Command,
    Response,
)

Message = Union[Command, Response]

LENGTH_PREFIX = struct.Struct(">I")
PREFIX_SIZE = LENGTH_PREFIX.size
MAX_PAYLOAD_SIZE = 0xFFFFFFFF
TAG_KEY = "type"
ENCODING = "utf-8"

_ALL_TYPES: Dict[str, type] = {**COMMAND_TYPES, **RESPONSE_TYPES}


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------

def encode(value: Message) -> bytes:
    """
    Serialize a command or response to payload bytes.

    Raises:
        ProtocolError: If ``value`` is not a registered variant or holds a
            field type the codec cannot carry
    """
    cls = type(value)
    if _ALL_TYPES.get(getattr(cls, "TAG", None)) is not cls:
        raise ProtocolError(f"Cannot encode {value!r}: not a registered command or response")

    body: Dict[str, Any] = {TAG_KEY: cls.TAG}
    for field in dataclasses.fields(value):
        body[field.name] = _encode_field(cls.TAG, field.name, getattr(value, field.name))

    return json.dumps(
        body,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode(ENCODING)


def decode(data: bytes, types: Mapping[str, type] = _ALL_TYPES) -> Message:
    """
    Deserialize payload bytes back into a variant instance.

    Args:
        data: Payload bytes (without the length prefix)
        types: Tag -> class registry of acceptable variants

    Raises:
        MalformedPayload: If the bytes are not a valid encoding of any
            variant in ``types``
    """
    try:
        body = json.loads(bytes(data).decode(ENCODING))
    # ValueError covers JSONDecodeError and the int digit limit
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        raise MalformedPayload(f"Payload is not valid JSON: {e}") from e

    if not isinstance(body, dict):
        raise MalformedPayload(f"Payload must be a JSON object, got {type(body).__name__}")

    tag = body.pop(TAG_KEY, None)
    if not isinstance(tag, str):
        raise MalformedPayload(f"Payload is missing a string '{TAG_KEY}' tag")

    cls = types.get(tag)
    if cls is None:
        raise MalformedPayload(f"Unknown variant tag: {tag!r}")

    names = [field.name for field in dataclasses.fields(cls)]
    missing = sorted(set(names) - set(body))
    extra = sorted(set(body) - set(names))
    if missing or extra:
        raise MalformedPayload(
            f"Fields for {tag} do not match (missing: {missing}, unexpected: {extra})"
        )

    hints = typing.get_type_hints(cls)
    kwargs = {name: _decode_field(tag, name, hints[name], body[name]) for name in names}
    return cls(**kwargs)


def decode_command(data: bytes) -> Command:
    """Decode a client -> server payload."""
    return decode(data, COMMAND_TYPES)


def decode_response(data: bytes) -> Response:
    """Decode a server -> client payload."""
    return decode(data, RESPONSE_TYPES)


def _encode_field(tag: str, name: str, value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, (str, int, float, bool)):
        return value
    raise ProtocolError(
        f"Cannot encode {tag}.{name}: unsupported field type {type(value).__name__}"
    )


def _decode_field(tag: str, name: str, expected: Type, value: Any) -> Any:
    if expected is bytes:
        if not isinstance(value, str):
            raise MalformedPayload(f"{tag}.{name} must be base64 text")
        try:
            return base64.b64decode(value, validate=True)
        except binascii.Error as e:
            raise MalformedPayload(f"{tag}.{name} is not valid base64: {e}") from e

    # bool is a subclass of int; keep them apart
    if expected is bool:
        ok = isinstance(value, bool)
    elif expected is int:
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif expected is float:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        value = float(value) if ok else value
    else:
        ok = isinstance(value, expected)

    if not ok:
        raise MalformedPayload(
            f"{tag}.{name} must be {expected.__name__}, got {type(value).__name__}"
        )
    return value


# ---------------------------------------------------------------------------
# Framing
# ---------------------------------------------------------------------------

def frame(payload: bytes) -> bytes:
    """Prefix ``payload`` with its 4-byte big-endian length."""
    if len(payload) > MAX_PAYLOAD_SIZE:
        raise ProtocolError(f"Payload of {len(payload)} bytes exceeds the 4-byte length prefix")
    return LENGTH_PREFIX.pack(len(payload)) + bytes(payload)


def read_frame(sock: socket.socket) -> bytes:
    """
    Read one frame payload from a blocking socket.

    Raises:
        ConnectionClosed: If the socket closes before the prefix is complete
        TruncatedPayload: If it closes before ``length`` payload bytes arrive
    """
    prefix = _recv_exact(sock, PREFIX_SIZE)
    if len(prefix) < PREFIX_SIZE:
        raise ConnectionClosed(len(prefix))

    (length,) = LENGTH_PREFIX.unpack(prefix)
    payload = _recv_exact(sock, length)
    if len(payload) < length:
        raise TruncatedPayload(length, len(payload))
    return payload


async def read_frame_async(reader: asyncio.StreamReader) -> bytes:
    """Async counterpart of :func:`read_frame` for an ``asyncio.StreamReader``."""
    try:
        prefix = await reader.readexactly(PREFIX_SIZE)
    except asyncio.IncompleteReadError as e:
        raise ConnectionClosed(len(e.partial)) from None

    (length,) = LENGTH_PREFIX.unpack(prefix)
    try:
        return await reader.readexactly(length)
    except asyncio.IncompleteReadError as e:
        raise TruncatedPayload(length, len(e.partial)) from None


def send_message(sock: socket.socket, value: Message) -> None:
    """Encode, frame and fully send ``value`` over a blocking socket."""
    sock.sendall(frame(encode(value)))


async def write_message(writer: asyncio.StreamWriter, value: Message) -> None:
    """Encode, frame and write ``value``, waiting until the buffer drains."""
    writer.write(frame(encode(value)))
    await writer.drain()


def _recv_exact(sock: socket.socket, size: int) -> bytes:
    """Receive up to ``size`` bytes, stopping early only at end of stream."""
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = sock.recv(min(remaining, 65536))
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


__all__ = [
    "Message",
    "LENGTH_PREFIX",
    "PREFIX_SIZE",
    "MAX_PAYLOAD_SIZE",
    "encode",
    "decode",
    "decode_command",
    "decode_response",
    "frame",
    "read_frame",
    "read_frame_async",
    "send_message",
    "write_message",
]
