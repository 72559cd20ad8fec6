"""Lightweight client for bridge communication.

This module provides a thin client that connects to the host server via Unix
socket. It runs inside the chroot/container and only needs the stdlib socket
module plus the protocol codec.

Usage:
    client = BridgeClient()
    response = client.gpu_info()
    if isinstance(response, GpuInfo):
        print(response.device_name)
"""

import socket
from pathlib import Path
from typing import Optional, Union

from neurobridge.core.configs import DEFAULT_SOCKET_PATH
from neurobridge.daemon.errors import BridgeUnavailable, ConnectionClosed
from neurobridge.daemon.messages import Command, GetGpuInfo, Ping, Pong, Response
from neurobridge.daemon.protocol import decode_response, read_frame, send_message


class BridgeClient:
    """
    Lightweight client for bridge communication.

    Each request opens a fresh connection, sends one framed command and reads
    one framed response.
    """

    def __init__(
        self,
        socket_path: Optional[Union[str, Path]] = None,
        timeout: float = 30.0,
    ):
        """
        Initialize client.

        Args:
            socket_path: Path to Unix socket
            timeout: Socket timeout in seconds
        """
        self.socket_path = Path(socket_path or DEFAULT_SOCKET_PATH)
        self.timeout = timeout

    def ping(self) -> Response:
        """Send Ping; a healthy server answers Pong."""
        return self.request(Ping())

    def gpu_info(self) -> Response:
        """Send GetGpuInfo; returns GpuInfo or Error."""
        return self.request(GetGpuInfo())

    def is_server_running(self) -> bool:
        """
        Check if the server is up and answering.

        Returns True if the socket accepts a connection and Ping yields Pong.
        """
        try:
            return isinstance(self.request(Ping(), timeout=2.0), Pong)
        except (BridgeUnavailable, ConnectionClosed, socket.timeout, OSError):
            return False

    def request(self, command: Command, timeout: Optional[float] = None) -> Response:
        """
        Send ``command`` and return the decoded response.

        Raises:
            BridgeUnavailable: If the socket cannot be connected
            ProtocolError: If the reply is not a complete, valid frame
            socket.timeout: If the server does not answer in time
            OSError: Other socket errors after connecting
        """
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(timeout or self.timeout)

        try:
            try:
                sock.connect(str(self.socket_path))
            except OSError as e:
                raise BridgeUnavailable(str(self.socket_path), e.strerror or str(e)) from e

            send_message(sock, command)
            return decode_response(read_frame(sock))

        finally:
            sock.close()
