"""Per-connection receive -> dispatch -> reply loop."""

import asyncio
import logging

from neurobridge.daemon.dispatcher import CommandDispatcher
from neurobridge.daemon.errors import ConnectionClosed
from neurobridge.daemon.protocol import decode_command, read_frame_async, write_message

logger = logging.getLogger(__name__)


class Session:
    """
    Owns one accepted connection for its lifetime.

    Requests on a connection are strictly alternating: the response to one
    command is written before the next command is read.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        dispatcher: CommandDispatcher,
        session_id: int = 0,
    ):
        self.reader = reader
        self.writer = writer
        self.dispatcher = dispatcher
        self.session_id = session_id
        self.requests_served = 0

    async def run(self) -> None:
        """
        Serve commands until the peer disconnects.

        Returns normally on a clean close between frames. Framing, decoding
        and I/O errors propagate to the caller. The writer is closed on
        every path.
        """
        try:
            while True:
                try:
                    payload = await read_frame_async(self.reader)
                except ConnectionClosed as e:
                    if e.clean:
                        logger.debug(
                            f"Session {self.session_id}: peer disconnected "
                            f"after {self.requests_served} request(s)"
                        )
                        return
                    raise

                command = decode_command(payload)
                logger.info(f"Received: {command}")

                response = await self.dispatcher.dispatch(command)
                await write_message(self.writer, response)
                self.requests_served += 1
        finally:
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except (ConnectionError, OSError):
                pass
