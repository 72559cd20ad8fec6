"""Async Unix socket server for the Neuro-Bridge host.

This module implements the privileged host-side process that:
1. Binds a Unix socket reachable from the chroot/container client
2. Accepts connections and serves each one in its own task
3. Answers Ping and GetGpuInfo through the configured GPU probe

Usage:
    python -m neurobridge.daemon.server [--socket-path PATH] [--probe vulkan|nvml|static]

    Or use the CLI:
    neuro serve
"""

import argparse
import asyncio
import itertools
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Dict, List, Optional

from neurobridge.core.configs import LOG_LEVELS, BridgeSettings, get_bridge_settings
from neurobridge.daemon.dispatcher import CommandDispatcher
from neurobridge.daemon.errors import ProtocolError
from neurobridge.daemon.session import Session
from neurobridge.gpu import GpuProbe, PROBE_KINDS, create_probe

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


class BridgeServer:
    """
    Async Unix socket server for the bridge.

    Handles concurrent client connections using asyncio; every connection
    gets an independent Session task. Nothing is shared between sessions
    except the stateless dispatcher.
    """

    def __init__(
        self,
        socket_path: Path,
        dispatcher: CommandDispatcher,
        socket_mode: int = 0o777,
    ):
        """
        Initialize bridge server.

        Args:
            socket_path: Path to Unix socket
            dispatcher: Command dispatcher shared by all sessions
            socket_mode: Permissions applied to the socket file after binding
        """
        self.socket_path = Path(socket_path)
        self.dispatcher = dispatcher
        self.socket_mode = socket_mode

        self.server: Optional[asyncio.Server] = None
        self._shutdown_event: asyncio.Event = asyncio.Event()
        self._session_ids = itertools.count(1)
        self._sessions: Dict[asyncio.Task, asyncio.StreamWriter] = {}

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)

    async def start(self) -> None:
        """
        Bind the socket and begin accepting connections.

        Raises:
            OSError: If the socket cannot be bound
        """
        logger.info("Neuro-Bridge server starting...")

        # Clean up stale socket from a previous run
        if self.socket_path.exists() or self.socket_path.is_symlink():
            self.socket_path.unlink()

        self.socket_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self.server = await asyncio.start_unix_server(
                self._handle_client,
                path=str(self.socket_path),
            )
        except OSError as e:
            logger.error(f"Failed to bind {self.socket_path}: {e}")
            raise

        # Let the less-privileged client connect
        os.chmod(self.socket_path, self.socket_mode)

        logger.info(f"Listening on {self.socket_path}")

    async def serve_forever(self, install_signal_handlers: bool = True) -> None:
        """Serve until shutdown() is called or SIGTERM/SIGINT arrives."""
        if self.server is None:
            await self.start()

        if install_signal_handlers:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                try:
                    loop.add_signal_handler(sig, self._signal_handler)
                except (NotImplementedError, RuntimeError, ValueError):
                    logger.debug(f"Cannot install handler for {sig.name}")

        try:
            await self._shutdown_event.wait()
        finally:
            await self.close()

    def shutdown(self) -> None:
        """Ask serve_forever() to return."""
        self._shutdown_event.set()

    async def close(self) -> None:
        """Stop accepting, cancel open sessions and remove the socket file."""
        if self.server is not None:
            self.server.close()

            # Sessions parked on a probe call never see the writer close
            sessions = list(self._sessions.items())
            for task, writer in sessions:
                writer.close()
                task.cancel()
            if sessions:
                await asyncio.gather(*(task for task, _ in sessions), return_exceptions=True)

            await self.server.wait_closed()
            self.server = None
            self.dispatcher.close()

        if self.socket_path.exists():
            self.socket_path.unlink()

        logger.info("Neuro-Bridge server stopped")

    async def _handle_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        """Run one Session; its errors end only this connection."""
        session_id = next(self._session_ids)
        task = asyncio.current_task()
        self._sessions[task] = writer
        session = Session(reader, writer, self.dispatcher, session_id)

        try:
            await session.run()
        except ProtocolError as e:
            logger.warning(f"Session {session_id} terminated: {e}")
        except (ConnectionError, OSError) as e:
            logger.warning(f"Session {session_id} I/O error: {e}")
        except Exception as e:
            logger.exception(f"Session {session_id} failed: {e}")
        finally:
            self._sessions.pop(task, None)

    def _signal_handler(self) -> None:
        """Handle SIGTERM/SIGINT for graceful shutdown."""
        logger.info("Received shutdown signal")
        self.shutdown()


def build_server(
    settings: BridgeSettings,
    probe: Optional[GpuProbe] = None,
) -> BridgeServer:
    """Create a BridgeServer wired with the probe named in ``settings``."""
    if probe is None:
        probe = create_probe(
            settings.gpu_probe,
            device_name=settings.static_device_name,
            driver_version=settings.static_driver_version,
            library=settings.vulkan_library,
        )
    logger.info(f"Using GPU probe: {probe.get_probe_name()}")

    dispatcher = CommandDispatcher(probe, query_timeout=settings.query_timeout)
    return BridgeServer(
        socket_path=settings.socket_path,
        dispatcher=dispatcher,
        socket_mode=settings.socket_mode,
    )


def run_server(
    settings: Optional[BridgeSettings] = None,
    probe: Optional[GpuProbe] = None,
) -> None:
    """
    Run the bridge server in the foreground until signalled.

    Args:
        settings: Effective settings (default: loaded from config + environment)
        probe: Explicit probe, overriding ``settings.gpu_probe``
    """
    settings = settings or get_bridge_settings()
    logging.getLogger().setLevel(settings.log_level)

    server = build_server(settings, probe)
    asyncio.run(server.serve_forever())


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Neuro-Bridge host server")
    parser.add_argument(
        "--socket-path",
        help="Path to Unix socket",
    )
    parser.add_argument(
        "--probe",
        choices=PROBE_KINDS,
        help="GPU probe backend",
    )
    parser.add_argument(
        "--query-timeout",
        type=float,
        help="Seconds to wait for the GPU probe (0 = no limit)",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        help="Logging level",
    )

    args = parser.parse_args(argv)

    try:
        settings = get_bridge_settings()
    except ValueError as e:
        logger.error(f"Failed to load config: {e}")
        sys.exit(1)

    if args.socket_path:
        settings.socket_path = Path(args.socket_path)
    if args.probe:
        settings.gpu_probe = args.probe
    if args.query_timeout is not None:
        settings.query_timeout = args.query_timeout
    if args.log_level:
        settings.log_level = args.log_level

    try:
        run_server(settings)
    except OSError:
        sys.exit(1)


if __name__ == "__main__":
    main()
