"""Command dispatch: maps each decoded Command to a Response.

Handler failures never escape ``dispatch``. They come back as ``Error``
responses so the session can keep serving the connection.
"""

import asyncio
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Awaitable, Callable, Dict, Optional, Type

from neurobridge.daemon.messages import (
    Command,
    Error,
    GetGpuInfo,
    GpuInfo,
    Ping,
    Pong,
    Response,
)
from neurobridge.gpu import GpuProbe, GpuQueryError

logger = logging.getLogger(__name__)

Handler = Callable[[Command], Awaitable[Response]]

DEFAULT_PROBE_WORKERS = 4


class CommandDispatcher:
    """
    Routes commands to handlers.

    One dispatcher is shared by every session; it holds no per-connection
    state. The GPU probe runs on the dispatcher's own thread pool so a
    blocking native call stalls only the session that issued it.

    A probe call that times out keeps its worker until the native call
    returns. Once every worker is held, further GPU queries are refused
    with an ``Error`` instead of queueing behind them.
    """

    def __init__(
        self,
        probe: GpuProbe,
        query_timeout: Optional[float] = None,
        max_workers: int = DEFAULT_PROBE_WORKERS,
    ):
        """
        Args:
            probe: GPU enumeration backend
            query_timeout: Seconds to wait for the probe (None or 0 = no limit)
            max_workers: Probe calls allowed in flight at once
        """
        self.probe = probe
        self.query_timeout = query_timeout or None
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="gpu-probe")
        self._in_flight = 0
        self._lock = threading.Lock()
        self._handlers: Dict[Type[Command], Handler] = {
            Ping: self._handle_ping,
            GetGpuInfo: self._handle_gpu_info,
        }

    @property
    def probes_in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    async def dispatch(self, command: Command) -> Response:
        """Return the response for ``command``."""
        handler = self._handlers.get(type(command))
        if handler is None:
            tag = getattr(command, "TAG", "") or type(command).__name__
            logger.warning(f"No handler for command: {tag}")
            return Error(message=f"Unsupported command: {tag}")

        try:
            return await handler(command)
        except Exception as e:
            logger.exception(f"Error handling {command}: {e}")
            return Error(message=str(e) or type(e).__name__)

    def close(self) -> None:
        """Stop the probe pool without waiting for stuck native calls."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    async def _handle_ping(self, command: Ping) -> Response:
        return Pong()

    async def _handle_gpu_info(self, command: GetGpuInfo) -> Response:
        """Query the probe off the event loop."""
        future = self._submit_probe()
        if future is None:
            logger.warning(f"GPU query refused: {self.max_workers} probe call(s) still running")
            return Error(message="GPU probe busy, try again later")

        try:
            device_name, driver_version = await asyncio.wait_for(
                asyncio.wrap_future(future),
                timeout=self.query_timeout,
            )
        except GpuQueryError as e:
            logger.warning(f"GPU query failed: {e}")
            return Error(message=str(e))
        except asyncio.TimeoutError:
            logger.warning(f"GPU query timed out after {self.query_timeout:g}s")
            return Error(message=f"GPU query timed out after {self.query_timeout:g}s")

        return GpuInfo(device_name=device_name, driver_version=driver_version)

    def _submit_probe(self) -> Optional[Future]:
        with self._lock:
            if self._in_flight >= self.max_workers:
                return None
            self._in_flight += 1

        try:
            future = self._executor.submit(self.probe.query_device)
        except RuntimeError:
            self._release()
            raise
        future.add_done_callback(lambda _: self._release())
        return future

    def _release(self) -> None:
        with self._lock:
            self._in_flight -= 1
