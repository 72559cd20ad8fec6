"""
Tests for daemon/dispatcher.py - command to response mapping.
"""

import asyncio
import threading
import time
import unittest
from dataclasses import dataclass
from typing import ClassVar, Tuple

from neurobridge.daemon.dispatcher import CommandDispatcher
from neurobridge.daemon.messages import (
    Command,
    Error,
    GetGpuInfo,
    GpuInfo,
    Ping,
    Pong,
)
from neurobridge.gpu import GpuProbe, GpuQueryError, StaticProbe


class FailingProbe(GpuProbe):
    def __init__(self, reason: str = "no GPU driver"):
        self.reason = reason

    def query_device(self) -> Tuple[str, str]:
        raise GpuQueryError(self.reason)


class BrokenProbe(GpuProbe):
    def query_device(self) -> Tuple[str, str]:
        raise RuntimeError("driver crashed")


class SlowProbe(GpuProbe):
    def __init__(self, delay: float):
        self.delay = delay

    def query_device(self) -> Tuple[str, str]:
        time.sleep(self.delay)
        return "Slow GPU", "0.1"


class HangingProbe(GpuProbe):
    """Blocks until released, like a wedged driver call."""

    def __init__(self):
        self.release = threading.Event()

    def query_device(self) -> Tuple[str, str]:
        self.release.wait(timeout=10.0)
        return "Hung GPU", "1"


@dataclass(frozen=True)
class LoadModel(Command):
    TAG: ClassVar[str] = "LoadModel"

    path: str


class TestCommandDispatcher(unittest.IsolatedAsyncioTestCase):
    """Test cases for CommandDispatcher."""

    async def test_ping_yields_pong(self):
        dispatcher = CommandDispatcher(StaticProbe())
        self.assertEqual(await dispatcher.dispatch(Ping()), Pong())

    async def test_gpu_info_from_probe(self):
        dispatcher = CommandDispatcher(StaticProbe("Mock GPU", "1.2.3"))
        response = await dispatcher.dispatch(GetGpuInfo())
        self.assertEqual(response, GpuInfo(device_name="Mock GPU", driver_version="1.2.3"))

    async def test_probe_failure_becomes_error_response(self):
        dispatcher = CommandDispatcher(FailingProbe("no GPU driver"))
        response = await dispatcher.dispatch(GetGpuInfo())
        self.assertEqual(response, Error(message="no GPU driver"))

    async def test_unexpected_probe_exception_becomes_error_response(self):
        dispatcher = CommandDispatcher(BrokenProbe())
        with self.assertLogs("neurobridge.daemon.dispatcher", level="ERROR"):
            response = await dispatcher.dispatch(GetGpuInfo())
        self.assertIsInstance(response, Error)
        self.assertIn("driver crashed", response.message)

    async def test_probe_timeout_becomes_error_response(self):
        dispatcher = CommandDispatcher(SlowProbe(0.5), query_timeout=0.05)
        response = await dispatcher.dispatch(GetGpuInfo())
        self.assertIsInstance(response, Error)
        self.assertIn("timed out", response.message)

    async def test_zero_timeout_means_no_limit(self):
        dispatcher = CommandDispatcher(SlowProbe(0.05), query_timeout=0)
        response = await dispatcher.dispatch(GetGpuInfo())
        self.assertEqual(response, GpuInfo(device_name="Slow GPU", driver_version="0.1"))

    async def test_stuck_probe_calls_do_not_queue_forever(self):
        probe = HangingProbe()
        dispatcher = CommandDispatcher(probe, query_timeout=0.05, max_workers=1)
        self.addCleanup(dispatcher.close)
        self.addCleanup(probe.release.set)

        first = await dispatcher.dispatch(GetGpuInfo())
        self.assertIn("timed out", first.message)
        self.assertEqual(dispatcher.probes_in_flight, 1)

        # The timed-out call still holds the only worker
        self.assertEqual(
            await dispatcher.dispatch(GetGpuInfo()),
            Error(message="GPU probe busy, try again later"),
        )

        probe.release.set()
        for _ in range(200):
            if dispatcher.probes_in_flight == 0:
                break
            await asyncio.sleep(0.01)

        self.assertEqual(
            await dispatcher.dispatch(GetGpuInfo()),
            GpuInfo(device_name="Hung GPU", driver_version="1"),
        )

    async def test_closed_dispatcher_reports_error(self):
        dispatcher = CommandDispatcher(StaticProbe())
        dispatcher.close()
        with self.assertLogs("neurobridge.daemon.dispatcher", level="ERROR"):
            response = await dispatcher.dispatch(GetGpuInfo())
        self.assertIsInstance(response, Error)
        self.assertEqual(await dispatcher.dispatch(Ping()), Pong())

    async def test_unhandled_command_yields_error(self):
        dispatcher = CommandDispatcher(StaticProbe())
        response = await dispatcher.dispatch(LoadModel(path="/models/x.bin"))
        self.assertEqual(response, Error(message="Unsupported command: LoadModel"))


if __name__ == "__main__":
    unittest.main()
