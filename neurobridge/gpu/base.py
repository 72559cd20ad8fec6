"""
Base probe interface for GPU enumeration.
The dispatcher only ever talks to a probe through ``query_device``.
"""

from abc import ABC, abstractmethod
from typing import Tuple


class GpuQueryError(Exception):
    """The probe could not report a device. ``str(error)`` is sent to the client."""


class GpuProbe(ABC):
    """Abstract base class for GPU probes."""

    @abstractmethod
    def query_device(self) -> Tuple[str, str]:
        """
        Query the first GPU visible to this process.

        Implementations may block on native calls and must release every
        handle they acquire before returning, on success and on failure.

        Returns:
            (device_name, driver_version)

        Raises:
            GpuQueryError: With a human-readable reason on failure
        """
        pass

    def get_probe_name(self) -> str:
        """
        Get the name of this probe.

        Returns:
            Probe name string
        """
        return self.__class__.__name__.replace("Probe", "").lower()


class StaticProbe(GpuProbe):
    """Returns a fixed device. Used for development hosts and tests."""

    def __init__(self, device_name: str = "Mock GPU", driver_version: str = "1.2.3"):
        self.device_name = device_name
        self.driver_version = driver_version

    def query_device(self) -> Tuple[str, str]:
        return self.device_name, self.driver_version
