"""NVIDIA GPU probe backed by the NVML bindings (``nvidia-ml-py``).

pynvml is imported lazily so hosts without an NVIDIA stack can still run the
bridge with another probe.
"""

from typing import Tuple

from neurobridge.gpu.base import GpuProbe, GpuQueryError


def _text(value) -> str:
    # Older bindings return bytes, newer ones str
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


class NvmlProbe(GpuProbe):
    """Reports the NVML device at ``index``."""

    def __init__(self, index: int = 0):
        self.index = index

    def query_device(self) -> Tuple[str, str]:
        try:
            import pynvml
        except ImportError as e:
            raise GpuQueryError(f"NVML bindings not installed: {e}") from e

        try:
            pynvml.nvmlInit()
        except pynvml.NVMLError as e:
            raise GpuQueryError(f"NVML initialisation failed: {e}") from e

        try:
            handle = pynvml.nvmlDeviceGetHandleByIndex(self.index)
            device_name = _text(pynvml.nvmlDeviceGetName(handle))
            driver_version = _text(pynvml.nvmlSystemGetDriverVersion())
        except pynvml.NVMLError as e:
            raise GpuQueryError(f"NVML query failed: {e}") from e
        finally:
            pynvml.nvmlShutdown()

        return device_name, driver_version
