"""GPU probe implementations for Neuro-Bridge.

The server never calls a graphics API directly; it holds one ``GpuProbe`` and
calls ``query_device()`` from a worker thread.
"""

from typing import List, Optional

from neurobridge.gpu.base import GpuProbe, GpuQueryError, StaticProbe

PROBE_KINDS = ("vulkan", "nvml", "static")


def create_probe(
    kind: str,
    device_name: str = "Mock GPU",
    driver_version: str = "1.2.3",
    library: Optional[str] = None,
) -> GpuProbe:
    """
    Create a probe by name.

    Args:
        kind: One of ``PROBE_KINDS``
        device_name: Device reported by the static probe
        driver_version: Driver version reported by the static probe
        library: Explicit Vulkan loader path

    Raises:
        ValueError: If ``kind`` is unknown
    """
    kind = kind.strip().lower()

    if kind == "vulkan":
        from neurobridge.gpu.vulkan import VulkanProbe
        return VulkanProbe(library=library)

    elif kind == "nvml":
        from neurobridge.gpu.nvml import NvmlProbe
        return NvmlProbe()

    elif kind == "static":
        return StaticProbe(device_name, driver_version)

    raise ValueError(
        f"GPU probe {kind} not supported. Available probes: {', '.join(PROBE_KINDS)}"
    )


def get_available_probes() -> List[str]:
    """Return the probe names accepted by ``create_probe``."""
    return list(PROBE_KINDS)


__all__ = [
    "GpuProbe",
    "GpuQueryError",
    "StaticProbe",
    "PROBE_KINDS",
    "create_probe",
    "get_available_probes",
]
