"""Vulkan GPU probe using ctypes.

Loads the system Vulkan loader (``libvulkan.so`` on Android hosts), creates a
throwaway instance, enumerates physical devices and reads the properties of
the first one. The instance is always destroyed before returning.

Only the leading members of ``VkPhysicalDeviceProperties`` are declared; the
limits and sparse-properties blocks are covered by an oversized tail so the
driver has room to write the full structure.
"""

import ctypes
import ctypes.util
import logging
import sys
from typing import Optional, Tuple

from neurobridge.gpu.base import GpuProbe, GpuQueryError

logger = logging.getLogger(__name__)

VK_SUCCESS = 0
VK_INCOMPLETE = 5
VK_STRUCTURE_TYPE_APPLICATION_INFO = 0
VK_STRUCTURE_TYPE_INSTANCE_CREATE_INFO = 1
VK_MAX_PHYSICAL_DEVICE_NAME_SIZE = 256
VK_UUID_SIZE = 16

# VkResult codes worth naming in error messages
VK_RESULT_NAMES = {
    -1: "VK_ERROR_OUT_OF_HOST_MEMORY",
    -2: "VK_ERROR_OUT_OF_DEVICE_MEMORY",
    -3: "VK_ERROR_INITIALIZATION_FAILED",
    -6: "VK_ERROR_LAYER_NOT_PRESENT",
    -7: "VK_ERROR_EXTENSION_NOT_PRESENT",
    -9: "VK_ERROR_INCOMPATIBLE_DRIVER",
}

NO_DEVICE = ("No GPU Found", "0")


def make_api_version(variant: int, major: int, minor: int, patch: int) -> int:
    """Equivalent of the VK_MAKE_API_VERSION macro."""
    return (variant << 29) | (major << 22) | (minor << 12) | patch


class VkApplicationInfo(ctypes.Structure):
    _fields_ = [
        ("sType", ctypes.c_uint32),
        ("pNext", ctypes.c_void_p),
        ("pApplicationName", ctypes.c_char_p),
        ("applicationVersion", ctypes.c_uint32),
        ("pEngineName", ctypes.c_char_p),
        ("engineVersion", ctypes.c_uint32),
        ("apiVersion", ctypes.c_uint32),
    ]


class VkInstanceCreateInfo(ctypes.Structure):
    _fields_ = [
        ("sType", ctypes.c_uint32),
        ("pNext", ctypes.c_void_p),
        ("flags", ctypes.c_uint32),
        ("pApplicationInfo", ctypes.POINTER(VkApplicationInfo)),
        ("enabledLayerCount", ctypes.c_uint32),
        ("ppEnabledLayerNames", ctypes.POINTER(ctypes.c_char_p)),
        ("enabledExtensionCount", ctypes.c_uint32),
        ("ppEnabledExtensionNames", ctypes.POINTER(ctypes.c_char_p)),
    ]


class VkPhysicalDeviceProperties(ctypes.Structure):
    _fields_ = [
        ("apiVersion", ctypes.c_uint32),
        ("driverVersion", ctypes.c_uint32),
        ("vendorID", ctypes.c_uint32),
        ("deviceID", ctypes.c_uint32),
        ("deviceType", ctypes.c_int32),
        ("deviceName", ctypes.c_char * VK_MAX_PHYSICAL_DEVICE_NAME_SIZE),
        ("pipelineCacheUUID", ctypes.c_uint8 * VK_UUID_SIZE),
        # VkPhysicalDeviceLimits + VkPhysicalDeviceSparseProperties (< 600 bytes)
        ("_tail", ctypes.c_uint64 * 128),
    ]


def _library_candidates() -> Tuple[str, ...]:
    if sys.platform == "darwin":
        names = ("libvulkan.1.dylib", "libMoltenVK.dylib")
    elif sys.platform == "win32":
        names = ("vulkan-1.dll",)
    else:
        names = ("libvulkan.so.1", "libvulkan.so")
    found = ctypes.util.find_library("vulkan")
    return ((found,) if found else ()) + names


class VulkanProbe(GpuProbe):
    """Reports the first Vulkan physical device."""

    def __init__(self, library: Optional[str] = None, application_name: str = "NeuroBridge"):
        """
        Args:
            library: Explicit loader path; searched for when omitted
            application_name: Name reported to the driver in VkApplicationInfo
        """
        self.library = library
        self.application_name = application_name

    def query_device(self) -> Tuple[str, str]:
        vk = self._load_library()
        create_instance, enumerate_devices, get_properties, destroy_instance = self._bind(vk)

        app_info = VkApplicationInfo(
            sType=VK_STRUCTURE_TYPE_APPLICATION_INFO,
            pApplicationName=self.application_name.encode("utf-8"),
            apiVersion=make_api_version(0, 1, 0, 0),
        )
        create_info = VkInstanceCreateInfo(
            sType=VK_STRUCTURE_TYPE_INSTANCE_CREATE_INFO,
            pApplicationInfo=ctypes.pointer(app_info),
        )

        instance = ctypes.c_void_p()
        result = create_instance(ctypes.pointer(create_info), None, ctypes.pointer(instance))
        if result != VK_SUCCESS:
            raise GpuQueryError(f"vkCreateInstance failed: {_result_name(result)}")

        try:
            count = ctypes.c_uint32(0)
            result = enumerate_devices(instance, ctypes.pointer(count), None)
            if result not in (VK_SUCCESS, VK_INCOMPLETE):
                raise GpuQueryError(f"vkEnumeratePhysicalDevices failed: {_result_name(result)}")
            if count.value == 0:
                return NO_DEVICE

            devices = (ctypes.c_void_p * count.value)()
            result = enumerate_devices(instance, ctypes.pointer(count), devices)
            if result not in (VK_SUCCESS, VK_INCOMPLETE):
                raise GpuQueryError(f"vkEnumeratePhysicalDevices failed: {_result_name(result)}")
            if count.value == 0:
                return NO_DEVICE

            props = VkPhysicalDeviceProperties()
            get_properties(devices[0], ctypes.pointer(props))
            device_name = props.deviceName.decode("utf-8", errors="replace")
            logger.debug(f"Vulkan reported {count.value} device(s), first: {device_name}")
            return device_name, str(props.driverVersion)
        finally:
            destroy_instance(instance, None)

    def _load_library(self) -> ctypes.CDLL:
        candidates = (self.library,) if self.library else _library_candidates()
        errors = []
        for name in candidates:
            try:
                return ctypes.CDLL(name)
            except OSError as e:
                errors.append(f"{name}: {e}")
        raise GpuQueryError("Vulkan loader not available (" + "; ".join(errors) + ")")

    @staticmethod
    def _bind(vk: ctypes.CDLL):
        try:
            create_instance = vk.vkCreateInstance
            enumerate_devices = vk.vkEnumeratePhysicalDevices
            get_properties = vk.vkGetPhysicalDeviceProperties
            destroy_instance = vk.vkDestroyInstance
        except AttributeError as e:
            raise GpuQueryError(f"Vulkan loader is missing a core entry point: {e}") from e

        create_instance.argtypes = [
            ctypes.POINTER(VkInstanceCreateInfo),
            ctypes.c_void_p,
            ctypes.POINTER(ctypes.c_void_p),
        ]
        create_instance.restype = ctypes.c_int32
        enumerate_devices.argtypes = [
            ctypes.c_void_p,
            ctypes.POINTER(ctypes.c_uint32),
            ctypes.POINTER(ctypes.c_void_p),
        ]
        enumerate_devices.restype = ctypes.c_int32
        get_properties.argtypes = [ctypes.c_void_p, ctypes.POINTER(VkPhysicalDeviceProperties)]
        get_properties.restype = None
        destroy_instance.argtypes = [ctypes.c_void_p, ctypes.c_void_p]
        destroy_instance.restype = None

        return create_instance, enumerate_devices, get_properties, destroy_instance


def _result_name(result: int) -> str:
    return VK_RESULT_NAMES.get(result, f"VkResult {result}")
