"""Configuration management for Neuro-Bridge.

Loads settings from ~/.config/neurobridge/config.cfg, falling back to a .env
file in the working directory. Environment variables override both.
Provides BridgeSettings (socket, timeouts, GPU probe selection).
"""

import configparser
from dataclasses import dataclass
import os
from pathlib import Path
from typing import Dict, Optional

from dotenv import dotenv_values

# Default location for user configuration.
CONFIG_PATH = Path.home() / ".config" / "neurobridge" / "config.cfg"
ENV_PATH = Path(".env")

DEFAULT_SOCKET_PATH = "/dev/socket/neuro_bridge.sock"

ENV_OVERRIDES = {
    "NEUROBRIDGE_SOCKET": "socket_path",
    "NEUROBRIDGE_TIMEOUT_S": "timeout",
    "NEUROBRIDGE_GPU_PROBE": "gpu_probe",
}

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class BridgeSettings:
    socket_path: Path = Path(DEFAULT_SOCKET_PATH)
    # World-writable so a client inside the chroot can connect
    socket_mode: int = 0o777
    timeout: float = 30.0
    query_timeout: float = 10.0
    gpu_probe: str = "vulkan"
    vulkan_library: Optional[str] = None
    static_device_name: str = "Mock GPU"
    static_driver_version: str = "1.2.3"
    log_level: str = "INFO"


def load_raw_config(path: Path = CONFIG_PATH, env_path: Path = ENV_PATH) -> Dict[str, str]:
    """
    Load configuration values from the standard config path.
    Falls back to ``env_path`` when the config file does not exist.
    Values are returned with lowercase keys for convenience.
    """
    data: Dict[str, str] = {}

    if path.exists():
        cfg = configparser.ConfigParser()
        cfg.read(path)
        if "DEFAULT" in cfg:
            data.update({k.lower(): v for k, v in cfg["DEFAULT"].items()})
        if "SERVER" in cfg:
            data.update({k.lower(): v for k, v in cfg["SERVER"].items()})
    elif env_path.exists():
        data.update(
            {k.lower(): v for k, v in dotenv_values(env_path).items() if v is not None}
        )

    return data


def _get_float(raw: Dict[str, str], key: str, default: float) -> float:
    value = raw.get(key)
    if value is None or str(value).strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Invalid number for '{key}': {value!r}") from None


def _get_mode(raw: Dict[str, str], key: str, default: int) -> int:
    value = raw.get(key)
    if value is None or str(value).strip() == "":
        return default
    try:
        return int(str(value).strip(), 8)
    except ValueError:
        raise ValueError(f"Invalid octal mode for '{key}': {value!r}") from None


def _get_log_level(raw: Dict[str, str], key: str, default: str) -> str:
    value = str(raw.get(key) or "").strip().upper() or default
    if value not in LOG_LEVELS:
        raise ValueError(f"Invalid log level for '{key}': {value!r}. Choose from: {', '.join(LOG_LEVELS)}")
    return value


def get_bridge_settings(raw: Optional[Dict[str, str]] = None) -> BridgeSettings:
    """
    Build BridgeSettings from raw configuration values and the environment.
    Raises ValueError on malformed numbers or an unknown log level.
    """
    raw = dict(load_raw_config() if raw is None else raw)

    for env_name, key in ENV_OVERRIDES.items():
        env_value = os.environ.get(env_name)
        if env_value is not None and env_value.strip() != "":
            raw[key] = env_value.strip()

    defaults = BridgeSettings()
    return BridgeSettings(
        socket_path=Path(raw.get("socket_path", "").strip() or DEFAULT_SOCKET_PATH).expanduser(),
        socket_mode=_get_mode(raw, "socket_mode", defaults.socket_mode),
        timeout=_get_float(raw, "timeout", defaults.timeout),
        query_timeout=_get_float(raw, "query_timeout", defaults.query_timeout),
        gpu_probe=raw.get("gpu_probe", defaults.gpu_probe).strip().lower(),
        vulkan_library=raw.get("vulkan_library", "").strip() or None,
        static_device_name=raw.get("static_device_name", defaults.static_device_name),
        static_driver_version=raw.get("static_driver_version", defaults.static_driver_version),
        log_level=_get_log_level(raw, "log_level", defaults.log_level),
    )
